from rest_framework import serializers

from .models import MediaJob


class MediaJobSerializer(serializers.ModelSerializer):
    attemptCount = serializers.IntegerField(source="attempt_count", read_only=True)
    mediaKind = serializers.CharField(source="media_kind", read_only=True)
    outputUrl = serializers.CharField(source="output_url", read_only=True, allow_null=True)
    durationSeconds = serializers.FloatField(source="duration_seconds", read_only=True, allow_null=True)
    thumbnailUrl = serializers.CharField(source="thumbnail_url", read_only=True, allow_null=True)
    postId = serializers.UUIDField(source="post_id", read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    processedAt = serializers.DateTimeField(source="processed_at", read_only=True, allow_null=True)

    class Meta:
        model = MediaJob
        fields = [
            "id",
            "state",
            "progress",
            "attemptCount",
            "mediaKind",
            "outputUrl",
            "durationSeconds",
            "width",
            "height",
            "thumbnailUrl",
            "postId",
            "error",
            "createdAt",
            "updatedAt",
            "processedAt",
        ]
        read_only_fields = fields


class FinalizeRequestSerializer(serializers.Serializer):
    # presence and kind are checked by the finalizer so its messages reach the client unchanged
    key = serializers.CharField(required=False, allow_blank=True, default="")
    mediaKind = serializers.CharField(required=False, allow_blank=True, default="")
    fileSize = serializers.IntegerField(min_value=0)


class PresignRequestSerializer(serializers.Serializer):
    filename = serializers.CharField()
    content_type = serializers.CharField(required=False, allow_blank=True)


class PresignResponseSerializer(serializers.Serializer):
    key = serializers.CharField()
    url = serializers.URLField()
    headers = serializers.DictField(child=serializers.CharField(), required=False)
