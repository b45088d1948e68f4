import os
from uuid import uuid4

from django.conf import settings
from rest_framework import status, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from posts.drops import drop_status, publish_due_drops

from . import cleanup, reconcile
from .dispatch import redispatch_stale_jobs
from .exceptions import UploadRejected
from .finalize import finalize_upload
from .models import MediaJob
from .permissions import HasCronSecret
from .queue import get_job_queue
from .s3 import create_presigned_put
from .serializers import (
    FinalizeRequestSerializer,
    MediaJobSerializer,
    PresignRequestSerializer,
    PresignResponseSerializer,
)


def user_tier(user) -> str:
    return getattr(user, "tier", None) or settings.MEDIA_DEFAULT_TIER


class PresignUploadView(views.APIView):
    """
    Returns a presigned PUT URL + recommended key so the client can upload
    directly to MinIO/S3 without streaming through Django.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = PresignRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        filename = ser.validated_data["filename"]
        content_type = ser.validated_data.get("content_type") or None

        # raw/<user>/<uuid>_<filename>
        key = f"raw/{request.user.pk}/{uuid4().hex}_{os.path.basename(filename)}"

        signed = create_presigned_put(key, content_type=content_type)
        resp = {"key": key, "url": signed["url"], "headers": signed.get("headers", {})}
        return Response(PresignResponseSerializer(resp).data, status=201)


class FinalizeUploadView(views.APIView):
    """
    Called once the client's direct upload has landed in the bucket.
    Images come back with their public URL; video and audio get a MediaJob to poll.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = FinalizeRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            result = finalize_upload(
                key=data["key"],
                media_kind=data["mediaKind"],
                file_size=data["fileSize"],
                user=request.user,
                tier=user_tier(request.user),
                queue=get_job_queue(),
            )
        except UploadRejected as e:
            return Response({"detail": e.detail}, status=e.status_code)

        code = status.HTTP_202_ACCEPTED if result.job_id else status.HTTP_200_OK
        return Response(result.as_response(), status=code)


class JobDetailView(views.APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, job_id):
        try:
            job = MediaJob.objects.get(pk=job_id)
        except MediaJob.DoesNotExist:
            return Response({"detail": "Not found"}, status=404)
        if job.user_id != request.user.pk:
            return Response({"detail": "Forbidden"}, status=403)
        return Response(MediaJobSerializer(job).data)


class CronView(views.APIView):
    """Base for the sweeper endpoints hit by an external scheduler."""
    permission_classes = [HasCronSecret]
    authentication_classes = []


class CleanupMediaView(CronView):
    def post(self, request):
        return Response(cleanup.sweep_pending_deletions())


class PublishDropsView(CronView):
    def post(self, request):
        return Response(publish_due_drops())

    def get(self, request):
        return Response(drop_status())


class LinkOrphanJobsView(CronView):
    def post(self, request):
        return Response(reconcile.link_orphan_jobs())


class BackfillPostMetadataView(CronView):
    def post(self, request):
        return Response(reconcile.backfill_post_metadata())


class RedispatchStaleJobsView(CronView):
    def post(self, request):
        return Response(redispatch_stale_jobs(get_job_queue()))

