import uuid
from django.conf import settings
from django.db import models


class DropStatus(models.TextChoices):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"


class Post(models.Model):
    """A feed post. Only the fields the media pipeline reads or writes live here."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="posts")
    content_type = models.CharField(max_length=16, default="image")  # image | video | audio | panorama360
    media_url = models.URLField(max_length=1024, blank=True, default="", db_index=True)

    # Denormalized from the transcoding job, filled by the worker or the backfill sweeper
    media_duration_seconds = models.FloatField(null=True, blank=True)
    media_width = models.PositiveIntegerField(null=True, blank=True)
    media_height = models.PositiveIntegerField(null=True, blank=True)

    status = models.CharField(max_length=16, choices=DropStatus.choices, default=DropStatus.PUBLISHED)
    scheduled_for = models.DateTimeField(null=True, blank=True)
    dropped_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["status", "scheduled_for"], name="post_status_sched_idx")]

    def __str__(self):
        return f"Post {self.id} ({self.status})"


class Album(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="albums")
    title = models.CharField(max_length=200)

    status = models.CharField(max_length=16, choices=DropStatus.choices, default=DropStatus.PUBLISHED)
    scheduled_for = models.DateTimeField(null=True, blank=True)
    dropped_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["status", "scheduled_for"], name="album_status_sched_idx")]

    def __str__(self):
        return f"Album {self.title!r} ({self.status})"
