import uuid
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class MediaKind(models.TextChoices):
    IMAGE = "image"
    PANORAMA = "panorama360"
    VIDEO = "video"
    AUDIO = "audio"


TRANSCODED_KINDS = (MediaKind.VIDEO, MediaKind.AUDIO)

OUTPUT_FIELDS = ("output_url", "duration_seconds", "width", "height")

# Output fields a completed job must carry, per kind. Anything not listed must stay null.
REQUIRED_OUTPUT = {
    MediaKind.VIDEO.value: ("output_url", "duration_seconds", "width", "height"),
    MediaKind.AUDIO.value: ("output_url", "duration_seconds"),
}

# Kinds that also get a poster frame in ``thumbnail_url``. It is optional and
# sits outside the output shape check.
THUMBNAIL_KINDS = (MediaKind.VIDEO.value,)


def _output_shape(required):
    return Q(**{f"{name}__isnull": name not in required for name in OUTPUT_FIELDS})


class MediaJob(models.Model):
    class State(models.TextChoices):
        PENDING = "pending"
        PROCESSING = "processing"
        COMPLETED = "completed"
        FAILED = "failed"

    TERMINAL_STATES = (State.COMPLETED, State.FAILED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="media_jobs")
    user_tier = models.CharField(max_length=16)  # captured at request time

    raw_file_url = models.URLField(max_length=1024)
    raw_file_size = models.PositiveBigIntegerField()
    media_kind = models.CharField(max_length=16, choices=[(k.value, k.label) for k in TRANSCODED_KINDS])

    state = models.CharField(max_length=16, choices=State.choices, default=State.PENDING)
    progress = models.PositiveSmallIntegerField(default=0)  # 0..100
    attempt_count = models.PositiveSmallIntegerField(default=0)
    queue_task_id = models.CharField(max_length=255, null=True, blank=True)
    error = models.TextField(blank=True, default="")

    output_url = models.URLField(max_length=1024, null=True, blank=True)
    duration_seconds = models.FloatField(null=True, blank=True)
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    thumbnail_url = models.URLField(max_length=1024, null=True, blank=True)

    post = models.ForeignKey(
        "posts.Post", null=True, blank=True, on_delete=models.SET_NULL, related_name="media_jobs"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["state", "post"], name="mediajob_state_post_idx"),
            models.Index(fields=["state", "created_at"], name="mediajob_state_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(progress__lte=100),
                name="mediajob_progress_range",
            ),
            models.CheckConstraint(
                condition=(
                    (~Q(state="completed") & _output_shape(()))
                    | (Q(state="completed", media_kind="video") & _output_shape(REQUIRED_OUTPUT["video"]))
                    | (Q(state="completed", media_kind="audio") & _output_shape(REQUIRED_OUTPUT["audio"]))
                ),
                name="mediajob_output_matches_state",
            ),
        ]

    def __str__(self):
        return f"MediaJob {self.id} ({self.media_kind}, {self.state})"

    @property
    def is_terminal(self) -> bool:
        return self.state in self.TERMINAL_STATES

    def clean(self):
        super().clean()
        check_output_invariant(self)


def check_output_invariant(job: MediaJob) -> None:
    """Raise ValidationError when the output fields disagree with the job state."""
    if job.state == MediaJob.State.COMPLETED:
        required = REQUIRED_OUTPUT.get(str(job.media_kind), OUTPUT_FIELDS)
    else:
        required = ()
    errors = {}
    for name in OUTPUT_FIELDS:
        value = getattr(job, name)
        if name in required and value in (None, ""):
            errors[name] = f"required when a {job.media_kind} job is {job.state}"
        elif name not in required and value is not None:
            errors[name] = f"must be empty when a {job.media_kind} job is {job.state}"
    if errors:
        raise ValidationError(errors)


class PendingMediaDeletion(models.Model):
    """An object-storage key that still has to be removed. The row goes away once the key is gone."""

    storage_key = models.CharField(max_length=1024)
    scheduled_for = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["scheduled_for"]

    def __str__(self):
        return f"{self.storage_key} @ {self.scheduled_for:%Y-%m-%d %H:%M}"
