"""
MediaJob state machine.

    pending --start--> processing --complete--> completed
       ^                 |    |
       |                 |    +-----fail------> failed
       +-----retry-------+
            (or stalled: the sweeper hands it back)

Every transition is a single conditional UPDATE keyed on the expected source
state, so a stale or duplicate report can never move a job out of a terminal
state. The worker owns state/progress/output/attempt/error. Sweepers touch
``post`` and ``queue_task_id``, and take back a ``processing`` job only once
it has stopped reporting for longer than a worker may run.
"""
import logging
from dataclasses import dataclass

from django.utils import timezone

from .exceptions import IncompleteOutput, InvalidTransition, JobNotFound
from .models import OUTPUT_FIELDS, REQUIRED_OUTPUT, THUMBNAIL_KINDS, MediaJob

logger = logging.getLogger(__name__)

State = MediaJob.State


@dataclass(frozen=True)
class JobOutput:
    output_url: str
    duration_seconds: float | None = None
    width: int | None = None
    height: int | None = None
    thumbnail_url: str | None = None

    def fields_for(self, media_kind: str) -> dict:
        """Return the output columns for a kind, or raise IncompleteOutput."""
        required = REQUIRED_OUTPUT[str(media_kind)]
        values = {name: getattr(self, name) for name in OUTPUT_FIELDS}
        missing = [name for name in required if values[name] in (None, "")]
        if missing:
            raise IncompleteOutput(f"{media_kind} output is missing {', '.join(missing)}")
        # Fields the kind does not carry stay null (audio has no frame size).
        fields = {name: (values[name] if name in required else None) for name in OUTPUT_FIELDS}
        fields["thumbnail_url"] = self.thumbnail_url if str(media_kind) in THUMBNAIL_KINDS else None
        return fields


def get_job(job_id) -> MediaJob:
    try:
        return MediaJob.objects.get(pk=job_id)
    except MediaJob.DoesNotExist:
        raise JobNotFound(f"MediaJob {job_id} does not exist")


def _transition(job_id, sources, target: str, *, match: dict | None = None, **changes) -> MediaJob:
    updated = MediaJob.objects.filter(pk=job_id, state__in=sources, **(match or {})).update(
        state=target, updated_at=timezone.now(), **changes
    )
    job = get_job(job_id)
    if not updated:
        raise InvalidTransition(job_id, job.state, target)
    return job


def create_job(*, user, user_tier: str, raw_file_url: str, raw_file_size: int, media_kind: str) -> MediaJob:
    job = MediaJob.objects.create(
        user=user,
        user_tier=user_tier,
        raw_file_url=raw_file_url,
        raw_file_size=raw_file_size,
        media_kind=media_kind,
        state=State.PENDING,
        progress=0,
    )
    logger.info("Created %s job %s for user %s", media_kind, job.id, user.pk)
    return job


def start_processing(job_id, attempt: int) -> MediaJob:
    """
    Claim the job for a worker attempt.

    A job already in processing is re-claimed as is: the queue redelivered the
    task after a worker died, and the progress made so far stays.
    """
    return _transition(job_id, (State.PENDING, State.PROCESSING), State.PROCESSING, attempt_count=attempt)


def report_progress(job_id, progress: int) -> int:
    """Raise progress while processing. Lower values are ignored. Returns the stored value."""
    progress = max(0, min(100, int(progress)))
    MediaJob.objects.filter(pk=job_id, state=State.PROCESSING, progress__lt=progress).update(
        progress=progress, updated_at=timezone.now()
    )
    job = get_job(job_id)
    if job.state != State.PROCESSING:
        raise InvalidTransition(job_id, job.state, State.PROCESSING)
    return job.progress


def mark_retrying(job_id, error: str) -> MediaJob:
    """
    Hand the job back to the queue after a transient failure.

    The task id is cleared and recorded again once the retry is published, so a
    retry that never reaches the broker is left for ``redispatch_stale_jobs``.
    """
    return _transition(
        job_id, (State.PROCESSING,), State.PENDING, progress=0, error=error[:4000], queue_task_id=None
    )


def complete_job(job_id, output: JobOutput) -> MediaJob:
    job = get_job(job_id)
    values = output.fields_for(job.media_kind)
    return _transition(
        job_id,
        (State.PROCESSING,),
        State.COMPLETED,
        progress=100,
        error="",
        processed_at=timezone.now(),
        **values,
    )


def fail_job(job_id, error: str) -> MediaJob:
    job = _transition(job_id, (State.PROCESSING,), State.FAILED, error=error[:4000])
    logger.warning("MediaJob %s failed after %s attempt(s): %s", job_id, job.attempt_count, error)
    return job


def release_stalled(job_id, stalled_before) -> MediaJob:
    """Return a processing job that has not reported since ``stalled_before`` to pending."""
    return _transition(
        job_id,
        (State.PROCESSING,),
        State.PENDING,
        match={"updated_at__lte": stalled_before},
        progress=0,
        error="Job timed out and was reset",
        queue_task_id=None,
    )


def fail_stalled(job_id, stalled_before, error: str) -> MediaJob:
    job = _transition(
        job_id,
        (State.PROCESSING,),
        State.FAILED,
        match={"updated_at__lte": stalled_before},
        error=error[:4000],
    )
    logger.warning("MediaJob %s failed after %s attempt(s): %s", job_id, job.attempt_count, error)
    return job


def record_dispatch(job_id, task_id: str) -> bool:
    """Remember the queue task id unless one is already recorded."""
    return bool(
        MediaJob.objects.filter(pk=job_id, queue_task_id__isnull=True).update(queue_task_id=task_id)
    )


def link_post(job_id, post_id) -> bool:
    """Attach a post to a job that has none yet."""
    return bool(MediaJob.objects.filter(pk=job_id, post__isnull=True).update(post_id=post_id))

