import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from . import jobs
from .exceptions import InvalidTransition
from .models import MediaJob
from .queue import TRANSCODE_JOB, JobOptions, JobQueue

logger = logging.getLogger(__name__)


def dispatch_job(job: MediaJob, queue: JobQueue) -> str | None:
    """
    Enqueue the transcode task for a job and remember the task id.

    The payload carries the attempt the delivery stands for, so a job that
    already spent attempts does not get a fresh set of retries.

    A queue failure is logged and swallowed: the job row already exists, the
    caller can poll it, and ``redispatch_stale_jobs`` picks it up later.
    """
    payload = {"jobId": str(job.id), "attempt": job.attempt_count + 1}
    try:
        task_id = queue.enqueue(TRANSCODE_JOB, payload)
    except Exception:
        logger.exception("Dispatch failed for MediaJob %s; it stays pending until re-dispatched", job.id)
        return None
    jobs.record_dispatch(job.id, task_id)
    logger.info("Dispatched MediaJob %s as task %s", job.id, task_id)
    return task_id


def _sweep_stalled(stalled_before, max_attempts: int) -> tuple[list[MediaJob], int]:
    # a worker killed past its hard time limit never reports back
    released = []
    timed_out = 0
    stalled = MediaJob.objects.filter(
        state=MediaJob.State.PROCESSING,
        updated_at__lte=stalled_before,
    ).order_by("updated_at")
    for job in stalled:
        try:
            if job.attempt_count >= max_attempts:
                jobs.fail_stalled(job.id, stalled_before, f"Job timed out after {job.attempt_count} attempt(s)")
                timed_out += 1
                continue
            job = jobs.release_stalled(job.id, stalled_before)
        except InvalidTransition:
            logger.info("MediaJob %s reported again, leaving it", job.id)
            continue
        logger.warning("MediaJob %s stalled in processing on attempt %s, reset to pending", job.id, job.attempt_count)
        released.append(job)
    return released, timed_out


def redispatch_stale_jobs(queue: JobQueue, *, now=None, older_than: timedelta | None = None,
                          stalled_after: timedelta | None = None, max_attempts: int | None = None) -> dict:
    """
    Recover jobs the queue lost track of.

    Processing jobs that have not reported for ``stalled_after`` are reset to
    pending, or failed once their attempts are spent. Then every pending job
    without a recorded task id and untouched for ``older_than`` is enqueued.
    Only jobs without a task id qualify, so a job that is merely waiting for a
    worker is never enqueued twice by this sweep.
    """
    now = now or timezone.now()
    older_than = older_than or timedelta(minutes=settings.MEDIA_STALE_PENDING_MINUTES)
    stalled_after = stalled_after or timedelta(minutes=settings.MEDIA_STALE_PROCESSING_MINUTES)
    max_attempts = max_attempts or JobOptions.from_settings().attempts

    released, timed_out = _sweep_stalled(now - stalled_after, max_attempts)
    stale = MediaJob.objects.filter(
        state=MediaJob.State.PENDING,
        queue_task_id__isnull=True,
        updated_at__lte=now - older_than,
    ).exclude(pk__in=[job.pk for job in released]).order_by("created_at")

    redispatched = 0
    errors = []
    for job in [*released, *stale]:
        task_id = dispatch_job(job, queue)
        if task_id is None:
            errors.append({"jobId": str(job.id), "error": "enqueue failed"})
        else:
            redispatched += 1

    if redispatched or errors or released or timed_out:
        logger.info(
            "Re-dispatched %s stale job(s), %s still undispatched, %s stalled reset, %s timed out",
            redispatched, len(errors), len(released), timed_out,
        )
    return {
        "redispatchedCount": redispatched,
        "releasedCount": len(released),
        "timedOutCount": timed_out,
        "errors": errors,
    }
