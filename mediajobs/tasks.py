from celery import shared_task

from . import cleanup, jobs, reconcile
from .dispatch import redispatch_stale_jobs as _redispatch_stale_jobs
from .exceptions import MediaJobFailed
from .queue import TRANSCODE_JOB, JobOptions, get_job_queue
from .worker import Outcome, run_attempt


@shared_task(bind=True, name=TRANSCODE_JOB)
def transcode_media(self, payload: dict, options: dict | None = None):
    """
    One delivery of a transcode job. Retries are scheduled through Celery with
    exponential backoff; the MediaJob row carries the outward state.

    ``payload["attempt"]`` is the attempt the first delivery stands for. A job
    handed back by the stalled-job sweep starts past 1 and gets fewer retries.
    """
    opts = JobOptions.from_dict(options)
    first = int(payload.get("attempt", 1))
    attempt = first + self.request.retries

    def on_progress(progress: int):
        if not self.request.is_eager:
            self.update_state(state="PROGRESS", meta={"progress": progress})

    result = run_attempt(
        payload["jobId"],
        attempt=attempt,
        max_attempts=opts.attempts,
        on_progress=on_progress,
    )

    if result.outcome is Outcome.RETRY:
        retry = self.retry(countdown=opts.delay_for(attempt), max_retries=opts.attempts - first, throw=False)
        # only reached once the retry is published; otherwise the job waits for the sweep
        jobs.record_dispatch(result.job.id, self.request.id)
        raise retry
    if result.outcome is Outcome.FAILED:
        raise MediaJobFailed(result.error)

    job = result.job
    return {
        "jobId": str(job.id),
        "state": job.state,
        "outputUrl": job.output_url,
        "durationSeconds": job.duration_seconds,
    }


@shared_task(name="mediajobs.sweep_pending_deletions")
def sweep_pending_deletions():
    return cleanup.sweep_pending_deletions()


@shared_task(name="mediajobs.link_orphan_jobs")
def link_orphan_jobs():
    return reconcile.link_orphan_jobs()


@shared_task(name="mediajobs.backfill_post_metadata")
def backfill_post_metadata():
    return reconcile.backfill_post_metadata()


@shared_task(name="mediajobs.redispatch_stale_jobs")
def redispatch_stale_jobs():
    return _redispatch_stale_jobs(get_job_queue())
