"""
Worker side of the MediaJob contract.

One call to ``run_attempt`` is one delivery of a queued task. It claims the job,
runs the processor, and leaves the job in exactly one of: completed, failed,
or pending again (attempts remain; the queue schedules the retry). An attempt
that finds the job moved on by another delivery or the stalled-job sweep
leaves it as it is.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable

from . import jobs
from .exceptions import InvalidTransition, MediaRejected
from .models import MediaJob
from .reconcile import fill_missing_post_media
from .transcode import FfmpegProcessor

logger = logging.getLogger(__name__)

# processor(job, report_progress) -> JobOutput
Processor = Callable[[MediaJob, Callable[[int], None]], jobs.JobOutput]


class Outcome(enum.Enum):
    COMPLETED = "completed"
    RETRY = "retry"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class AttemptResult:
    outcome: Outcome
    job: MediaJob
    error: str | None = None


def get_processor() -> Processor:
    return FfmpegProcessor()


def _moved_on(job_id, attempt: int) -> AttemptResult:
    # another delivery or the stalled-job sweep changed the job under this attempt
    job = jobs.get_job(job_id)
    logger.info("MediaJob %s is %s, dropping attempt %s", job_id, job.state, attempt)
    return AttemptResult(Outcome.SKIPPED, job)


def run_attempt(job_id, *, attempt: int, max_attempts: int, processor: Processor | None = None,
                on_progress: Callable[[int], None] | None = None) -> AttemptResult:
    job = jobs.get_job(job_id)
    if job.is_terminal:
        # at-least-once delivery: a duplicate of a finished task is a no-op
        logger.info("MediaJob %s already %s, skipping delivery", job_id, job.state)
        return AttemptResult(Outcome.SKIPPED, job)

    try:
        job = jobs.start_processing(job_id, attempt)
    except InvalidTransition:
        return _moved_on(job_id, attempt)
    processor = processor or get_processor()

    def report(progress: int):
        stored = jobs.report_progress(job_id, progress)
        if on_progress is not None:
            on_progress(stored)

    try:
        try:
            output = processor(job, report)
            job = jobs.complete_job(job_id, output)
        except MediaRejected as exc:
            return AttemptResult(Outcome.FAILED, jobs.fail_job(job_id, str(exc)), str(exc))
        except InvalidTransition:
            raise
        except Exception as exc:
            # includes SoftTimeLimitExceeded, raised when the task runs past its soft limit
            error = f"{type(exc).__name__}: {exc}"
            if attempt < max_attempts:
                logger.warning("MediaJob %s attempt %s/%s failed, will retry: %s", job_id, attempt, max_attempts, error)
                return AttemptResult(Outcome.RETRY, jobs.mark_retrying(job_id, error), error)
            return AttemptResult(Outcome.FAILED, jobs.fail_job(job_id, error), error)
    except InvalidTransition:
        return _moved_on(job_id, attempt)

    if job.post_id:
        fill_missing_post_media(job.post_id, job)
    logger.info("MediaJob %s completed on attempt %s", job_id, attempt)
    return AttemptResult(Outcome.COMPLETED, job)
