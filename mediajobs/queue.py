"""
Job queue seam between the API/sweepers and the Celery workers.

Callers depend on the small ``JobQueue`` interface (``enqueue`` / ``get_status``)
and receive an implementation explicitly, so tests can hand in an in-memory
queue. ``CeleryJobQueue`` is the production implementation.
"""
import logging
from dataclasses import asdict, dataclass, fields
from functools import lru_cache
from typing import Any, Protocol

import redis
from celery.signals import task_failure, task_success
from django.conf import settings
from kombu.exceptions import OperationalError

from .exceptions import QueueUnavailable

logger = logging.getLogger(__name__)

TRANSCODE_JOB = "mediajobs.transcode_media"


@dataclass(frozen=True)
class JobOptions:
    attempts: int = 3
    backoff_delay: float = 1.0  # seconds before the 2nd attempt, doubled after that
    keep_completed: int = 100
    keep_failed: int = 100

    @classmethod
    def from_settings(cls) -> "JobOptions":
        return cls(
            attempts=settings.MEDIA_JOB_ATTEMPTS,
            backoff_delay=settings.MEDIA_JOB_BACKOFF_SECONDS,
            keep_completed=settings.MEDIA_QUEUE_KEEP_COMPLETED,
            keep_failed=settings.MEDIA_QUEUE_KEEP_FAILED,
        )

    @classmethod
    def from_dict(cls, data: dict | None) -> "JobOptions":
        if not data:
            return cls.from_settings()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def as_dict(self) -> dict:
        return asdict(self)

    def delay_for(self, attempt: int) -> float:
        """Countdown before the attempt that follows ``attempt`` (1-based)."""
        return self.backoff_delay * (2 ** (attempt - 1))


@dataclass
class QueueStatus:
    state: str  # pending | processing | completed | failed
    progress: int = 0
    result: Any = None
    error: str | None = None


class JobQueue(Protocol):
    def enqueue(self, job_name: str, payload: dict, options: JobOptions | None = None) -> str: ...

    def get_status(self, job_id: str) -> QueueStatus: ...


# Celery task states -> the outward pending/processing/completed/failed view
_CELERY_STATES = {
    "PENDING": "pending",
    "RECEIVED": "pending",
    "RETRY": "pending",
    "STARTED": "processing",
    "PROGRESS": "processing",
    "SUCCESS": "completed",
    "FAILURE": "failed",
    "REVOKED": "failed",
}


class CeleryJobQueue:
    def __init__(self, app=None, default_options: JobOptions | None = None):
        if app is None:
            from mediahub.celery import celery_app as app
        self.app = app
        self.default_options = default_options or JobOptions.from_settings()

    def enqueue(self, job_name: str, payload: dict, options: JobOptions | None = None) -> str:
        opts = options or self.default_options
        try:
            result = self.app.send_task(job_name, kwargs={"payload": payload, "options": opts.as_dict()})
        except (OperationalError, redis.RedisError, ConnectionError) as exc:
            raise QueueUnavailable(f"could not enqueue {job_name}: {exc}") from exc
        return result.id

    def get_status(self, job_id: str) -> QueueStatus:
        result = self.app.AsyncResult(job_id)
        try:
            celery_state = result.state
            info = result.info
        except (OperationalError, redis.RedisError, ConnectionError) as exc:
            raise QueueUnavailable(f"could not read status of {job_id}: {exc}") from exc

        state = _CELERY_STATES.get(celery_state, "pending")
        if state == "completed":
            return QueueStatus(state=state, progress=100, result=info)
        if state == "failed":
            return QueueStatus(state=state, error=str(info) if info else "failed")
        progress = int(info.get("progress", 0)) if isinstance(info, dict) else 0
        return QueueStatus(state=state, progress=progress)


def get_job_queue() -> JobQueue:
    return CeleryJobQueue()


class QueueRetention:
    """
    Caps how many finished task ids the queue remembers per outcome.

    Finished ids are pushed onto a Redis list per outcome; once a list grows
    past its cap the overflow ids are dropped and their stored results forgotten.
    """

    KEY = "mediajobs:queue:{outcome}"

    def __init__(self, client, options: JobOptions, app=None):
        if app is None:
            from mediahub.celery import celery_app as app
        self.client = client
        self.options = options
        self.app = app

    def limit_for(self, outcome: str) -> int:
        return self.options.keep_completed if outcome == "completed" else self.options.keep_failed

    def record(self, task_id: str, outcome: str) -> int:
        key = self.KEY.format(outcome=outcome)
        limit = self.limit_for(outcome)
        pipe = self.client.pipeline()
        pipe.lpush(key, task_id)
        pipe.lrange(key, limit, -1)
        pipe.ltrim(key, 0, limit - 1)
        _, evicted, _ = pipe.execute()
        for old_id in evicted:
            if isinstance(old_id, bytes):
                old_id = old_id.decode()
            self.app.AsyncResult(old_id).forget()
        return len(evicted)


@lru_cache(maxsize=1)
def _retention() -> QueueRetention | None:
    url = settings.CELERY_RESULT_BACKEND or ""
    if not url.startswith(("redis://", "rediss://")):
        return None
    return QueueRetention(redis.Redis.from_url(url), JobOptions.from_settings())


def _record_outcome(task_id: str | None, outcome: str):
    retention = _retention()
    if retention is None or not task_id:
        return
    try:
        retention.record(task_id, outcome)
    except redis.RedisError as exc:
        logger.warning("Queue retention bookkeeping failed for %s: %s", task_id, exc)


@task_success.connect
def _on_task_success(sender=None, **kwargs):
    if getattr(sender, "name", None) == TRANSCODE_JOB and not sender.request.is_eager:
        _record_outcome(sender.request.id, "completed")


@task_failure.connect
def _on_task_failure(sender=None, task_id=None, **kwargs):
    if getattr(sender, "name", None) == TRANSCODE_JOB and not sender.request.is_eager:
        _record_outcome(task_id, "failed")
