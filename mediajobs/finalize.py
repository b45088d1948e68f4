"""
Upload finalization: decide what happens to a file that is already in the bucket.

Images and panoramas are usable as uploaded, so the caller gets the public URL
back. Video and audio need transcoding first: a MediaJob is created and the
transcode task is queued without waiting for a worker.
"""
import enum
import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from . import jobs, s3
from .dispatch import dispatch_job
from .exceptions import UploadRejected
from .models import MediaKind
from .queue import JobQueue

logger = logging.getLogger(__name__)


class Handling(enum.Enum):
    IMMEDIATE = "immediate"
    TRANSCODE = "transcode"


HANDLING = {
    MediaKind.IMAGE: Handling.IMMEDIATE,
    MediaKind.PANORAMA: Handling.IMMEDIATE,
    MediaKind.VIDEO: Handling.TRANSCODE,
    MediaKind.AUDIO: Handling.TRANSCODE,
}

_unrouted = [kind.value for kind in MediaKind if kind not in HANDLING]
if _unrouted:
    raise ImproperlyConfigured(f"No finalize handling defined for media kinds: {_unrouted}")


@dataclass(frozen=True)
class FinalizeResult:
    url: str | None = None
    job_id: str | None = None

    def as_response(self) -> dict:
        if self.job_id is not None:
            return {"jobId": self.job_id, "status": "processing"}
        return {"url": self.url}


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes // (1024 * 1024)}MB"
    return f"{num_bytes // 1024}KB"


def parse_kind(raw) -> MediaKind:
    try:
        return MediaKind(raw)
    except ValueError:
        raise UploadRejected(f"Invalid media type: {raw}")


def check_size(tier: str, kind: MediaKind, file_size: int):
    limits = settings.MEDIA_UPLOAD_LIMITS.get(tier) or settings.MEDIA_UPLOAD_LIMITS[settings.MEDIA_DEFAULT_TIER]
    max_size = limits.get(kind.value, 0)
    if max_size == 0:
        raise UploadRejected(f"{kind.value} uploads are not available for your tier", status_code=403)
    if file_size > max_size:
        raise UploadRejected(f"File too large. Max size for {kind.value}: {_format_size(max_size)}")


def finalize_upload(*, key: str, media_kind: str, file_size: int, user, tier: str, queue: JobQueue) -> FinalizeResult:
    if not key or not media_kind:
        raise UploadRejected("Missing required fields: key, mediaKind")
    kind = parse_kind(media_kind)
    if file_size is None or int(file_size) < 0:
        raise UploadRejected("fileSize must be a non-negative integer")
    file_size = int(file_size)
    check_size(tier, kind, file_size)

    handling = HANDLING[kind]
    if handling is Handling.IMMEDIATE:
        return FinalizeResult(url=s3.public_url(key))

    job = jobs.create_job(
        user=user,
        user_tier=tier,
        raw_file_url=s3.public_url(key),
        raw_file_size=file_size,
        media_kind=kind.value,
    )
    dispatch_job(job, queue)
    return FinalizeResult(job_id=str(job.id))
