import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from . import s3
from .models import PendingMediaDeletion

logger = logging.getLogger(__name__)


def schedule_media_deletion(keys, *, grace: timedelta | None = None, now=None) -> int:
    """Queue storage keys for removal once the grace period is over."""
    now = now or timezone.now()
    grace = grace if grace is not None else timedelta(days=settings.MEDIA_DELETION_GRACE_DAYS)
    rows = [PendingMediaDeletion(storage_key=key, scheduled_for=now + grace) for key in keys if key]
    PendingMediaDeletion.objects.bulk_create(rows)
    return len(rows)


def sweep_pending_deletions(*, delete=None, now=None, batch_size: int | None = None) -> dict:
    """
    Delete up to one batch of due storage keys, earliest first.

    A key the store reports as missing is already gone and counts as deleted.
    Any other failure keeps the row for the next run and is reported; it never
    stops the rest of the batch.
    """
    delete = delete or s3.delete_object
    now = now or timezone.now()
    batch_size = batch_size or settings.MEDIA_DELETION_BATCH_SIZE

    due = PendingMediaDeletion.objects.filter(scheduled_for__lte=now)
    batch = list(due.order_by("scheduled_for", "id")[:batch_size])

    deleted = 0
    errors = []
    for row in batch:
        try:
            delete(row.storage_key)
        except Exception as exc:
            if not s3.is_not_found(exc):
                logger.warning("Failed to delete media %s: %s", row.storage_key, exc)
                errors.append({"key": row.storage_key, "error": str(exc)})
                continue
        PendingMediaDeletion.objects.filter(pk=row.pk).delete()
        deleted += 1

    remaining = due.count()
    logger.info("Media cleanup: %s deleted, %s failed, %s still due", deleted, len(errors), remaining)
    return {"deletedCount": deleted, "errors": errors, "remainingCount": remaining}
