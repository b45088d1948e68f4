"""
Scheduled drops: posts and albums that go public at ``scheduled_for``.
"""
import logging

from django.utils import timezone

from .models import Album, DropStatus, Post

logger = logging.getLogger(__name__)


def _scheduled(model):
    return model.objects.filter(status=DropStatus.SCHEDULED, scheduled_for__isnull=False)


def publish_due_drops(now=None) -> dict:
    """
    Publish every scheduled post and album whose time has come.

    One conditional bulk update per table: a row already published by an
    overlapping run no longer matches and is not counted twice.
    """
    now = now or timezone.now()
    changes = {"status": DropStatus.PUBLISHED, "dropped_at": now, "updated_at": now}

    posts = _scheduled(Post).filter(scheduled_for__lte=now).update(**changes)
    albums = _scheduled(Album).filter(scheduled_for__lte=now).update(**changes)

    if posts or albums:
        logger.info("Published %s post drop(s) and %s album drop(s)", posts, albums)
    return {"publishedPosts": posts, "publishedAlbums": albums, "timestamp": now.isoformat()}


def drop_status(now=None) -> dict:
    now = now or timezone.now()
    return {
        "pending": {
            "posts": _scheduled(Post).count(),
            "albums": _scheduled(Album).count(),
        },
        "dueNow": {
            "posts": _scheduled(Post).filter(scheduled_for__lte=now).count(),
            "albums": _scheduled(Album).filter(scheduled_for__lte=now).count(),
        },
        "checkedAt": now.isoformat(),
    }
