"""
Reconciliation between MediaJob rows and the posts that use their output.

Both sweeps are safe to re-run and to run concurrently: linking only selects
unlinked jobs and only links when the job is still unlinked; metadata is only
ever written into post fields that are still null.
"""
import logging

from django.utils import timezone

from posts.models import Post

from . import jobs
from .models import MediaJob

logger = logging.getLogger(__name__)

# Post field <- MediaJob field
POST_MEDIA_FIELDS = (
    ("media_duration_seconds", "duration_seconds"),
    ("media_width", "width"),
    ("media_height", "height"),
)


def fill_missing_post_media(post_id, job: MediaJob) -> list[str]:
    """Copy job output onto the post's null media fields. Returns the fields written."""
    filled = []
    for post_field, job_field in POST_MEDIA_FIELDS:
        value = getattr(job, job_field)
        if value is None:
            continue
        written = Post.objects.filter(pk=post_id, **{f"{post_field}__isnull": True}).update(
            **{post_field: value, "updated_at": timezone.now()}
        )
        if written:
            filled.append(post_field)
    return filled


def _post_is_missing_media(post: Post) -> bool:
    return any(getattr(post, post_field) is None for post_field, _ in POST_MEDIA_FIELDS)


def link_orphan_jobs() -> dict:
    orphans = MediaJob.objects.filter(
        state=MediaJob.State.COMPLETED,
        post__isnull=True,
        output_url__isnull=False,
    ).order_by("created_at")

    linked = updated = not_found = 0
    for job in orphans.iterator():
        post = Post.objects.filter(media_url=job.output_url).order_by("created_at").first()
        if post is None:
            not_found += 1
            logger.debug("No post uses the output of MediaJob %s", job.id)
            continue
        if not jobs.link_post(job.id, post.pk):
            continue  # linked by a concurrent run
        linked += 1
        if fill_missing_post_media(post.pk, job):
            updated += 1
        logger.info("Linked MediaJob %s to post %s", job.id, post.pk)

    logger.info("Orphan linking: %s linked, %s posts updated, %s without a post", linked, updated, not_found)
    return {"linkedCount": linked, "updatedCount": updated, "notFoundCount": not_found}


def backfill_post_metadata() -> dict:
    linked_jobs = MediaJob.objects.filter(
        state=MediaJob.State.COMPLETED,
        post__isnull=False,
    ).select_related("post").order_by("created_at")

    updated = skipped = 0
    for job in linked_jobs.iterator():
        if not _post_is_missing_media(job.post) or not fill_missing_post_media(job.post_id, job):
            skipped += 1
            continue
        updated += 1

    logger.info("Metadata backfill: %s posts updated, %s skipped", updated, skipped)
    return {"updatedCount": updated, "skippedCount": skipped}
