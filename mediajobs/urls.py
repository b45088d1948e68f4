from django.urls import path

from .views import (
    BackfillPostMetadataView,
    CleanupMediaView,
    FinalizeUploadView,
    JobDetailView,
    LinkOrphanJobsView,
    PresignUploadView,
    PublishDropsView,
    RedispatchStaleJobsView,
)

urlpatterns = [
    path("uploads/presign/", PresignUploadView.as_view(), name="uploads_presign"),
    path("uploads/finalize/", FinalizeUploadView.as_view(), name="uploads_finalize"),
    path("jobs/<uuid:job_id>/", JobDetailView.as_view(), name="job_detail"),
    path("cron/cleanup-media/", CleanupMediaView.as_view(), name="cron_cleanup_media"),
    path("cron/publish-drops/", PublishDropsView.as_view(), name="cron_publish_drops"),
    path("cron/link-orphan-jobs/", LinkOrphanJobsView.as_view(), name="cron_link_orphan_jobs"),
    path("cron/backfill-post-metadata/", BackfillPostMetadataView.as_view(), name="cron_backfill_post_metadata"),
    path("cron/redispatch-stale-jobs/", RedispatchStaleJobsView.as_view(), name="cron_redispatch_stale_jobs"),
]
