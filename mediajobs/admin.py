from django.contrib import admin

from .models import MediaJob, PendingMediaDeletion


@admin.register(MediaJob)
class MediaJobAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "media_kind", "state", "progress", "attempt_count", "post", "created_at")
    list_filter = ("state", "media_kind", "user_tier")
    search_fields = ("id", "raw_file_url", "output_url", "queue_task_id")
    readonly_fields = ("queue_task_id", "created_at", "updated_at", "processed_at")
    raw_id_fields = ("user", "post")


@admin.register(PendingMediaDeletion)
class PendingMediaDeletionAdmin(admin.ModelAdmin):
    list_display = ("storage_key", "scheduled_for", "created_at")
    search_fields = ("storage_key",)
    date_hierarchy = "scheduled_for"
