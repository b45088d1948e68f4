from django.contrib import admin

from .models import Album, Post


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ("id", "author", "content_type", "status", "scheduled_for", "dropped_at")
    list_filter = ("status", "content_type")
    search_fields = ("id", "media_url")
    raw_id_fields = ("author",)


@admin.register(Album)
class AlbumAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "owner", "status", "scheduled_for", "dropped_at")
    list_filter = ("status",)
    raw_id_fields = ("owner",)
