from django.apps import AppConfig


class MediaJobsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "mediajobs"
    verbose_name = "Media jobs"

    def ready(self):
        from . import queue  # noqa: F401  connects the queue retention signal handlers
