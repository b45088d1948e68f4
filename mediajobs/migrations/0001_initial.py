import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models
from django.db.models import Q


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("posts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PendingMediaDeletion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("storage_key", models.CharField(max_length=1024)),
                ("scheduled_for", models.DateTimeField(db_index=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["scheduled_for"],
            },
        ),
        migrations.CreateModel(
            name="MediaJob",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_tier", models.CharField(max_length=16)),
                ("raw_file_url", models.URLField(max_length=1024)),
                ("raw_file_size", models.PositiveBigIntegerField()),
                ("media_kind", models.CharField(choices=[("video", "Video"), ("audio", "Audio")], max_length=16)),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("progress", models.PositiveSmallIntegerField(default=0)),
                ("attempt_count", models.PositiveSmallIntegerField(default=0)),
                ("queue_task_id", models.CharField(blank=True, max_length=255, null=True)),
                ("error", models.TextField(blank=True, default="")),
                ("output_url", models.URLField(blank=True, max_length=1024, null=True)),
                ("duration_seconds", models.FloatField(blank=True, null=True)),
                ("width", models.PositiveIntegerField(blank=True, null=True)),
                ("height", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "post",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="media_jobs",
                        to="posts.post",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="media_jobs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["state", "post"], name="mediajob_state_post_idx"),
                    models.Index(fields=["state", "created_at"], name="mediajob_state_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=Q(progress__lte=100), name="mediajob_progress_range"),
                    models.CheckConstraint(
                        condition=(
                            (
                                ~Q(state="completed")
                                & Q(
                                    output_url__isnull=True,
                                    duration_seconds__isnull=True,
                                    width__isnull=True,
                                    height__isnull=True,
                                )
                            )
                            | (
                                Q(state="completed", media_kind="video")
                                & Q(
                                    output_url__isnull=False,
                                    duration_seconds__isnull=False,
                                    width__isnull=False,
                                    height__isnull=False,
                                )
                            )
                            | (
                                Q(state="completed", media_kind="audio")
                                & Q(
                                    output_url__isnull=False,
                                    duration_seconds__isnull=False,
                                    width__isnull=True,
                                    height__isnull=True,
                                )
                            )
                        ),
                        name="mediajob_output_matches_state",
                    ),
                ],
            },
        ),
    ]
