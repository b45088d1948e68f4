from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone

from mediajobs.cleanup import schedule_media_deletion, sweep_pending_deletions
from mediajobs.models import PendingMediaDeletion

from .fakes import FakeStorage


class SweepPendingDeletionsTests(TestCase):

    def setUp(self):
        self.now = timezone.now()
        self.storage = FakeStorage()

    def add(self, key, days_ago=1):
        return PendingMediaDeletion.objects.create(storage_key=key, scheduled_for=self.now - timedelta(days=days_ago))

    def sweep(self, storage=None):
        return sweep_pending_deletions(delete=(storage or self.storage).delete, now=self.now)

    def test_deletes_due_keys_only(self):
        self.add("video/1/a.mp4")
        PendingMediaDeletion.objects.create(storage_key="video/1/later.mp4", scheduled_for=self.now + timedelta(days=1))

        result = self.sweep()

        self.assertEqual(result, {"deletedCount": 1, "errors": [], "remainingCount": 0})
        self.assertEqual(self.storage.deleted, ["video/1/a.mp4"])
        self.assertEqual(list(PendingMediaDeletion.objects.values_list("storage_key", flat=True)), ["video/1/later.mp4"])

    def test_batches_of_fifty_earliest_first(self):
        for i in range(120):
            self.add(f"k-{i:03d}", days_ago=200 - i)

        self.assertEqual(self.sweep()["remainingCount"], 70)
        self.assertEqual(self.storage.deleted[0], "k-000")
        self.assertEqual(self.storage.deleted[-1], "k-049")
        self.assertEqual(self.sweep()["remainingCount"], 20)

        result = self.sweep()
        self.assertEqual((result["deletedCount"], result["remainingCount"]), (20, 0))

    def test_missing_key_counts_as_deleted(self):
        self.add("gone.mp4")
        result = self.sweep(FakeStorage(missing={"gone.mp4"}))

        self.assertEqual(result["deletedCount"], 1)
        self.assertFalse(PendingMediaDeletion.objects.exists())

    def test_not_found_message_counts_as_deleted(self):
        self.add("gone.mp4")

        def delete(key):
            raise RuntimeError("object not found")

        result = sweep_pending_deletions(delete=delete, now=self.now)
        self.assertEqual(result["deletedCount"], 1)

    def test_other_errors_keep_the_row(self):
        self.add("locked.mp4", days_ago=2)
        self.add("ok.mp4")

        result = self.sweep(FakeStorage(broken={"locked.mp4"}))

        self.assertEqual(result["deletedCount"], 1)
        self.assertEqual(result["remainingCount"], 1)
        self.assertEqual(len(result["errors"]), 1)
        self.assertEqual(result["errors"][0]["key"], "locked.mp4")
        self.assertIn("AccessDenied", result["errors"][0]["error"])
        self.assertTrue(PendingMediaDeletion.objects.filter(storage_key="locked.mp4").exists())

    @override_settings(MEDIA_DELETION_BATCH_SIZE=2)
    def test_batch_size_setting(self):
        for key in ("a", "b", "c"):
            self.add(key)
        self.assertEqual(self.sweep()["remainingCount"], 1)

    def test_defaults_to_object_store(self):
        self.add("video/1/a.mp4")
        with patch("mediajobs.s3.delete_object") as delete_object:
            sweep_pending_deletions(now=self.now)
        delete_object.assert_called_once_with("video/1/a.mp4")


class ScheduleMediaDeletionTests(TestCase):

    def test_uses_grace_period(self):
        now = timezone.now()

        self.assertEqual(schedule_media_deletion(["raw/1/a.mov", "", "video/1/a.mp4"], now=now), 2)

        rows = PendingMediaDeletion.objects.all()
        self.assertEqual(sorted(r.storage_key for r in rows), ["raw/1/a.mov", "video/1/a.mp4"])
        self.assertTrue(all(r.scheduled_for == now + timedelta(days=7) for r in rows))
