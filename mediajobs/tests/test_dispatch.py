from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from mediajobs import jobs
from mediajobs.dispatch import dispatch_job, redispatch_stale_jobs
from mediajobs.exceptions import InvalidTransition
from mediajobs.models import MediaJob
from mediajobs.queue import TRANSCODE_JOB

from .fakes import InMemoryJobQueue, make_job, make_user

NOTHING_DONE = {"redispatchedCount": 0, "releasedCount": 0, "timedOutCount": 0, "errors": []}


def age(job, minutes, *fields):
    then = timezone.now() - timedelta(minutes=minutes)
    MediaJob.objects.filter(pk=job.pk).update(**{name: then for name in fields or ("created_at", "updated_at")})


class DispatchTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.queue = InMemoryJobQueue()

    def stale_job(self, minutes=20, **fields):
        job = make_job(self.user, **fields)
        age(job, minutes)
        return job

    def test_dispatch_records_task_id(self):
        job = make_job(self.user)

        self.assertEqual(dispatch_job(job, self.queue), "task-1")

        job.refresh_from_db()
        self.assertEqual(job.queue_task_id, "task-1")
        self.assertEqual(self.queue.enqueued, [(TRANSCODE_JOB, {"jobId": str(job.id), "attempt": 1}, None)])

    def test_dispatch_failure_is_swallowed(self):
        job = make_job(self.user)

        with self.assertLogs("mediajobs.dispatch", level="ERROR") as logs:
            self.assertIsNone(dispatch_job(job, InMemoryJobQueue(fail=True)))

        self.assertIn(str(job.id), logs.output[0])
        job.refresh_from_db()
        self.assertIsNone(job.queue_task_id)

    def test_redispatches_undispatched_stale_jobs(self):
        stale = self.stale_job()
        self.stale_job(queue_task_id="already-queued")
        make_job(self.user)  # too recent
        self.stale_job(state=MediaJob.State.FAILED)

        result = redispatch_stale_jobs(self.queue)

        self.assertEqual(result, {**NOTHING_DONE, "redispatchedCount": 1})
        self.assertEqual(self.queue.enqueued, [(TRANSCODE_JOB, {"jobId": str(stale.id), "attempt": 1}, None)])
        self.assertEqual(redispatch_stale_jobs(self.queue), NOTHING_DONE)

    def test_queue_still_down(self):
        stale = self.stale_job()

        result = redispatch_stale_jobs(InMemoryJobQueue(fail=True))

        self.assertEqual(result, {**NOTHING_DONE, "errors": [{"jobId": str(stale.id), "error": "enqueue failed"}]})

    def test_retry_that_never_reached_the_queue(self):
        job = make_job(self.user, queue_task_id="task-0")
        jobs.start_processing(job.id, 1)
        jobs.mark_retrying(job.id, "RuntimeError: ffmpeg exited with status 1")
        age(job, 60, "created_at")

        self.assertEqual(redispatch_stale_jobs(self.queue), NOTHING_DONE)

        age(job, 20, "updated_at")
        result = redispatch_stale_jobs(self.queue)

        self.assertEqual(result["redispatchedCount"], 1)
        self.assertEqual(self.queue.enqueued, [(TRANSCODE_JOB, {"jobId": str(job.id), "attempt": 2}, None)])
        job.refresh_from_db()
        self.assertEqual(job.queue_task_id, "task-1")


class StalledProcessingTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.queue = InMemoryJobQueue()

    def stalled_job(self, attempt, minutes=30):
        job = make_job(self.user, state=MediaJob.State.PROCESSING, attempt_count=attempt, progress=70,
                       queue_task_id="task-0")
        age(job, minutes)
        return job

    def test_reset_and_redispatched_with_next_attempt(self):
        job = self.stalled_job(attempt=1)

        with self.assertLogs("mediajobs.dispatch", level="WARNING"):
            result = redispatch_stale_jobs(self.queue)

        self.assertEqual(result, {**NOTHING_DONE, "redispatchedCount": 1, "releasedCount": 1})
        self.assertEqual(self.queue.enqueued, [(TRANSCODE_JOB, {"jobId": str(job.id), "attempt": 2}, None)])
        job.refresh_from_db()
        self.assertEqual(job.state, MediaJob.State.PENDING)
        self.assertEqual(job.progress, 0)
        self.assertEqual(job.error, "Job timed out and was reset")
        self.assertEqual(job.queue_task_id, "task-1")

    def test_failed_once_attempts_are_spent(self):
        job = self.stalled_job(attempt=3)

        result = redispatch_stale_jobs(self.queue, max_attempts=3)

        self.assertEqual(result, {**NOTHING_DONE, "timedOutCount": 1})
        self.assertEqual(self.queue.enqueued, [])
        job.refresh_from_db()
        self.assertEqual(job.state, MediaJob.State.FAILED)
        self.assertEqual(job.error, "Job timed out after 3 attempt(s)")
        self.assertIsNone(job.output_url)

    def test_job_still_reporting_is_left_alone(self):
        job = self.stalled_job(attempt=1, minutes=5)

        self.assertEqual(redispatch_stale_jobs(self.queue), NOTHING_DONE)

        job.refresh_from_db()
        self.assertEqual(job.state, MediaJob.State.PROCESSING)
        self.assertEqual(job.progress, 70)

    def test_release_needs_the_job_to_still_be_silent(self):
        job = self.stalled_job(attempt=1)
        cutoff = timezone.now() - timedelta(minutes=20)
        jobs.report_progress(job.id, 80)

        with self.assertRaises(InvalidTransition):
            jobs.release_stalled(job.id, cutoff)

        job.refresh_from_db()
        self.assertEqual(job.state, MediaJob.State.PROCESSING)

    def test_worker_killed_after_hard_time_limit_is_recovered(self):
        job = make_job(self.user)
        jobs.start_processing(job.id, 1)
        jobs.report_progress(job.id, 30)
        # the process is gone here; nothing ever reports again
        later = timezone.now() + timedelta(minutes=21)

        result = redispatch_stale_jobs(self.queue, now=later)

        self.assertEqual(result["releasedCount"], 1)
        self.assertEqual(self.queue.enqueued[0][1], {"jobId": str(job.id), "attempt": 2})
