"""In-memory stand-ins for the queue, object store and transcoder, plus row factories."""
from botocore.exceptions import ClientError
from django.contrib.auth import get_user_model

from mediajobs.exceptions import QueueUnavailable
from mediajobs.jobs import JobOutput
from mediajobs.models import MediaJob
from mediajobs.queue import QueueStatus
from posts.models import Post


class InMemoryJobQueue:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.enqueued = []
        self.statuses = {}

    def enqueue(self, job_name, payload, options=None):
        if self.fail:
            raise QueueUnavailable("queue is down")
        task_id = f"task-{len(self.enqueued) + 1}"
        self.enqueued.append((job_name, payload, options))
        self.statuses[task_id] = QueueStatus(state="pending")
        return task_id

    def get_status(self, job_id):
        return self.statuses.get(job_id, QueueStatus(state="pending"))


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "DeleteObject")


class FakeStorage:
    def __init__(self, missing=(), broken=()):
        self.missing = set(missing)
        self.broken = set(broken)
        self.deleted = []

    def delete(self, key):
        if key in self.broken:
            raise _client_error("AccessDenied")
        if key in self.missing:
            raise _client_error("NoSuchKey")
        self.deleted.append(key)


VIDEO_OUTPUT = JobOutput(
    output_url="http://cdn.test/media-local/video/1/clip.mp4",
    duration_seconds=12.5,
    width=1920,
    height=1080,
)

AUDIO_OUTPUT = JobOutput(
    output_url="http://cdn.test/media-local/audio/1/track.m4a",
    duration_seconds=95.0,
)


class FakeProcessor:
    """Fails the first ``failures`` calls with ``exc``, then returns ``output``."""

    def __init__(self, output=VIDEO_OUTPUT, failures=0, exc=None):
        self.output = output
        self.failures = failures
        self.exc = exc or RuntimeError("ffmpeg exited with status 1")
        self.calls = 0

    def __call__(self, job, report):
        self.calls += 1
        report(20)
        if self.calls <= self.failures:
            raise self.exc
        report(90)
        return self.output


def make_user(username="alice"):
    return get_user_model().objects.create_user(username=username, password="pw-123456")


def make_job(user, *, media_kind="video", state=MediaJob.State.PENDING, **fields):
    values = {
        "user": user,
        "user_tier": "free",
        "raw_file_url": f"http://cdn.test/media-local/raw/{user.pk}/input.mov",
        "raw_file_size": 4096,
        "media_kind": media_kind,
        "state": state,
    }
    values.update(fields)
    return MediaJob.objects.create(**values)


def make_completed_job(user, output: JobOutput = VIDEO_OUTPUT, *, media_kind="video", **fields):
    return make_job(
        user,
        media_kind=media_kind,
        state=MediaJob.State.COMPLETED,
        progress=100,
        **output.fields_for(media_kind),
        **fields,
    )


def make_post(author, media_url="", **fields):
    return Post.objects.create(author=author, content_type="video", media_url=media_url, **fields)
