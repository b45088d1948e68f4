class MediaPipelineError(Exception):
    """Base class for everything the media pipeline raises on purpose."""


class UploadRejected(MediaPipelineError):
    """Finalize input failed validation. Nothing was persisted."""

    def __init__(self, detail: str, status_code: int = 400):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class QueueUnavailable(MediaPipelineError):
    """The queue backend refused or could not accept a task."""


class JobNotFound(MediaPipelineError):
    pass


class InvalidTransition(MediaPipelineError):
    def __init__(self, job_id, current: str, target: str):
        super().__init__(f"MediaJob {job_id}: cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


class IncompleteOutput(MediaPipelineError, ValueError):
    """A completion report is missing output fields its media kind requires."""


class MediaRejected(MediaPipelineError):
    """The worker refuses the file outright (e.g. too long for the tier). Not retried."""


class MediaJobFailed(MediaPipelineError):
    """Raised from the queue task so the queue records the attempt as failed."""
