"""Errors raised by the outfit-scan workflow and the post store."""


class ScanError(Exception):
    pass


class ScanServiceError(ScanError):
    """The scan service could not be reached or returned undecodable data."""


class ScanTimeoutError(ScanError):
    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"scan timed out (job {job_id} still pending after {attempts} attempts)")
        self.job_id = job_id
        self.attempts = attempts


class ScanCancelledError(ScanError):
    pass


class ScanCacheWriteError(ScanError):
    """Normalized results could not be saved on the post."""


class ScanInProgressError(ScanError):
    def __init__(self, post_id: str):
        super().__init__(f"a scan is already queued or running for post {post_id}")
        self.post_id = post_id


class PostNotFoundError(Exception):
    def __init__(self, post_id: str):
        super().__init__(f"post {post_id} not found")
        self.post_id = post_id


class ImageRejectedError(Exception):
    """An uploaded post image was refused; ``status_code`` is the HTTP answer."""

    status_code = 400


class ImageTooLargeError(ImageRejectedError):
    status_code = 413


class InvalidImageError(ImageRejectedError):
    status_code = 400


class UnsupportedImageError(ImageRejectedError):
    status_code = 415
