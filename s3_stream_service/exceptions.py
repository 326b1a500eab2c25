class S3StreamError(Exception):
    """Base class for all errors raised by the write stream."""


class ObjectStoreError(S3StreamError):
    """Error reported by the object-store client."""


class TransientError(ObjectStoreError):
    """Network or timeout class failure, safe to retry."""


class PermanentError(ObjectStoreError):
    """Failure that will not go away on retry, e.g. payload rejected or session expired."""


class AuthError(PermanentError):
    """Credentials were rejected by the object store."""


class NotFoundError(PermanentError):
    """Bucket (or upload) does not exist."""


class UploadValidationError(PermanentError):
    """Object store refused to assemble the parts (gaps, wrong order, part too small)."""


class RetriesExhaustedError(PermanentError):
    """Transient failures kept happening until the attempt budget ran out."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class StateError(S3StreamError):
    """Operation invoked while the stream is in the wrong state."""


class SessionClosedError(StateError):
    """Upload session no longer accepts parts."""


class UploadCancelledError(S3StreamError):
    """Upload was cancelled by the caller."""


class CompletionError(S3StreamError):
    """Finalize call failed; the store may hold an incomplete upload."""


class AbortFailure(S3StreamError):
    """Abort call failed; the store may hold an orphaned incomplete upload."""

    def __init__(self, cause: BaseException, abort_error: BaseException) -> None:
        super().__init__(f"Failed to abort upload after: {cause!r}")
        self.cause = cause
        self.abort_error = abort_error
