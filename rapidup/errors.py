"""
Error taxonomy for rapidup.

Only ValidationError stops a job from starting. Every TransferError is caught
at the single-file boundary and turned into a failed UploadResult.
"""
from typing import Optional


class UploadError(Exception):
    """Base class for all rapidup errors."""


class ConfigError(UploadError):
    """Raised when configuration values cannot be parsed."""


class ValidationError(UploadError):
    """Raised by pre-flight validation; no network activity has happened."""

    def __init__(self, constraint: str, message: str):
        super().__init__(message)
        self.constraint = constraint
        self.message = message


class TransferError(UploadError):
    """Attempt-level failure of a single file transfer."""

    retryable = False


class NetworkError(TransferError):
    """Connection-level failure, no response received."""

    retryable = True


class HttpError(TransferError):
    """Response received but it does not declare success."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(HttpError):
    """Success status with a body that could not be parsed."""


class UploadTimeoutError(TransferError):
    """Attempt exceeded its wall clock ceiling."""


class UploadCancelledError(TransferError):
    """Transfer aborted by an external cancellation signal."""


class IntegrityMismatch(UploadError):
    """Local and remote digests differ. Logged, never fatal."""

    def __init__(self, filename: str, detail: str):
        super().__init__(f"{filename}: {detail}")
        self.filename = filename
        self.detail = detail
