"""
rapidup - sequential file upload client with retries and integrity checks.

Files of a job are sent one at a time to an HTTP endpoint. Network errors
are retried with exponential backoff, HTTP errors and timeouts are not, and
each successful upload is checked against the digest the server reports.

Usage:
    from rapidup import UploadOrchestrator, UploadConfig

    config = UploadConfig(endpoint_url="http://127.0.0.1:8080/upload")
    async with UploadOrchestrator(config) as uploader:
        result = await uploader.upload_files([Path("report.pdf"), Path("photos/")])
        print(result.summary)

    # Lower level: drive the scheduler yourself
    async with HTTPUploadClient(config.endpoint_url) as client:
        scheduler = UploadScheduler(client, config, notifier=my_notifier)
        job = UploadJob.of([FileDescriptor.from_path(p) for p in paths])
        result = await scheduler.submit(job)
"""
from .errors import (
    ConfigError,
    HttpError,
    IntegrityMismatch,
    NetworkError,
    ParseError,
    TransferError,
    UploadCancelledError,
    UploadError,
    UploadTimeoutError,
    ValidationError,
)
from .models import (
    FileDescriptor,
    IntegrityResult,
    UploadConfig,
    UploadResult,
    UploadStats,
    UploadStatus,
)
from .orchestrator import (
    JobOutcome,
    JobResult,
    SingleFileTransfer,
    UploadJob,
    UploadOrchestrator,
    UploadScheduler,
)
from .services import HTTPUploadClient, digest, verify

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadScheduler",
    "SingleFileTransfer",
    "HTTPUploadClient",
    # Models
    "FileDescriptor",
    "UploadJob",
    "JobResult",
    "JobOutcome",
    "UploadResult",
    "UploadStatus",
    "UploadStats",
    "UploadConfig",
    "IntegrityResult",
    # Integrity
    "digest",
    "verify",
    # Errors
    "UploadError",
    "ConfigError",
    "ValidationError",
    "TransferError",
    "NetworkError",
    "HttpError",
    "ParseError",
    "UploadTimeoutError",
    "UploadCancelledError",
    "IntegrityMismatch",
]
