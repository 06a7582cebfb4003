"""Orchestrator package - validation, transfer state machine and scheduling."""
from .core import UploadOrchestrator
from .models import JobOutcome, JobResult, TransferAttempt, TransferState, UploadJob
from .progress import JobProgress, ProgressAggregator
from .scheduler import UploadScheduler
from .transfer import SingleFileTransfer
from .validation import validate_files

__all__ = [
    "UploadOrchestrator",
    "UploadScheduler",
    "SingleFileTransfer",
    "ProgressAggregator",
    "JobProgress",
    "UploadJob",
    "JobResult",
    "JobOutcome",
    "TransferAttempt",
    "TransferState",
    "validate_files",
]
