"""Orchestrator data models."""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..models import FileDescriptor, UploadResult, UploadStats
from ..utils.formatting import plural


class TransferState(Enum):
    """Lifecycle state of a single-file transfer."""
    IDLE = "idle"
    SENDING = "sending"
    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    FAILED = "failed"  # network errors exhausted the retry ceiling

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    TransferState.SUCCESS,
    TransferState.HTTP_ERROR,
    TransferState.TIMEOUT,
    TransferState.CANCELLED,
    TransferState.FAILED,
})


@dataclass
class TransferAttempt:
    """One send of one file."""
    number: int = 0
    bytes_sent: int = 0
    state: TransferState = TransferState.IDLE
    last_error: Optional[str] = None

    def next(self) -> "TransferAttempt":
        return TransferAttempt(number=self.number + 1)


@dataclass
class UploadJob:
    """Ordered list of files submitted together."""
    files: Tuple[FileDescriptor, ...]
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    stats: UploadStats = field(default_factory=UploadStats)

    def __post_init__(self):
        self.files = tuple(self.files)

    @classmethod
    def of(cls, files: Sequence[FileDescriptor]) -> "UploadJob":
        return cls(files=tuple(files))

    @property
    def total_bytes(self) -> int:
        return sum(f.size for f in self.files)

    def __len__(self) -> int:
        return len(self.files)


class JobOutcome(Enum):
    """Categorized job outcome reported to the notifier."""
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


@dataclass
class JobResult:
    """Result of a settled or cancelled job."""
    job_id: str
    results: List[UploadResult]
    stats: UploadStats
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return self.stats.failed_files > 0

    @property
    def outcome(self) -> JobOutcome:
        if self.cancelled:
            return JobOutcome.CANCELLED
        if self.has_errors:
            return JobOutcome.PARTIAL
        return JobOutcome.ALL_SUCCEEDED

    @property
    def failures(self) -> List[UploadResult]:
        return [r for r in self.results if not r.success and not r.cancelled]

    @property
    def succeeded(self) -> List[UploadResult]:
        return [r for r in self.results if r.success]

    @property
    def summary(self) -> str:
        stats = self.stats
        if self.cancelled:
            return (
                f"Uploads cancelled. {stats.uploaded_files}/{stats.total_files} files "
                f"uploaded before cancellation."
            )
        if not self.has_errors:
            return f"Successfully uploaded {plural(stats.uploaded_files, 'file')}!"

        lines = [
            f"Uploaded {stats.uploaded_files}/{stats.total_files} files. "
            f"{stats.failed_files} uploads failed."
        ]
        for failure in self.failures:
            lines.append(f"  {failure.filename}: {failure.error}")
        return "\n".join(lines)
