"""
Models for rapidup.

Immutable dataclasses for descriptors, results and configuration; UploadStats
is the one mutable record and is owned by the scheduler.
"""
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

KB = 1024
MB = 1024 * KB
GB = 1024 * MB


class UploadStatus(Enum):
    """Per-file upload outcome."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FileDescriptor:
    """A file to send: name, byte length and an opaque content source."""
    name: str
    size: int
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Path, name: Optional[str] = None) -> "FileDescriptor":
        path = Path(path)
        return cls(name=name or path.name, size=path.stat().st_size, path=path)

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> "FileDescriptor":
        return cls(name=name, size=len(data), data=bytes(data))

    def read(self) -> bytes:
        """Read the whole content. Blocking for path-backed descriptors."""
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"FileDescriptor {self.name!r} has no content source")
        return self.path.read_bytes()


@dataclass
class UploadStats:
    """Running statistics for one job."""
    total_files: int = 0
    uploaded_files: int = 0
    failed_files: int = 0
    total_bytes: int = 0
    uploaded_bytes: int = 0

    @property
    def settled_files(self) -> int:
        return self.uploaded_files + self.failed_files

    def copy(self) -> "UploadStats":
        return replace(self)

    def as_dict(self) -> Dict[str, int]:
        return {
            "total_files": self.total_files,
            "uploaded_files": self.uploaded_files,
            "failed_files": self.failed_files,
            "total_bytes": self.total_bytes,
            "uploaded_bytes": self.uploaded_bytes,
        }


@dataclass(frozen=True)
class IntegrityResult:
    """Outcome of comparing a local digest with the remote one."""
    verified: bool
    detail: Optional[str] = None
    local_digest: Optional[str] = None
    remote_digest: Optional[str] = None

    @classmethod
    def ok(cls, digest: str) -> "IntegrityResult":
        return cls(verified=True, local_digest=digest, remote_digest=digest)

    @classmethod
    def mismatch(
        cls,
        detail: str,
        local_digest: Optional[str] = None,
        remote_digest: Optional[str] = None,
    ) -> "IntegrityResult":
        return cls(
            verified=False,
            detail=detail,
            local_digest=local_digest,
            remote_digest=remote_digest,
        )


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of one file's transfer."""
    filename: str
    status: UploadStatus = UploadStatus.SUCCESS
    attempts: int = 1
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    integrity: Optional[IntegrityResult] = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.status == UploadStatus.CANCELLED

    @classmethod
    def ok(
        cls,
        filename: str,
        payload: Dict[str, Any],
        attempts: int = 1,
        integrity: Optional[IntegrityResult] = None,
    ):
        return cls(
            filename=filename,
            status=UploadStatus.SUCCESS,
            attempts=attempts,
            payload=payload,
            integrity=integrity,
        )

    @classmethod
    def fail(cls, filename: str, error: str, attempts: int = 1):
        return cls(
            filename=filename,
            status=UploadStatus.FAILED,
            attempts=attempts,
            error=error,
        )

    @classmethod
    def cancelled_result(cls, filename: str, attempts: int = 1):
        return cls(
            filename=filename,
            status=UploadStatus.CANCELLED,
            attempts=attempts,
            error="Upload cancelled",
        )


def _env_int(environ: Mapping[str, str], key: str) -> Optional[int]:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _env_float(environ: Mapping[str, str], key: str) -> Optional[float]:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def _env_bool(environ: Mapping[str, str], key: str) -> Optional[bool]:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration shared by every job."""
    endpoint_url: str = "http://127.0.0.1:8080/upload"
    # Pre-flight limits
    max_files: int = 50
    max_total_size: int = 1 * GB
    max_file_size: int = 100 * MB
    # Retry policy
    max_retries: int = 3
    retry_delay_base: float = 2.0  # seconds; retry r waits base * 2 ** (r - 1)
    upload_timeout: float = 10 * 60.0  # per attempt
    connect_timeout: float = 10.0
    # Progress
    progress_interval: float = 0.1
    large_file_threshold: int = 10 * MB
    progress_log_interval: int = 5  # percent
    verify_integrity: bool = True

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.retry_delay_base < 0:
            raise ConfigError("retry_delay_base must be >= 0")
        if self.upload_timeout <= 0:
            raise ConfigError("upload_timeout must be > 0")
        if self.progress_log_interval <= 0:
            raise ConfigError("progress_log_interval must be > 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry number ``retry_number`` (1-based)."""
        return self.retry_delay_base * (2 ** (retry_number - 1))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "UploadConfig":
        """Build config from RAPIDUP_* environment variables, then apply overrides."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        endpoint = env.get("RAPIDUP_ENDPOINT_URL")
        backend = env.get("RAPIDUP_BACKEND_URL")
        if endpoint:
            values["endpoint_url"] = endpoint
        elif backend:
            values["endpoint_url"] = backend.rstrip("/") + "/upload"

        for key, name in (
            ("RAPIDUP_MAX_FILES", "max_files"),
            ("RAPIDUP_MAX_TOTAL_SIZE", "max_total_size"),
            ("RAPIDUP_MAX_FILE_SIZE", "max_file_size"),
            ("RAPIDUP_MAX_RETRIES", "max_retries"),
        ):
            value = _env_int(env, key)
            if value is not None:
                values[name] = value

        for key, name in (
            ("RAPIDUP_RETRY_DELAY_BASE", "retry_delay_base"),
            ("RAPIDUP_UPLOAD_TIMEOUT", "upload_timeout"),
            ("RAPIDUP_PROGRESS_INTERVAL", "progress_interval"),
        ):
            value = _env_float(env, key)
            if value is not None:
                values[name] = value

        verify = _env_bool(env, "RAPIDUP_VERIFY_INTEGRITY")
        if verify is not None:
            values["verify_integrity"] = verify

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
