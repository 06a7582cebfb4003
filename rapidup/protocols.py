"""
Protocols (Interfaces) for Dependency Inversion.

The core only pushes to an INotifier and only sends through an IUploadClient.
"""
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from .models import FileDescriptor, UploadResult, UploadStats


@runtime_checkable
class IUploadClient(Protocol):
    """Interface for the transport that carries one file per request."""

    @property
    def endpoint_url(self) -> str:
        ...

    async def send(
        self,
        descriptor: FileDescriptor,
        content: bytes,
        timestamp: int,
        progress_callback: Optional[Callable[[int, int], Union[None, Awaitable[None]]]] = None,
    ) -> Any:
        """Send the file; return an httpx-like response (status_code, json())."""
        ...


@runtime_checkable
class INotifier(Protocol):
    """
    Push-only interface to whatever displays progress.

    Methods may be plain functions or coroutines.
    """

    def on_progress(
        self,
        file_index: int,
        total_files: int,
        percent: float,
        bytes_loaded: int,
        bytes_total: int,
    ) -> Any:
        ...

    def on_file_settled(self, result: UploadResult) -> Any:
        ...

    def on_job_settled(self, stats: UploadStats, has_errors: bool, message: str) -> Any:
        ...

    def on_cancelled(self) -> Any:
        ...
