"""Core orchestrator - wires the HTTP client, scheduler and notifier."""
from pathlib import Path
from typing import Iterable, Optional

from ..models import UploadConfig
from ..protocols import INotifier, IUploadClient
from ..services.api_client import HTTPUploadClient
from .file_collector import FileCollector
from .models import JobResult, UploadJob
from .scheduler import UploadScheduler


class UploadOrchestrator:
    """
    Entry point for uploading files to the remote endpoint.

    Usage:
        async with UploadOrchestrator(config, notifier=display) as uploader:
            result = await uploader.upload_files([Path("a.bin"), Path("b.bin")])
            print(result.summary)

        # With a custom transport client (must implement IUploadClient)
        async with UploadOrchestrator(config, client=my_client) as uploader:
            ...
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        notifier: Optional[INotifier] = None,
        client: Optional[IUploadClient] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration (defaults to UploadConfig())
            notifier: Receives progress and results
            client: Pre-built transport client; an HTTPUploadClient is created otherwise
        """
        self._config = config or UploadConfig()
        self._notifier = notifier
        self._external_client = client

        # Initialized in __aenter__
        self._http_client: Optional[HTTPUploadClient] = None
        self._scheduler: Optional[UploadScheduler] = None
        self._current_job: Optional[UploadJob] = None

    async def __aenter__(self):
        """Open the HTTP client and build the scheduler."""
        if self._external_client is not None:
            client = self._external_client
        else:
            self._http_client = HTTPUploadClient(
                self._config.endpoint_url,
                connect_timeout=self._config.connect_timeout,
            )
            client = await self._http_client.__aenter__()

        self._scheduler = UploadScheduler(client, self._config, notifier=self._notifier)
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._http_client:
            await self._http_client.__aexit__(*args)
            self._http_client = None

    @property
    def scheduler(self) -> UploadScheduler:
        if self._scheduler is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return self._scheduler

    @property
    def current_job(self) -> Optional[UploadJob]:
        return self._current_job

    async def upload_job(self, job: UploadJob) -> JobResult:
        """Submit a prepared job and wait for it to settle."""
        self._current_job = job
        try:
            return await self.scheduler.submit(job)
        finally:
            self._current_job = None

    async def upload_files(self, paths: Iterable[Path]) -> JobResult:
        """Upload files (folders expand recursively) as one sequential job."""
        return await self.upload_job(UploadJob.of(FileCollector.collect(paths)))

    def cancel(self) -> bool:
        """Cancel the job currently running, if any."""
        if self._current_job is None or self._scheduler is None:
            return False
        return self._scheduler.cancel(self._current_job)
