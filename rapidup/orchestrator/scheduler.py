"""Sequential job scheduler."""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Union

from ..errors import IntegrityMismatch
from ..models import FileDescriptor, UploadConfig, UploadResult, UploadStats
from ..protocols import INotifier, IUploadClient
from ..utils.events import EventEmitter, FileProgress
from ..utils.formatting import human_size
from .models import JobResult, UploadJob
from .progress import ProgressAggregator
from .transfer import SingleFileTransfer
from .validation import validate_files

logger = logging.getLogger(__name__)


class UploadScheduler:
    """
    Runs jobs file by file, strictly in submission order.

    A file's failure is recorded and the next file is still attempted. Only
    pre-flight validation can stop a job before it starts; only ``cancel``
    can stop it midway.

    Usage:
        scheduler = UploadScheduler(client, config, notifier=display)
        scheduler.on_file_settled(lambda result: print(result.filename))
        job = UploadJob.of(descriptors)
        result = await scheduler.submit(job)
        # from another task: scheduler.cancel(job)
    """

    def __init__(
        self,
        client: IUploadClient,
        config: Optional[UploadConfig] = None,
        notifier: Optional[INotifier] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._config = config or UploadConfig()
        self._sleep = sleep
        self._clock = clock
        self._events = EventEmitter()
        # job_id -> {attempt_id: transfer}; at most one entry per job is live
        self._active: Dict[str, Dict[str, SingleFileTransfer]] = {}
        self._cancelled: Set[str] = set()

        if notifier is not None:
            self.attach(notifier)

    @property
    def config(self) -> UploadConfig:
        return self._config

    def attach(self, notifier: INotifier) -> None:
        """Subscribe every notifier method that exists."""
        for event_name, method_name in (
            ("progress", "on_progress"),
            ("file_settled", "on_file_settled"),
            ("job_settled", "on_job_settled"),
            ("cancelled", "on_cancelled"),
        ):
            method = getattr(notifier, method_name, None)
            if callable(method):
                self._events.on(event_name, method)

    # Event subscription methods
    def on_file_start(self, callback: Callable[[int, int, FileDescriptor], Any]):
        """Called before a file is sent. Receives (file_index, total_files, descriptor)."""
        self._events.on("file_start", callback)

    def on_progress(self, callback: Callable[[int, int, float, int, int], Any]):
        """Called per throttled tick. Receives (file_index, total_files, percent, bytes_loaded, bytes_total)."""
        self._events.on("progress", callback)

    def on_job_progress(self, callback: Callable[[FileProgress], Any]):
        """Called per throttled tick with file and overall percentages."""
        self._events.on("job_progress", callback)

    def on_retry(self, callback: Callable[[int, int, float, str], Any]):
        """Called before a backoff. Receives (file_index, retry_number, delay, error)."""
        self._events.on("retry", callback)

    def on_integrity_mismatch(self, callback: Callable[[IntegrityMismatch], Any]):
        """Called when a successful upload fails its digest check. Receives IntegrityMismatch."""
        self._events.on("integrity_mismatch", callback)

    def on_file_settled(self, callback: Callable[[UploadResult], Any]):
        """Called when a file reaches a terminal state. Receives UploadResult."""
        self._events.on("file_settled", callback)

    def on_job_settled(self, callback: Callable[[UploadStats, bool, str], Any]):
        """Called once when every file settled. Receives (stats, has_errors, message)."""
        self._events.on("job_settled", callback)

    def on_cancelled(self, callback: Callable[[], Any]):
        """Called once when a job was cancelled."""
        self._events.on("cancelled", callback)

    def validate(self, files: Sequence[FileDescriptor]) -> None:
        validate_files(files, self._config)

    def has_active_uploads(self, job: Optional[Union[UploadJob, str]] = None) -> bool:
        if job is None:
            return any(self._active.values())
        return bool(self._active.get(self._job_id(job)))

    def cancel(self, job: Union[UploadJob, str]) -> bool:
        """
        Abort the job's in-flight transfer and stop iteration.

        Returns False if the job is not running.
        """
        job_id = self._job_id(job)
        registry = self._active.get(job_id)
        if registry is None:
            return False

        self._cancelled.add(job_id)
        logger.info(f"Cancelling {len(registry)} active uploads")
        for attempt_id, transfer in list(registry.items()):
            if transfer.cancel():
                logger.info(f"Cancelled upload: {attempt_id}")
        return True

    async def submit(self, job: UploadJob) -> JobResult:
        """
        Validate and run ``job``.

        Raises:
            ValidationError: the job was rejected, nothing was sent
            RuntimeError: the job is already running
        """
        if job.job_id in self._active:
            raise RuntimeError(f"Job {job.job_id} is already running")

        self.validate(job.files)

        total_files = len(job.files)
        stats = job.stats
        stats.total_files = total_files
        stats.total_bytes = job.total_bytes
        stats.uploaded_files = 0
        stats.failed_files = 0
        stats.uploaded_bytes = 0
        aggregator = ProgressAggregator(stats)

        registry: Dict[str, SingleFileTransfer] = {}
        self._active[job.job_id] = registry
        results: List[UploadResult] = []

        logger.info(f"Starting upload of {total_files} files ({human_size(stats.total_bytes)})")

        try:
            for index, descriptor in enumerate(job.files, start=1):
                if job.job_id in self._cancelled:
                    break

                transfer = self._build_transfer(descriptor, index, total_files, aggregator)
                attempt_id = f"upload_{index}_{job.job_id}"
                registry[attempt_id] = transfer

                try:
                    await self._events.emit("file_start", index, total_files, descriptor)
                    result = await transfer.run()
                finally:
                    registry.pop(attempt_id, None)

                results.append(result)
                if result.cancelled:
                    await self._events.emit("file_settled", result)
                    break

                aggregator.file_settled(result.success)
                if result.success:
                    logger.info(f"File {index}/{total_files}: {result.filename} - Status: SUCCESS")
                else:
                    logger.error(f"Failed to upload {result.filename}: {result.error}")
                await self._events.emit("file_settled", result)

            # a cancel that lands after every file settled does not change the outcome
            cancelled = len(results) < total_files or any(r.cancelled for r in results)
        finally:
            self._active.pop(job.job_id, None)
            self._cancelled.discard(job.job_id)

        job_result = JobResult(
            job_id=job.job_id,
            results=results,
            stats=aggregator.snapshot(),
            cancelled=cancelled,
        )

        if cancelled:
            logger.warning(job_result.summary)
            await self._events.emit("cancelled")
        else:
            if job_result.has_errors:
                logger.warning(job_result.summary)
            else:
                logger.info(job_result.summary)
            await self._events.emit(
                "job_settled", job_result.stats, job_result.has_errors, job_result.summary
            )

        return job_result

    def _build_transfer(
        self,
        descriptor: FileDescriptor,
        index: int,
        total_files: int,
        aggregator: ProgressAggregator,
    ) -> SingleFileTransfer:
        transfer = SingleFileTransfer(
            descriptor,
            self._client,
            self._config,
            file_index=index,
            total_files=total_files,
            sleep=self._sleep,
            clock=self._clock,
        )

        async def handle_tick(file_index: int, bytes_loaded: int, bytes_total: int):
            # The transport counts encoded body bytes; job totals count file bytes
            file_loaded = bytes_loaded * descriptor.size // bytes_total if bytes_total > 0 else 0
            progress = aggregator.update(file_index, file_loaded, descriptor.size)
            await self._events.emit(
                "progress",
                file_index,
                total_files,
                progress.file_percent,
                bytes_loaded,
                bytes_total,
            )
            if self._events.has_listeners("job_progress"):
                await self._events.emit(
                    "job_progress",
                    FileProgress(
                        filename=descriptor.name,
                        file_index=file_index,
                        total_files=total_files,
                        bytes_uploaded=file_loaded,
                        total_bytes=descriptor.size,
                        percent=progress.file_percent,
                        overall_percent=progress.overall_percent,
                    ),
                )

        async def handle_retry(file_index: int, retry_number: int, delay: float, error: str):
            await self._events.emit("retry", file_index, retry_number, delay, error)

        async def handle_mismatch(mismatch: IntegrityMismatch):
            await self._events.emit("integrity_mismatch", mismatch)

        transfer.on_tick(handle_tick)
        transfer.on_retry(handle_retry)
        transfer.on_integrity_mismatch(handle_mismatch)
        return transfer

    @staticmethod
    def _job_id(job: Union[UploadJob, str]) -> str:
        return job.job_id if isinstance(job, UploadJob) else str(job)
