"""Single file transfer state machine."""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import (
    HttpError,
    IntegrityMismatch,
    NetworkError,
    ParseError,
    TransferError,
    UploadCancelledError,
    UploadTimeoutError,
)
from ..models import FileDescriptor, IntegrityResult, UploadConfig, UploadResult
from ..protocols import IUploadClient
from ..services.integrity import verify_async
from ..utils.events import EventEmitter, ProgressThrottle
from ..utils.formatting import human_size
from .models import TransferAttempt, TransferState

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = (
    "Upload timed out. Please try again with a smaller file or check your connection."
)


class SingleFileTransfer:
    """
    Sends one file: IDLE -> SENDING -> SUCCESS | HTTP_ERROR | TIMEOUT |
    CANCELLED | FAILED, looping through NETWORK_ERROR while retries remain.

    Only network errors are retried. Each attempt gets its own timeout and
    the backoff before retry ``r`` is ``retry_delay_base * 2 ** (r - 1)``.

    Usage:
        transfer = SingleFileTransfer(descriptor, client, config, 1, 3)
        transfer.on_tick(lambda index, loaded, total: ...)
        result = await transfer.run()
        # from elsewhere: transfer.cancel()
    """

    def __init__(
        self,
        descriptor: FileDescriptor,
        client: IUploadClient,
        config: UploadConfig,
        file_index: int = 1,
        total_files: int = 1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._descriptor = descriptor
        self._client = client
        self._config = config
        self._file_index = file_index
        self._total_files = total_files
        self._sleep = sleep
        self._events = EventEmitter()
        self._throttle = ProgressThrottle(config.progress_interval, clock)

        self._attempt = TransferAttempt()
        self._attempts_made = 0
        self._backoff_delays: List[float] = []
        self._pending: Optional[asyncio.Future] = None
        self._cancel_requested = False
        self._last_milestone = -1

    # Event subscription methods
    def on_tick(self, callback: Callable[[int, int, int], Any]):
        """Called for each accepted progress tick. Receives (file_index, bytes_loaded, bytes_total)."""
        self._events.on("tick", callback)

    def on_retry(self, callback: Callable[[int, int, float, str], Any]):
        """Called before each backoff. Receives (file_index, retry_number, delay, error)."""
        self._events.on("retry", callback)

    def on_integrity_mismatch(self, callback: Callable[[IntegrityMismatch], Any]):
        """Called when the local digest differs from the remote one. Receives IntegrityMismatch."""
        self._events.on("integrity_mismatch", callback)

    def on_state(self, callback: Callable[[int, TransferState], Any]):
        """Called on every state transition. Receives (file_index, new_state)."""
        self._events.on("state", callback)

    # State properties
    @property
    def descriptor(self) -> FileDescriptor:
        return self._descriptor

    @property
    def state(self) -> TransferState:
        return self._attempt.state

    @property
    def attempt(self) -> TransferAttempt:
        return self._attempt

    @property
    def attempts(self) -> int:
        """Number of sends started so far."""
        return self._attempts_made

    @property
    def backoff_delays(self) -> List[float]:
        return list(self._backoff_delays)

    @property
    def is_active(self) -> bool:
        return self._attempt.state == TransferState.SENDING or self._pending is not None

    def cancel(self) -> bool:
        """Abort the in-flight request or pending backoff. Returns False if already terminal."""
        if self._attempt.state.is_terminal:
            return False
        self._cancel_requested = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        return True

    async def run(self) -> UploadResult:
        """Drive the transfer to a terminal state. Never raises for per-file errors."""
        if self._attempt.state != TransferState.IDLE:
            raise RuntimeError(f"Transfer already started (state: {self._attempt.state.value})")

        name = self._descriptor.name
        if self._cancel_requested:
            return await self._finish_cancelled()

        try:
            content = await asyncio.to_thread(self._descriptor.read)
        except OSError as exc:
            return await self._finish_failure(
                TransferState.FAILED, f"Could not read {name}: {exc}"
            )

        if self._cancel_requested:
            return await self._finish_cancelled()

        timestamp = int(time.time() * 1000)

        while True:
            await self._transition(TransferState.SENDING)
            self._attempts_made += 1
            self._throttle.reset()
            self._last_milestone = -1

            try:
                response = await self._run_pending(
                    asyncio.wait_for(
                        self._client.send(self._descriptor, content, timestamp, self._handle_progress),
                        timeout=self._config.upload_timeout,
                    )
                )
                payload = self._interpret(response)

            except UploadCancelledError:
                return await self._finish_cancelled()

            except (asyncio.TimeoutError, UploadTimeoutError):
                return await self._finish_failure(TransferState.TIMEOUT, TIMEOUT_MESSAGE)

            except HttpError as exc:
                return await self._finish_failure(TransferState.HTTP_ERROR, str(exc))

            except NetworkError as exc:
                await self._transition(TransferState.NETWORK_ERROR, str(exc))
                retry_number = self._attempt.number + 1
                max_retries = self._config.max_retries

                if retry_number > max_retries:
                    return await self._finish_failure(
                        TransferState.FAILED,
                        f"Upload failed after {self._attempts_made} attempts. "
                        f"Make sure the backend server is running at {self._client.endpoint_url}",
                    )

                delay = self._config.backoff_delay(retry_number)
                logger.info(
                    f"File {self._file_index} network error, retrying "
                    f"({retry_number}/{max_retries}) in {delay:g}s: {exc}"
                )
                self._backoff_delays.append(delay)
                await self._events.emit("retry", self._file_index, retry_number, delay, str(exc))

                try:
                    await self._run_pending(self._sleep(delay))
                except UploadCancelledError:
                    return await self._finish_cancelled()

                self._attempt = self._attempt.next()
                continue

            except TransferError as exc:
                return await self._finish_failure(TransferState.FAILED, str(exc) or type(exc).__name__)

            integrity = await self._verify(content, payload)
            await self._transition(TransferState.SUCCESS)
            logger.info(
                f"Upload complete - file {self._file_index}/{self._total_files}: "
                f"{payload.get('filename', name)} ({self._attempts_made} attempt(s))"
            )
            return UploadResult.ok(
                filename=name,
                payload=payload,
                attempts=self._attempts_made,
                integrity=integrity,
            )

    async def _run_pending(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` as the single cancellable operation of this transfer."""
        if self._cancel_requested:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise UploadCancelledError("Upload cancelled")

        self._pending = asyncio.ensure_future(awaitable)
        try:
            return await self._pending
        except asyncio.CancelledError:
            if self._cancel_requested:
                raise UploadCancelledError("Upload cancelled") from None
            raise
        finally:
            self._pending = None

    @staticmethod
    def _interpret(response: Any) -> Dict[str, Any]:
        """Transport status first, then the outcome the body declares."""
        status_code = response.status_code
        if not 200 <= status_code < 300:
            reason = getattr(response, "reason_phrase", "") or ""
            raise HttpError(f"Server error: {status_code} {reason}".rstrip(), status_code=status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError("Failed to parse server response", status_code=status_code) from exc

        if not isinstance(payload, dict):
            raise ParseError("Failed to parse server response", status_code=status_code)

        if payload.get("status") != "success":
            raise HttpError(payload.get("message") or "Upload failed", status_code=status_code)

        return payload

    async def _handle_progress(self, bytes_loaded: int, bytes_total: int) -> None:
        self._attempt.bytes_sent = bytes_loaded
        if self._cancel_requested or bytes_total <= 0:
            return
        if not self._throttle.ready():
            return

        logger.debug(f"{self._descriptor.name}: {bytes_loaded}/{bytes_total} bytes")
        self._log_milestone(bytes_loaded, bytes_total)
        await self._events.emit("tick", self._file_index, bytes_loaded, bytes_total)

    def _log_milestone(self, bytes_loaded: int, bytes_total: int) -> None:
        if bytes_total <= self._config.large_file_threshold:
            return
        step = self._config.progress_log_interval
        percent = bytes_loaded / bytes_total * 100
        milestone = int(percent // step) * step
        if milestone > 0 and milestone != self._last_milestone:
            logger.info(
                f"Upload progress - file {self._file_index}: {milestone}% - "
                f"{human_size(bytes_loaded)}/{human_size(bytes_total)}"
            )
            self._last_milestone = milestone

    async def _verify(self, content: bytes, payload: Dict[str, Any]) -> Optional[IntegrityResult]:
        if not self._config.verify_integrity:
            return None
        if payload.get("hash") is None or payload.get("size") is None:
            logger.debug(f"No integrity data in response for {self._descriptor.name}")
            return None

        integrity = await verify_async(content, payload["size"], payload["hash"])
        if not integrity.verified:
            logger.warning(f"File integrity check failed for {self._descriptor.name}: {integrity.detail}")
            await self._events.emit(
                "integrity_mismatch", IntegrityMismatch(self._descriptor.name, integrity.detail or "")
            )
        return integrity

    async def _transition(self, state: TransferState, error: Optional[str] = None) -> None:
        self._attempt.state = state
        if error is not None:
            self._attempt.last_error = error
        logger.debug(
            f"{self._descriptor.name} attempt {self._attempt.number}: -> {state.value}"
            + (f" ({error})" if error else "")
        )
        await self._events.emit("state", self._file_index, state)

    async def _finish_failure(self, state: TransferState, message: str) -> UploadResult:
        await self._transition(state, message)
        logger.warning(f"Failed to upload {self._descriptor.name}: {message}")
        return UploadResult.fail(self._descriptor.name, message, attempts=self._attempts_made)

    async def _finish_cancelled(self) -> UploadResult:
        await self._transition(TransferState.CANCELLED, "Upload cancelled")
        logger.info(f"Cancelled upload: {self._descriptor.name}")
        return UploadResult.cancelled_result(self._descriptor.name, attempts=self._attempts_made)
