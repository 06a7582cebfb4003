"""HTTP adapter for the upload endpoint."""
from __future__ import annotations

import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

import httpx

from ..errors import NetworkError, ParseError, UploadTimeoutError
from ..models import FileDescriptor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]

DEFAULT_CHUNK_SIZE = 64 * 1024


class HTTPUploadClient:
    """
    HTTP client adapter for multipart file uploads.

    Implements IUploadClient protocol. Status codes are not interpreted here;
    only connection-level problems are translated into rapidup errors.
    """

    def __init__(
        self,
        endpoint_url: str,
        connect_timeout: float = 10.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint_url = endpoint_url
        self._connect_timeout = connect_timeout
        self._chunk_size = chunk_size
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    async def __aenter__(self):
        # Only the connect phase is bounded here; the attempt-wide ceiling
        # is enforced by the transfer state machine.
        timeout = httpx.Timeout(None, connect=self._connect_timeout)
        self._client = httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_body(self, descriptor: FileDescriptor, content: bytes, timestamp: int):
        """Encode the multipart body. Returns ``(body_bytes, content_type)``."""
        request = httpx.Request(
            "POST",
            self._endpoint_url,
            data={
                "originalSize": str(descriptor.size),
                "timestamp": str(timestamp),
            },
            files={"file": (descriptor.name, content, "application/octet-stream")},
        )
        body = request.read()
        return body, request.headers["Content-Type"]

    async def _stream(
        self,
        body: bytes,
        progress_callback: Optional[ProgressCallback],
    ) -> AsyncIterator[bytes]:
        total = len(body)
        sent = 0
        for offset in range(0, total, self._chunk_size):
            chunk = body[offset:offset + self._chunk_size]
            yield chunk
            sent += len(chunk)
            if progress_callback is not None:
                result = progress_callback(sent, total)
                if inspect.isawaitable(result):
                    await result

    async def send(
        self,
        descriptor: FileDescriptor,
        content: bytes,
        timestamp: int,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> httpx.Response:
        """POST one file. Returns the response whatever its status."""
        if not self._client:
            raise RuntimeError("HTTPUploadClient not initialized. Use 'async with' context.")

        body, content_type = self.build_body(descriptor, content, timestamp)
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(len(body)),
        }
        logger.debug(f"Upload attempt to: {self._endpoint_url} ({descriptor.name}, {len(body)} bytes)")

        try:
            response = await self._client.post(
                self._endpoint_url,
                content=self._stream(body, progress_callback),
                headers=headers,
            )
        except httpx.ConnectTimeout as exc:
            raise NetworkError(f"Connection to {self._endpoint_url} timed out: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise UploadTimeoutError(f"Transfer to {self._endpoint_url} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error talking to {self._endpoint_url}: {exc}") from exc
        except httpx.DecodingError as exc:
            # A response arrived but its body could not be decoded
            logger.debug(f"Undecodable response from {self._endpoint_url}: {exc}")
            raise ParseError("Failed to parse server response") from exc

        return response
