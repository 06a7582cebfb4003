"""Test doubles shared by the transfer and scheduler tests."""
import asyncio
from typing import Dict, List, Optional

import httpx

from rapidup.services.integrity import digest

BLOCK = object()


def ok_response(name: str, content: bytes, **overrides) -> httpx.Response:
    payload = {
        "status": "success",
        "message": "File uploaded successfully",
        "filename": name,
        "size": len(content),
        "hash": digest(content),
    }
    payload.update(overrides)
    return httpx.Response(200, json=payload)


class FakeClient:
    """
    Scripted IUploadClient.

    ``script`` maps a filename to outcomes consumed one per send: an
    exception to raise, a response to return, or BLOCK to hang until
    cancelled. Files without a script succeed.
    """

    endpoint_url = "http://testserver/upload"

    def __init__(self, script: Optional[Dict[str, list]] = None):
        self.script = {name: list(outcomes) for name, outcomes in (script or {}).items()}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.blocked = asyncio.Event()
        self.aborted: List[str] = []

    async def send(self, descriptor, content, timestamp, progress_callback=None):
        self.calls.append(descriptor.name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if progress_callback is not None:
                await progress_callback(len(content) // 2, len(content))
                await progress_callback(len(content), len(content))

            outcomes = self.script.get(descriptor.name)
            outcome = outcomes.pop(0) if outcomes else ok_response(descriptor.name, content)

            if outcome is BLOCK:
                self.blocked.set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    self.aborted.append(descriptor.name)
                    raise
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingNotifier:
    """INotifier that keeps every call."""

    def __init__(self):
        self.progress = []
        self.settled = []
        self.jobs = []
        self.cancelled = 0

    def on_progress(self, file_index, total_files, percent, bytes_loaded, bytes_total):
        self.progress.append((file_index, total_files, percent, bytes_loaded, bytes_total))

    def on_file_settled(self, result):
        self.settled.append(result)

    async def on_job_settled(self, stats, has_errors, message):
        self.jobs.append((stats, has_errors, message))

    def on_cancelled(self):
        self.cancelled += 1
