from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import asyncio
import inspect
import logging
import time
logger = logging.getLogger(__name__)


@dataclass
class FileProgress:
    """Progress information for the file currently in flight."""
    filename: str
    file_index: int
    total_files: int
    bytes_uploaded: int = 0
    total_bytes: int = 0
    percent: float = 0.0
    overall_percent: float = 0.0


class ProgressThrottle:
    """
    Leading-edge rate limiter for progress ticks.

    The first tick in a window passes, the rest of the window is dropped.
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self._interval = interval
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        """Return True if a tick may be emitted now (and open a new window)."""
        now = self._clock()
        if self._last is not None and now - self._last < self._interval:
            return False
        self._last = now
        return True

    def reset(self) -> None:
        self._last = None


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners. Listener errors are logged, not raised."""
        if event_name not in self._listeners:
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
                try:
                    result = callback(*args, **kwargs)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")
