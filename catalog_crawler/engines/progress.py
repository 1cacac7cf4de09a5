from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)


class ProgressStage(str, Enum):
    INIT = "init"
    DISCOVERY = "discovery"
    SCRAPING_PRODUCTS = "scraping_products"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    stage: ProgressStage
    message: str
    current: int = 0
    total: int = 0
    percentage: int = 0
    products_found: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "message": self.message,
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
            "productsFound": self.products_found,
        }


ProgressObserver = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


def percent(current: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(100, int(current * 100 / total)))


_CLOSE = object()


class ProgressChannel:
    """
    One-way, bounded channel from the engine to an observer task.

    ``publish`` never blocks: when the buffer is full the oldest pending event
    is dropped, so a slow observer sees fewer updates but never stalls the
    crawl. Observer exceptions are logged and swallowed.
    """

    def __init__(self, observer: Optional[ProgressObserver] = None, maxsize: int = 100) -> None:
        self.observer = observer
        self.latest: Optional[ProgressEvent] = None
        self.dropped = 0
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task[None]] = None

    async def __aenter__(self) -> "ProgressChannel":
        if self.observer is not None:
            self._task = asyncio.create_task(self._consume())
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def publish(self, event: ProgressEvent) -> None:
        self.latest = event
        logger.debug("[%s] %s (%s/%s)", event.stage.value, event.message, event.current, event.total)
        if self._task is None:
            return
        self._put(event)

    def _put(self, item: Any) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self.dropped += 1
            self._queue.put_nowait(item)

    async def _consume(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                return
            await self._deliver(item)

    async def _deliver(self, event: ProgressEvent) -> None:
        try:
            result = self.observer(event)  # type: ignore[misc]
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Progress observer failed on %s event", event.stage.value)

    async def close(self) -> None:
        """Deliver what is still buffered, then stop the observer task."""
        if self._task is None:
            return
        self._put(_CLOSE)
        task, self._task = self._task, None
        await task
        if self.dropped:
            logger.debug("Progress channel dropped %d events for a slow observer", self.dropped)
