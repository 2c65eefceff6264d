"""Background writer that persists accepted locations off the broadcast path.

The broker hands every accepted location to ``LocationWriter.enqueue`` and
moves straight on to the fan-out. A single task drains the queue into the
LocationStore, so records are written in acceptance order. Delivery is
at-most-once: a full queue or a failed write drops the record with a log
line, nothing is retried.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from livetrack.services.store.service import LocationStore, NewLocation


logger = logging.getLogger(__name__)


class LocationWriter:
    """Owns the persistence queue and the task consuming it.

    Example:
        writer = LocationWriter(store, max_queue_size=1000)
        await writer.start()
        writer.enqueue(location)
        # ... later ...
        await writer.stop()
    """

    def __init__(self, store: "LocationStore", *, max_queue_size: int = 1000) -> None:
        """Initialize the writer.

        Args:
            store: LocationStore receiving the records.
            max_queue_size: Records allowed to wait before new ones are dropped.
        """
        self.store = store
        self.max_queue_size = max_queue_size

        self._queue: asyncio.Queue[NewLocation] | None = None
        self._writer_task: asyncio.Task[None] | None = None

        # Statistics
        self.total_persisted: int = 0
        self.total_failed: int = 0
        self.total_dropped: int = 0

    @property
    def is_running(self) -> bool:
        """Return True if the writer task is running."""
        return self._writer_task is not None and not self._writer_task.done()

    @property
    def pending(self) -> int:
        """Number of records waiting to be written."""
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the writer background task."""
        if self.is_running:
            logger.warning("Location writer already running")
            return

        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._writer_task = asyncio.create_task(self._run(), name="location-writer")
        logger.info("Started location writer (max_queue_size=%d)", self.max_queue_size)

    def enqueue(self, location: "NewLocation") -> bool:
        """Queue a location for persistence without waiting.

        Returns:
            True if queued, False if the record was dropped.
        """
        if self._queue is None or not self.is_running:
            self.total_dropped += 1
            logger.warning("Location writer not running, dropping location for %s", location.connection_id)
            return False
        try:
            self._queue.put_nowait(location)
        except asyncio.QueueFull:
            self.total_dropped += 1
            logger.warning(
                "Persistence queue full (%d), dropping location for %s",
                self.max_queue_size,
                location.connection_id,
            )
            return False
        return True

    async def flush(self) -> None:
        """Wait until every queued record has been handled."""
        if self._queue is not None and self.is_running:
            await self._queue.join()

    async def stop(self, timeout: float = 10.0) -> None:
        """Drain the queue, then stop the writer task.

        Args:
            timeout: Seconds to wait for the drain before cancelling.
        """
        if not self._writer_task or not self._queue:
            return

        try:
            await asyncio.wait_for(self.flush(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Location writer did not drain in %.1fs, %d records lost", timeout, self.pending)

        self._writer_task.cancel()
        try:
            await self._writer_task
        except asyncio.CancelledError:
            pass
        self._writer_task = None

        logger.info(
            "Stopped location writer. Persisted: %d, failed: %d, dropped: %d",
            self.total_persisted,
            self.total_failed,
            self.total_dropped,
        )

    async def _run(self) -> None:
        """Core write loop."""
        assert self._queue is not None
        while True:
            location = await self._queue.get()
            try:
                if await self.store.append(location):
                    self.total_persisted += 1
                else:
                    self.total_failed += 1
            except Exception as e:
                self.total_failed += 1
                logger.exception("Unexpected error persisting location: %s", e)
            finally:
                self._queue.task_done()
