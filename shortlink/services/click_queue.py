"""
Click Tracking Queue

In-process FIFO channel between the redirect endpoint (producer) and the
click tracking worker (single consumer).

Design Decisions:
- Bounded asyncio.Queue (settings.CLICK_QUEUE_MAX_SIZE); when full, new jobs
  are dropped and logged instead of slowing down redirects
- enqueue() is synchronous and never raises, so it is safe to call from the
  request path without awaiting anything
- Not durable: jobs still queued when the process dies are lost. Click
  analytics is best-effort, redirects are not
- Once closed (at shutdown) the queue rejects new jobs; what is already
  queued can still be drained
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from shortlink.core.timeutils import utc_now

logger = logging.getLogger(__name__)


class ClickTrackingData(BaseModel):
    """Raw request inputs captured synchronously while serving a redirect."""

    ip_address: Optional[str] = Field(None, description="Client IP address")
    session_id: Optional[str] = Field(None, description="Anonymous session identifier")
    user_agent: str = Field("Unknown", description="Raw User-Agent header")
    referrer: Optional[str] = Field(None, description="Raw Referer header")
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None


class ClickTrackingJob(BaseModel):
    """Queue payload: which link was clicked and what the request looked like."""

    short_url_id: int
    data: ClickTrackingData
    enqueued_at: datetime = Field(default_factory=utc_now)


class ClickTrackingQueue:
    """
    Bounded in-memory queue of click tracking jobs.
    """

    def __init__(self, maxsize: int = 10000):
        """
        Args:
            maxsize: Maximum number of pending jobs; must be positive
        """
        if maxsize <= 0:
            raise ValueError("Click queue size must be positive")
        self.maxsize = maxsize
        self._queue: "asyncio.Queue[ClickTrackingJob]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.enqueued_count = 0
        self.dropped_count = 0

    @property
    def size(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting new jobs. Already queued jobs stay available."""
        self._closed = True

    def enqueue(self, short_url_id: int, data: ClickTrackingData) -> bool:
        """
        Queue a click for background processing without blocking.

        Args:
            short_url_id: Id of the ShortURL that was redirected
            data: Tracking inputs captured from the request

        Returns:
            True if queued, False if the job was dropped
        """
        if self._closed:
            self.dropped_count += 1
            logger.warning(f"Click queue closed, dropping click for short URL {short_url_id}")
            return False

        try:
            self._queue.put_nowait(ClickTrackingJob(short_url_id=short_url_id, data=data))
        except asyncio.QueueFull:
            self.dropped_count += 1
            logger.warning(
                f"Click queue full ({self.maxsize}), dropping click for short URL {short_url_id}"
            )
            return False
        except Exception as e:
            self.dropped_count += 1
            logger.error(
                f"Failed to enqueue click for short URL {short_url_id}: {e}",
                exc_info=True
            )
            return False

        self.enqueued_count += 1
        return True

    def dequeue_nowait(self) -> Optional[ClickTrackingJob]:
        """Next job if one is waiting, else None."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    async def dequeue(self, stop_event: asyncio.Event) -> Optional[ClickTrackingJob]:
        """
        Wait for the next job.

        Args:
            stop_event: Shutdown signal

        Returns:
            The next job, or None once stop_event is set
        """
        if stop_event.is_set():
            return None

        get_task = asyncio.ensure_future(self._queue.get())
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if not get_task.done():
                get_task.cancel()

        if get_task.done() and not get_task.cancelled():
            return get_task.result()
        return None

    def stats(self) -> dict:
        return {
            "size": self.size,
            "max_size": self.maxsize,
            "enqueued": self.enqueued_count,
            "dropped": self.dropped_count,
            "closed": self._closed,
        }
