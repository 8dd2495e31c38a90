"""
Click Tracking Worker

Single long-lived consumer of the ClickTrackingQueue.

Design Decisions:
- Exactly one worker task per process: jobs are processed strictly in FIFO
  order with one job in flight
- Every job gets its own database session (the request that produced it is
  long gone), committed on success and rolled back on failure
- A failing job is logged and counted, never re-raised: one bad click must
  not stop the loop or hold up the jobs behind it
- stop() lets the job in flight finish; shutdown() additionally closes the
  queue and drains whatever is still queued
"""

import asyncio
import logging
from typing import Callable, Optional

from shortlink.db.session import async_session_maker
from shortlink.services.click_enrichment import ClickEnrichmentService
from shortlink.services.click_queue import ClickTrackingJob, ClickTrackingQueue
from shortlink.services.geolocation import GeoLocationService

logger = logging.getLogger(__name__)


class ClickTrackingWorker:
    """
    Drains the click queue into the enrichment pipeline.
    """

    def __init__(
        self,
        queue: ClickTrackingQueue,
        session_factory: Callable = async_session_maker,
        geolocation: Optional[GeoLocationService] = None,
    ):
        """
        Args:
            queue: The queue to consume
            session_factory: Factory returning an async session context manager
            geolocation: Location resolver handed to the enrichment service
        """
        self.queue = queue
        self.session_factory = session_factory
        self.geolocation = geolocation
        self.processed_count = 0
        self.failed_count = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def process_job(self, job: ClickTrackingJob) -> bool:
        """
        Enrich and persist one job in its own unit of work.

        Returns:
            True if the click was stored, False if the job failed
        """
        try:
            async with self.session_factory() as session:
                try:
                    service = ClickEnrichmentService(session, geolocation=self.geolocation)
                    await service.track_click(
                        job.short_url_id, job.data, clicked_at=job.enqueued_at
                    )
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except Exception as e:
            self.failed_count += 1
            logger.error(
                f"Failed to process click for short URL {job.short_url_id}: {e}",
                exc_info=True
            )
            return False

        self.processed_count += 1
        return True

    async def run(self) -> None:
        """Consume jobs until stop() is called."""
        logger.info("Click tracking worker started")
        while not self._stop_event.is_set():
            try:
                job = await self.queue.dequeue(self._stop_event)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Click queue read failed: {e}", exc_info=True)
                await asyncio.sleep(0.1)
                continue

            if job is None:
                break
            await self.process_job(job)

        logger.info(
            f"Click tracking worker stopped: processed={self.processed_count}, "
            f"failed={self.failed_count}"
        )

    async def drain(self) -> int:
        """
        Process every job currently queued, without waiting for new ones.

        Returns:
            Number of jobs taken off the queue
        """
        drained = 0
        while True:
            job = self.queue.dequeue_nowait()
            if job is None:
                return drained
            await self.process_job(job)
            drained += 1

    def start(self) -> asyncio.Task:
        """Start the consumer loop as a background task."""
        if self.running:
            logger.warning("Click tracking worker already running")
            return self._task
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name="click-tracking-worker")
        return self._task

    def stop(self) -> None:
        """Signal the loop to exit after the job in flight, if any."""
        self._stop_event.set()

    async def shutdown(self, timeout: float = 10.0) -> None:
        """
        Stop accepting clicks, finish the job in flight and drain the queue.

        Args:
            timeout: Seconds to wait for the loop and the drain before giving up
        """
        self.queue.close()
        self.stop()

        try:
            if self._task is not None:
                await asyncio.wait_for(self._task, timeout=timeout)
            drained = await asyncio.wait_for(self.drain(), timeout=timeout)
            if drained:
                logger.info(f"Drained {drained} queued clicks on shutdown")
        except asyncio.TimeoutError:
            logger.warning(
                f"Click tracking worker did not finish within {timeout}s, "
                f"{self.queue.size} clicks lost"
            )
            if self._task is not None and not self._task.done():
                self._task.cancel()
        finally:
            self._task = None

    def stats(self) -> dict:
        return {
            "running": self.running,
            "processed": self.processed_count,
            "failed": self.failed_count,
        }
