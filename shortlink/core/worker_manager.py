"""
Click Tracking Manager

This module owns the process-wide click tracking queue and its worker.

Lifecycle:
- initialize_click_tracking() runs on application startup: creates the
  bounded queue, the shared geolocation HTTP client and the single worker
  task
- shutdown_click_tracking() runs on shutdown: closes the queue, lets the
  worker finish its current job, drains what is left, then closes the
  HTTP client

Endpoints reach the queue through get_click_queue(), which tests can
override with FastAPI's dependency_overrides.
"""

import logging
from typing import Optional

import httpx

from shortlink.core.setting import settings
from shortlink.services.click_queue import ClickTrackingQueue
from shortlink.services.click_worker import ClickTrackingWorker
from shortlink.services.geolocation import GeoLocationService

logger = logging.getLogger(__name__)

_queue: Optional[ClickTrackingQueue] = None
_worker: Optional[ClickTrackingWorker] = None
_http_client: Optional[httpx.AsyncClient] = None


def get_click_queue() -> Optional[ClickTrackingQueue]:
    """
    Get the process-wide click queue.

    Returns:
        ClickTrackingQueue if initialized, None otherwise (clicks are then
        counted but not tracked)
    """
    return _queue


def get_click_worker() -> Optional[ClickTrackingWorker]:
    return _worker


async def initialize_click_tracking() -> None:
    """Create the queue and start the worker."""
    global _queue, _worker, _http_client

    if _queue is not None:
        logger.warning("Click tracking already initialized")
        return

    _queue = ClickTrackingQueue(maxsize=settings.CLICK_QUEUE_MAX_SIZE)

    if not settings.CLICK_WORKER_ENABLED:
        logger.warning("Click tracking worker disabled; queued clicks will not be processed")
        return

    _http_client = httpx.AsyncClient(timeout=settings.GEOLOCATION_TIMEOUT)
    _worker = ClickTrackingWorker(
        queue=_queue,
        geolocation=GeoLocationService(client=_http_client),
    )
    _worker.start()

    logger.info(f"Click tracking initialized: queue_size={settings.CLICK_QUEUE_MAX_SIZE}")


async def shutdown_click_tracking(timeout: float = 10.0) -> None:
    """Drain and stop the worker, then release the HTTP client."""
    global _queue, _worker, _http_client

    if _worker is not None:
        logger.info("Shutting down click tracking worker")
        await _worker.shutdown(timeout=timeout)
    elif _queue is not None:
        _queue.close()

    if _http_client is not None:
        try:
            await _http_client.aclose()
        except Exception as e:
            logger.warning(f"Failed to close geolocation HTTP client: {e}")

    _queue = None
    _worker = None
    _http_client = None


def click_tracking_stats() -> dict:
    """Queue and worker counters for the health endpoint."""
    return {
        "queue": _queue.stats() if _queue is not None else None,
        "worker": _worker.stats() if _worker is not None else None,
    }
