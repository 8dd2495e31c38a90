"""
Tests for the click tracking pipeline: queue, worker and enrichment.
"""

import asyncio

import pytest

from shortlink.core.timeutils import normalize_utc
from shortlink.services import click_worker, user_agent_parser
from shortlink.services.click_enrichment import ClickEnrichmentService
from shortlink.services.click_queue import ClickTrackingData, ClickTrackingQueue
from shortlink.services.geolocation import GeoLocation, GeoLocationService

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def tracking_data(**overrides) -> ClickTrackingData:
    values = {"ip_address": "203.0.113.7", "user_agent": CHROME_WINDOWS}
    values.update(overrides)
    return ClickTrackingData(**values)


class FixedGeoLocation:
    def __init__(self, location=None, error=None):
        self.location = location or GeoLocation()
        self.error = error

    async def lookup(self, ip_address):
        if self.error:
            raise self.error
        return self.location


class TestClickTrackingQueue:
    """Test the bounded job queue."""

    def test_enqueue_and_dequeue_fifo(self, click_queue):
        for short_url_id in (1, 2, 3):
            assert click_queue.enqueue(short_url_id, tracking_data())

        assert click_queue.size == 3
        assert [click_queue.dequeue_nowait().short_url_id for _ in range(3)] == [1, 2, 3]
        assert click_queue.dequeue_nowait() is None

    def test_overflow_drops_newest(self):
        queue = ClickTrackingQueue(maxsize=2)
        assert queue.enqueue(1, tracking_data())
        assert queue.enqueue(2, tracking_data())
        assert not queue.enqueue(3, tracking_data())

        assert queue.size == 2
        assert queue.stats()["dropped"] == 1
        assert queue.stats()["enqueued"] == 2

    def test_closed_queue_rejects(self, click_queue):
        click_queue.enqueue(1, tracking_data())
        click_queue.close()

        assert not click_queue.enqueue(2, tracking_data())
        assert click_queue.dequeue_nowait().short_url_id == 1

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            ClickTrackingQueue(maxsize=0)

    async def test_dequeue_returns_job(self, click_queue):
        click_queue.enqueue(7, tracking_data())
        job = await click_queue.dequeue(asyncio.Event())
        assert job.short_url_id == 7

    async def test_dequeue_unblocks_on_stop(self, click_queue):
        stop = asyncio.Event()
        pending = asyncio.ensure_future(click_queue.dequeue(stop))
        await asyncio.sleep(0)
        stop.set()

        assert await asyncio.wait_for(pending, timeout=1) is None

    async def test_dequeue_after_stop(self, click_queue):
        stop = asyncio.Event()
        stop.set()
        click_queue.enqueue(1, tracking_data())
        assert await click_queue.dequeue(stop) is None


class TestClickEnrichmentService:
    """Test enrichment of a single click."""

    async def test_enriched_row(self, session):
        service = ClickEnrichmentService(
            session,
            geolocation=FixedGeoLocation(GeoLocation("Germany", "DE", "Berlin")),
        )
        data = tracking_data(
            session_id="s-1",
            referrer="https://www.google.com/search?q=links",
            utm_campaign="launch",
        )

        click = await service.track_click(5, data)
        await session.commit()

        assert click.id is not None
        assert click.short_url_id == 5
        assert click.browser == "Chrome"
        assert click.device_type == "Desktop"
        assert click.traffic_source == "Search"
        assert click.referrer_domain == "www.google.com"
        assert click.country == "Germany"
        assert click.city == "Berlin"
        assert click.utm_campaign == "launch"
        assert click.session_id == "s-1"

    async def test_geolocation_failure_falls_back(self, session):
        service = ClickEnrichmentService(
            session, geolocation=FixedGeoLocation(error=RuntimeError("geo down"))
        )

        click = await service.track_click(1, tracking_data(utm_source="newsletter", utm_medium="email"))

        assert click.country == "Unknown"
        assert click.browser == "Chrome"
        assert click.traffic_source == "Email"

    async def test_user_agent_failure_falls_back(self, session, monkeypatch):
        def explode(_):
            raise RuntimeError("boom")

        monkeypatch.setattr(user_agent_parser, "parse", explode)
        service = ClickEnrichmentService(session, geolocation=FixedGeoLocation())

        click = await service.track_click(1, tracking_data())

        assert click.browser == "Unknown"
        assert click.device_type == "Unknown"
        assert click.traffic_source == "Direct"

    async def test_missing_user_agent(self, session):
        service = ClickEnrichmentService(session, geolocation=GeoLocationService(enabled=False))
        click = await service.track_click(1, tracking_data(user_agent="Unknown", ip_address=None))

        assert click.browser == "Unknown"
        assert click.device_type == "Unknown"
        assert click.country == "Unknown"


class TestClickTrackingWorker:
    """Test the background consumer."""

    async def test_drain_persists_in_order(self, click_queue, worker, stored_clicks):
        for index in range(5):
            click_queue.enqueue(1, tracking_data(session_id=f"s-{index}"))

        assert await worker.drain() == 5

        clicks = await stored_clicks(1)
        assert [click.session_id for click in clicks] == [f"s-{index}" for index in range(5)]
        assert worker.processed_count == 5
        assert click_queue.size == 0

    async def test_click_time_is_enqueue_time(self, click_queue, worker, stored_clicks):
        click_queue.enqueue(4, tracking_data())
        job = click_queue.dequeue_nowait()
        await asyncio.sleep(0.05)

        assert await worker.process_job(job)

        [click] = await stored_clicks(4)
        assert normalize_utc(click.clicked_at) == job.enqueued_at

    async def test_failed_job_does_not_block_others(self, click_queue, worker, stored_clicks, monkeypatch):
        original = click_worker.ClickEnrichmentService.track_click

        async def flaky(self, short_url_id, data, clicked_at=None):
            if short_url_id == 999:
                raise RuntimeError("bad click")
            return await original(self, short_url_id, data, clicked_at)

        monkeypatch.setattr(click_worker.ClickEnrichmentService, "track_click", flaky)

        click_queue.enqueue(1, tracking_data(session_id="before"))
        click_queue.enqueue(999, tracking_data(session_id="bad"))
        click_queue.enqueue(1, tracking_data(session_id="after"))

        await worker.drain()

        clicks = await stored_clicks()
        assert [click.session_id for click in clicks] == ["before", "after"]
        assert worker.failed_count == 1
        assert worker.processed_count == 2

    async def test_background_loop_processes_jobs(self, click_queue, worker, stored_clicks):
        worker.start()
        assert worker.running

        for index in range(3):
            click_queue.enqueue(2, tracking_data(session_id=f"live-{index}"))

        for _ in range(100):
            if worker.processed_count == 3:
                break
            await asyncio.sleep(0.01)

        await worker.shutdown(timeout=5)
        assert not worker.running
        assert len(await stored_clicks(2)) == 3

    async def test_shutdown_drains_queue(self, click_queue, worker, stored_clicks):
        worker.start()
        for index in range(10):
            click_queue.enqueue(3, tracking_data(session_id=f"s-{index}"))

        await worker.shutdown(timeout=5)

        assert len(await stored_clicks(3)) == 10
        assert click_queue.closed
        assert not click_queue.enqueue(3, tracking_data())

    async def test_start_twice_returns_same_task(self, worker):
        first = worker.start()
        assert worker.start() is first
        await worker.shutdown(timeout=5)
