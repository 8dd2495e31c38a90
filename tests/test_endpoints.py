"""
HTTP-level tests for the API, running the app in-process through httpx.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shortlink.services.redirect_service import hash_password

CHROME_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) CriOS/120.0.6099.119 Mobile/15E148 Safari/604.1"
)


async def shorten(client, **payload):
    payload.setdefault("url", "https://example.com/landing")
    return await client.post("/shorten", json=payload)


class TestShorten:
    async def test_generated_code(self, client):
        response = await shorten(client)

        assert response.status_code == 201
        body = response.json()
        assert body["short_code"]
        assert body["short_url"].endswith("/" + body["short_code"])
        assert body["original_url"].startswith("https://example.com/landing")
        assert body["password_protected"] is False

    async def test_custom_code_and_constraints(self, client):
        expires_at = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
        response = await shorten(
            client,
            custom_code="launch-day",
            click_limit=10,
            password="s3cret",
            expires_at=expires_at,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["short_code"] == "launch-day"
        assert body["click_limit"] == 10
        assert body["password_protected"] is True

    async def test_duplicate_custom_code(self, client):
        assert (await shorten(client, custom_code="taken")).status_code == 201
        response = await shorten(client, custom_code="taken")
        assert response.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"url": "not a url"},
        {"url": "ftp://example.com/file"},
        {"click_limit": 0},
    ])
    async def test_rejected_by_schema(self, client, payload):
        assert (await shorten(client, **payload)).status_code == 422

    @pytest.mark.parametrize("custom_code", ["admin", "no spaces", "ab"])
    async def test_invalid_custom_code(self, client, custom_code):
        assert (await shorten(client, custom_code=custom_code)).status_code == 400

    async def test_expiry_in_past(self, client):
        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        assert (await shorten(client, expires_at=past)).status_code == 400


class TestRedirect:
    async def test_redirects_and_queues_click(self, client, click_queue, make_short_url):
        await make_short_url(short_code="go", original_url="https://example.com/target")

        response = await client.get(
            "/go?utm_source=newsletter&utm_medium=email",
            headers={"User-Agent": CHROME_IPHONE, "X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )

        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/target"

        job = click_queue.dequeue_nowait()
        assert job is not None
        assert job.data.ip_address == "198.51.100.4"
        assert job.data.user_agent == CHROME_IPHONE
        assert job.data.utm_source == "newsletter"
        assert job.data.session_id == response.cookies.get("sid")

    async def test_existing_session_id_is_reused(self, client, click_queue, make_short_url):
        await make_short_url(short_code="go")

        response = await client.get("/go", headers={"X-Session-Id": "known-session"})

        assert response.status_code == 302
        assert "sid" not in response.cookies
        assert click_queue.dequeue_nowait().data.session_id == "known-session"

    async def test_unknown_code(self, client):
        assert (await client.get("/nothere")).status_code == 404

    async def test_malformed_code(self, client):
        assert (await client.get("/bad!code")).status_code == 400

    async def test_inactive_link(self, client, make_short_url, click_queue):
        await make_short_url(short_code="off", is_active=False)

        response = await client.get("/off")

        assert response.status_code == 403
        assert response.json()["detail"] == "This link is no longer active."
        assert click_queue.size == 0

    async def test_click_limit(self, client, make_short_url):
        await make_short_url(short_code="twice", click_limit=2)

        assert (await client.get("/twice")).status_code == 302
        assert (await client.get("/twice")).status_code == 302
        assert (await client.get("/twice")).status_code == 403

    async def test_expired_link(self, client, make_short_url, past):
        await make_short_url(short_code="gone", expires_at=past)
        assert (await client.get("/gone")).status_code == 403

    async def test_password_required(self, client, make_short_url, click_queue):
        await make_short_url(short_code="secret", password_hash=hash_password("pw"), click_limit=1)

        response = await client.get("/secret")

        assert response.status_code == 401
        assert response.json()["detail"] == "Password required"
        assert click_queue.size == 0
        assert (await client.get("/analytics/secret")).json()["click_count"] == 0

    async def test_inaccessible_protected_link_is_forbidden(self, client, make_short_url, past):
        await make_short_url(short_code="secret", password_hash=hash_password("pw"), expires_at=past)
        assert (await client.get("/secret")).status_code == 403


class TestVerify:
    async def test_correct_password(self, client, make_short_url, click_queue):
        await make_short_url(short_code="secret", original_url="https://example.com/hidden",
                             password_hash=hash_password("pw"))

        response = await client.post("/secret/verify", json={"password": "pw"})

        assert response.status_code == 200
        assert response.json() == {"original_url": "https://example.com/hidden"}
        assert click_queue.size == 1
        assert (await client.get("/analytics/secret")).json()["click_count"] == 1

    async def test_last_allowed_click_after_password_prompt(self, client, make_short_url):
        await make_short_url(short_code="secret", password_hash=hash_password("pw"), click_limit=1)

        assert (await client.get("/secret")).status_code == 401
        assert (await client.post("/secret/verify", json={"password": "pw"})).status_code == 200
        assert (await client.post("/secret/verify", json={"password": "pw"})).status_code == 401
        assert (await client.get("/secret")).status_code == 403

    async def test_wrong_password_and_unknown_code_look_alike(self, client, make_short_url):
        await make_short_url(short_code="secret", password_hash=hash_password("pw"))

        wrong = await client.post("/secret/verify", json={"password": "nope"})
        unknown = await client.post("/missing/verify", json={"password": "pw"})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    @pytest.mark.parametrize("fields", [
        {"is_active": False},
        {"expires_at": datetime.now(timezone.utc) - timedelta(days=1)},
        {"click_limit": 1, "click_count": 1},
    ], ids=["inactive", "expired", "exhausted"])
    async def test_inaccessible_link_is_refused(self, client, make_short_url, click_queue, fields):
        await make_short_url(short_code="secret", password_hash=hash_password("pw"), **fields)

        response = await client.post("/secret/verify", json={"password": "pw"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid password or link"}
        assert click_queue.size == 0

    async def test_empty_password(self, client, make_short_url):
        await make_short_url(short_code="secret", password_hash=hash_password("pw"))
        assert (await client.post("/secret/verify", json={"password": ""})).status_code == 422


class TestAnalytics:
    async def test_summary_after_worker_runs(self, client, worker, make_short_url):
        await make_short_url(short_code="stats")
        await client.get("/stats", headers={"User-Agent": CHROME_IPHONE, "Referer": "https://t.co/x"})
        await client.get("/stats?utm_source=newsletter&utm_medium=email")
        await worker.drain()

        response = await client.get("/analytics/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["total_clicks"] == 2
        assert body["click_count"] == 2
        assert body["clicks_by_device_type"]["Mobile"] == 1
        assert body["clicks_by_traffic_source"] == {"Referral": 1, "Email": 1}
        assert body["clicks_by_country"] == {"Unknown": 2}
        assert body["daily_clicks"] is None

    async def test_summary_with_range(self, client, make_short_url, add_click):
        link = await make_short_url(short_code="stats")
        await add_click(link.id, datetime(2026, 1, 2, 9, tzinfo=timezone.utc))

        response = await client.get(
            "/analytics/stats",
            params={"start": "2026-01-01T00:00:00Z", "end": "2026-01-03T00:00:00Z"},
        )

        assert response.status_code == 200
        assert response.json()["daily_clicks"] == {
            "2026-01-01": 0, "2026-01-02": 1, "2026-01-03": 0,
        }

    async def test_inverted_range(self, client, make_short_url):
        await make_short_url(short_code="stats")
        response = await client.get(
            "/analytics/stats",
            params={"start": "2026-01-03T00:00:00Z", "end": "2026-01-01T00:00:00Z"},
        )
        assert response.status_code == 400

    async def test_too_wide_daily_range(self, client, make_short_url):
        await make_short_url(short_code="stats")
        response = await client.get(
            "/analytics/stats",
            params={"start": "0001-01-01T00:00:00Z", "end": "9999-12-31T23:59:59Z"},
        )
        assert response.status_code == 400
        assert "cannot exceed" in response.json()["detail"]

    async def test_unknown_code(self, client):
        assert (await client.get("/analytics/nothere")).status_code == 404

    async def test_recent_and_history(self, client, make_short_url, add_click):
        link = await make_short_url(short_code="stats")
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        for minutes in range(3):
            await add_click(link.id, base + timedelta(minutes=minutes), session_id=f"s-{minutes}")

        recent = await client.get("/analytics/stats/recent", params={"count": 2})
        assert recent.status_code == 200
        assert [item["session_id"] for item in recent.json()] == ["s-2", "s-1"]

        history = await client.get("/analytics/stats/history", params={"page": 2, "page_size": 2})
        assert history.status_code == 200
        body = history.json()
        assert [item["session_id"] for item in body["items"]] == ["s-0"]
        assert body["total_pages"] == 2
        assert body["has_previous"] is True

        assert (await client.get("/analytics/stats/recent", params={"count": 500})).status_code == 400
        assert (await client.get("/analytics/stats/history", params={"page": 0})).status_code == 400

    async def test_realtime_and_hourly(self, client, make_short_url, add_click):
        link = await make_short_url(short_code="stats")
        now = datetime.now(timezone.utc)
        await add_click(link.id, now - timedelta(minutes=5))
        await add_click(link.id, now - timedelta(days=3))

        realtime = await client.get("/analytics/stats/realtime")
        assert realtime.json() == {"short_code": "stats", "clicks_last_24h": 1}

        day = (now - timedelta(days=3)).date()
        hourly = await client.get("/analytics/stats/hourly", params={"day": day.isoformat()})
        assert hourly.status_code == 200
        assert sum(hourly.json()["hourly_clicks"].values()) == 1

    async def test_cleanup(self, client, make_short_url, add_click, stored_clicks):
        link = await make_short_url(short_code="stats")
        now = datetime.now(timezone.utc)
        await add_click(link.id, now - timedelta(days=40))
        await add_click(link.id, now - timedelta(days=1))

        response = await client.delete("/analytics/cleanup", params={"retention_days": 30})

        assert response.status_code == 200
        assert response.json() == {"deleted": 1, "retention_days": 30}
        assert len(await stored_clicks(link.id)) == 1

        assert (await client.delete("/analytics/cleanup", params={"retention_days": 0})).status_code == 400


class TestService:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "click_tracking" in response.json()

    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Process-Time" in response.headers

    async def test_request_id_generated(self, client):
        response = await client.get("/")
        assert response.headers["X-Request-ID"]
