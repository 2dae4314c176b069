"""Tests for the location ingestion and windowed read endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import add_location
from leaftrack.models.location import Location


async def _count_locations(db_session: AsyncSession) -> int:
    result = await db_session.execute(select(func.count(Location.id)))
    return result.scalar() or 0


# ── Ingestion ───────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_salesman_submits_location(async_client: AsyncClient, salesman, salesman_headers):
    """POST /locations stores the fix and resolves the owner."""
    resp = await async_client.post(
        "/api/locations",
        json={"latitude": 22.5726, "longitude": 88.3639, "accuracy": 12},
        headers=salesman_headers,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["success"] is True
    loc = data["location"]
    assert loc["_id"] is not None
    assert loc["latitude"] == 22.5726
    assert loc["longitude"] == 88.3639
    assert loc["accuracy"] == 12
    assert loc["salesman_id"] == {
        "_id": salesman.id,
        "name": "Ravi Kumar",
        "email": "ravi@leaftrack.test",
    }
    assert loc["timestamp"] is not None


@pytest.mark.asyncio
async def test_submit_keeps_client_timestamp(async_client: AsyncClient, salesman_headers):
    """A client-supplied timestamp is persisted as given, normalised to UTC."""
    sent = datetime.now(timezone(timedelta(hours=5, minutes=30))) - timedelta(minutes=3)
    resp = await async_client.post(
        "/api/locations",
        json={"latitude": 10, "longitude": 20, "timestamp": sent.isoformat()},
        headers=salesman_headers,
    )
    assert resp.status_code == 201
    stored = datetime.fromisoformat(resp.json()["location"]["timestamp"])
    assert abs((stored - sent).total_seconds()) < 1
    assert stored.utcoffset() == timedelta(0)


@pytest.mark.asyncio
async def test_each_submission_creates_a_row(
    async_client: AsyncClient, db_session: AsyncSession, salesman_headers
):
    """Identical fixes are never deduplicated or upserted."""
    payload = {"latitude": 22.5, "longitude": 88.3}
    for _ in range(3):
        resp = await async_client.post("/api/locations", json=payload, headers=salesman_headers)
        assert resp.status_code == 201
    assert await _count_locations(db_session) == 3


@pytest.mark.asyncio
async def test_submit_accepts_zero_coordinates(async_client: AsyncClient, salesman_headers):
    """The equator / prime meridian are valid positions."""
    resp = await async_client.post(
        "/api/locations", json={"latitude": 0, "longitude": 0}, headers=salesman_headers
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_submit_without_token_is_unauthorized(async_client: AsyncClient):
    resp = await async_client.post("/api/locations", json={"latitude": 1, "longitude": 1})
    assert resp.status_code == 401
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_submit_with_garbage_token_is_unauthorized(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/locations",
        json={"latitude": 1, "longitude": 1},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_cannot_submit_location(
    async_client: AsyncClient, db_session: AsyncSession, admin_headers
):
    """Only salesmen may submit their own location."""
    resp = await async_client.post(
        "/api/locations", json={"latitude": 1, "longitude": 1}, headers=admin_headers
    )
    assert resp.status_code == 403
    assert await _count_locations(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "lat,lon,accepted",
    [
        (90, 180, True),
        (-90, -180, True),
        (90.0001, 0, False),
        (-90.0001, 0, False),
        (0, 180.0001, False),
        (0, -180.0001, False),
        (95, 0, False),
    ],
)
async def test_coordinate_bounds(
    async_client: AsyncClient, db_session: AsyncSession, salesman_headers, lat, lon, accepted
):
    """BadRequest iff latitude or longitude is outside its range."""
    resp = await async_client.post(
        "/api/locations", json={"latitude": lat, "longitude": lon}, headers=salesman_headers
    )
    if accepted:
        assert resp.status_code == 201
        assert await _count_locations(db_session) == 1
    else:
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert await _count_locations(db_session) == 0


@pytest.mark.asyncio
async def test_missing_coordinates_rejected(async_client: AsyncClient, salesman_headers):
    resp = await async_client.post(
        "/api/locations", json={"latitude": 22.5}, headers=salesman_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_negative_accuracy_rejected(async_client: AsyncClient, salesman_headers):
    resp = await async_client.post(
        "/api/locations",
        json={"latitude": 22.5, "longitude": 88.3, "accuracy": -1},
        headers=salesman_headers,
    )
    assert resp.status_code == 400


# ── Windowed read ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_end_to_end_role_scoping(
    async_client: AsyncClient,
    salesman,
    salesman_headers,
    other_salesman_headers,
    admin_headers,
):
    """Owner and admin see the fix; another salesman sees nothing."""
    post = await async_client.post(
        "/api/locations",
        json={"latitude": 22.5726, "longitude": 88.3639, "accuracy": 12},
        headers=salesman_headers,
    )
    assert post.status_code == 201

    own = await async_client.get("/api/locations?hours=1", headers=salesman_headers)
    assert own.status_code == 200
    rows = own.json()["locations"]
    assert len(rows) == 1
    assert rows[0]["latitude"] == 22.5726
    assert rows[0]["longitude"] == 88.3639
    assert rows[0]["salesman_id"]["_id"] == salesman.id

    other = await async_client.get("/api/locations?hours=1", headers=other_salesman_headers)
    assert other.json()["locations"] == []
    assert other.json()["count"] == 0

    as_admin = await async_client.get("/api/locations?hours=1", headers=admin_headers)
    assert [r["_id"] for r in as_admin.json()["locations"]] == [rows[0]["_id"]]


@pytest.mark.asyncio
async def test_salesman_cannot_read_others_even_when_asking(
    async_client: AsyncClient, db_session: AsyncSession, salesman, other_salesman, salesman_headers
):
    """Role scoping overrides any salesman_id the caller passes."""
    now = datetime.now(timezone.utc)
    await add_location(db_session, other_salesman, now - timedelta(minutes=5))
    mine = await add_location(db_session, salesman, now - timedelta(minutes=10))

    resp = await async_client.get(
        f"/api/locations?salesman_id={other_salesman.id}", headers=salesman_headers
    )
    assert resp.status_code == 200
    assert [r["_id"] for r in resp.json()["locations"]] == [mine.id]


@pytest.mark.asyncio
async def test_admin_filter_by_salesman(
    async_client: AsyncClient, db_session: AsyncSession, salesman, other_salesman, admin_headers
):
    now = datetime.now(timezone.utc)
    await add_location(db_session, salesman, now - timedelta(minutes=1))
    theirs = await add_location(db_session, other_salesman, now - timedelta(minutes=2))

    everyone = await async_client.get("/api/locations", headers=admin_headers)
    assert everyone.json()["count"] == 2

    filtered = await async_client.get(
        f"/api/locations?salesman_id={other_salesman.id}", headers=admin_headers
    )
    assert [r["_id"] for r in filtered.json()["locations"]] == [theirs.id]


@pytest.mark.asyncio
async def test_window_newest_first_and_limited(
    async_client: AsyncClient, db_session: AsyncSession, salesman, salesman_headers
):
    """Result is exactly the rows inside the window, newest first, truncated to limit."""
    now = datetime.now(timezone.utc)
    offsets = [10, 50, 90, 150, 200]  # minutes ago
    rows = {m: await add_location(db_session, salesman, now - timedelta(minutes=m)) for m in offsets}

    resp = await async_client.get("/api/locations?hours=2", headers=salesman_headers)
    ids = [r["_id"] for r in resp.json()["locations"]]
    assert ids == [rows[10].id, rows[50].id, rows[90].id]

    resp = await async_client.get("/api/locations?hours=2&limit=2", headers=salesman_headers)
    ids = [r["_id"] for r in resp.json()["locations"]]
    assert ids == [rows[10].id, rows[50].id]

    timestamps = [r["timestamp"] for r in resp.json()["locations"]]
    assert timestamps == sorted(timestamps, reverse=True)


@pytest.mark.asyncio
async def test_default_window_is_24_hours(
    async_client: AsyncClient, db_session: AsyncSession, salesman, salesman_headers
):
    now = datetime.now(timezone.utc)
    recent = await add_location(db_session, salesman, now - timedelta(hours=23))
    await add_location(db_session, salesman, now - timedelta(hours=25))

    resp = await async_client.get("/api/locations", headers=salesman_headers)
    assert [r["_id"] for r in resp.json()["locations"]] == [recent.id]


@pytest.mark.asyncio
async def test_window_never_reaches_past_retention(
    async_client: AsyncClient, db_session: AsyncSession, salesman, salesman_headers
):
    """Rows older than 7 days are hidden even before the sweep removes them."""
    now = datetime.now(timezone.utc)
    fresh = await add_location(db_session, salesman, now - timedelta(days=6))
    await add_location(db_session, salesman, now - timedelta(days=8))

    resp = await async_client.get("/api/locations?hours=1000", headers=salesman_headers)
    assert [r["_id"] for r in resp.json()["locations"]] == [fresh.id]


@pytest.mark.asyncio
async def test_zero_hour_window_is_empty(
    async_client: AsyncClient, db_session: AsyncSession, salesman, salesman_headers, admin_headers
):
    await add_location(db_session, salesman, datetime.now(timezone.utc) - timedelta(minutes=1))

    resp = await async_client.get("/api/locations?hours=0", headers=salesman_headers)
    assert resp.status_code == 200
    assert resp.json()["locations"] == []

    export = await async_client.get("/api/locations/export?hours=0", headers=admin_headers)
    assert export.status_code == 200
    assert len(export.text.strip().splitlines()) == 1


@pytest.mark.asyncio
async def test_read_requires_token(async_client: AsyncClient):
    resp = await async_client.get("/api/locations")
    assert resp.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["hours=-3", "limit=0", "limit=5000", "hours=abc"])
async def test_read_rejects_bad_parameters(async_client: AsyncClient, salesman_headers, query):
    resp = await async_client.get(f"/api/locations?{query}", headers=salesman_headers)
    assert resp.status_code == 400


# ── Export ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_admin_exports_csv(
    async_client: AsyncClient, db_session: AsyncSession, salesman, admin_headers
):
    await add_location(db_session, salesman, datetime.now(timezone.utc) - timedelta(minutes=5))
    resp = await async_client.get("/api/locations/export", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith("id,salesman_id,salesman_name")
    assert len(lines) == 2
    assert "Ravi Kumar" in lines[1]


@pytest.mark.asyncio
async def test_salesman_cannot_export(async_client: AsyncClient, salesman_headers):
    resp = await async_client.get("/api/locations/export", headers=salesman_headers)
    assert resp.status_code == 403
