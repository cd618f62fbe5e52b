from datetime import date, timedelta
from pathlib import Path
from typing import Mapping

import pytest
import requests
from fastapi.testclient import TestClient

from fireworks_finder.api.main import app, get_fetcher, get_settings, get_sources, get_store
from fireworks_finder.services.segmentation import RawDocument
from fireworks_finder.services.settings import Settings
from fireworks_finder.services.sources import build_default_sources
from fireworks_finder.services.store import EVENTS_TABLE, SQLiteEventStore

TWIN_CITIES_URL = "https://twincitiesfamily.com/4th-of-july-events-fireworks/"
TWIN_CITIES_HTML = """
<html><body>
<h3>Stillwater Lumberjack Days Celebration</h3>
<p>Lowell Park downtown Stillwater, July 4.</p>
</body></html>
"""


def fake_fetch(url: str, headers: Mapping[str, str], timeout: int) -> RawDocument:
    if url != TWIN_CITIES_URL:
        raise requests.ConnectionError(f"Connection refused: {url}")
    return RawDocument(source=url, text=TWIN_CITIES_HTML, url=url)


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteEventStore:
    return SQLiteEventStore(tmp_path / "events.sqlite")


@pytest.fixture()
def client(store: SQLiteEventStore):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: Settings(db_path=store.db_path)
    app.dependency_overrides[get_sources] = build_default_sources
    app.dependency_overrides[get_fetcher] = lambda: fake_fetch
    yield TestClient(app)
    app.dependency_overrides.clear()
    store.close()


def add_event(client: TestClient, name: str, location: str, event_date: str, verified: bool = True) -> dict:
    response = client.post(
        "/api/events",
        json={
            "name": name,
            "location_name": location,
            "event_date": event_date,
            "verified": verified,
            "description": f"{name} over the lake",
        },
    )
    assert response.status_code == 201
    return response.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_create_event_fills_coordinates(client: TestClient) -> None:
    created = add_event(client, "Edina Fireworks", "Edina", "2025-07-04")

    assert created["lat"] == pytest.approx(44.8897)
    assert created["lng"] == pytest.approx(-93.3498)
    assert created["verified"] is True
    assert created["event_time"] == "Evening"


def test_list_events_only_verified_with_distance(client: TestClient) -> None:
    add_event(client, "Edina Fireworks", "Edina", "2025-07-04")
    add_event(client, "Duluth Fireworks", "Duluth", "2025-07-03")
    add_event(client, "Unreviewed Fireworks", "Anoka", "2025-07-04", verified=False)

    events = client.get("/api/events", params={"lat": 44.9778, "lng": -93.2650}).json()

    assert [event["name"] for event in events] == ["Duluth Fireworks", "Edina Fireworks"]
    assert events[1]["distance"] == pytest.approx(8.0, abs=2.0)
    assert events[0]["distance"] > 100


def test_list_events_rejects_bad_latitude(client: TestClient) -> None:
    assert client.get("/api/events", params={"lat": 120, "lng": 0}).status_code == 422


def test_search_matches_description(client: TestClient) -> None:
    add_event(client, "Edina Fireworks", "Edina", "2025-07-04")
    add_event(client, "Anoka Parade", "Anoka", "2025-07-04")

    results = client.get("/api/events/search", params={"q": "EDINA"}).json()

    assert [event["name"] for event in results] == ["Edina Fireworks"]


def test_upcoming_window(client: TestClient) -> None:
    today = date.today()
    add_event(client, "Soon", "Edina", (today + timedelta(days=3)).isoformat())
    add_event(client, "Later", "Eagan", (today + timedelta(days=60)).isoformat())
    add_event(client, "Past", "Anoka", (today - timedelta(days=1)).isoformat())

    names = [event["name"] for event in client.get("/api/events/upcoming").json()]

    assert names == ["Soon"]


def test_scrape_then_cleanup(client: TestClient, store: SQLiteEventStore) -> None:
    summary = client.post("/scrape").json()

    assert summary["twincitiesfamily.com"]["count"] == 1
    assert summary["fox9.com"]["error"]
    assert summary["familyfuntwincities.com"]["count"] == 0

    record = store.query(EVENTS_TABLE)[0]
    record.pop("id")
    record.pop("created_at")
    record["name"] = "Stillwater Fireworks"
    store.insert(EVENTS_TABLE, record)

    cleanup = client.post("/scrape/cleanup").json()

    assert cleanup == {"found": 1, "deleted": 1, "failed": 0}
    assert [row["name"] for row in store.query(EVENTS_TABLE)] == ["Stillwater Celebration"]


def test_live_reports_round_trip(client: TestClient) -> None:
    response = client.post(
        "/api/reports",
        json={"location_name": "Edina", "status": "started", "message": "Show just began"},
    )
    assert response.status_code == 201

    reports = client.get("/api/reports").json()

    assert [report["message"] for report in reports] == ["Show just began"]
    assert reports[0]["report_timestamp"] > 0


def test_scrape_debug(client: TestClient) -> None:
    body = client.get("/scrape/debug").json()

    assert body["results"]["twincitiesfamily.com"]["status"] == "success"
    assert body["results"]["fox9.com"]["status"] == "error"
