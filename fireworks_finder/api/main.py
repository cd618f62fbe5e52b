"""
FastAPI app serving fireworks events from the SQLite store and exposing the
scrape/cleanup triggers.
"""

from __future__ import annotations

import logging
import time
from datetime import date, timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from fireworks_finder.services import gazetteer
from fireworks_finder.services.ingestion import run_ingestion
from fireworks_finder.services.reconciler import run_cleanup
from fireworks_finder.services.settings import Settings, load_settings
from fireworks_finder.services.sources import Fetcher, SourceStrategy, build_default_sources, debug_sources, fetch_page
from fireworks_finder.services.store import EVENTS_TABLE, LIVE_REPORTS_TABLE, EventStore, SQLiteEventStore, StoreError

UPCOMING_WINDOW_DAYS = 30
LIVE_REPORT_WINDOW_MS = 30 * 60 * 1000
LOGGER = logging.getLogger("fireworks_api")
if not LOGGER.handlers:
    LOGGER.setLevel(logging.INFO)
    LOG_PATH = Path("logs")
    LOG_PATH.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(LOG_PATH / "api_requests.log")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    file_handler.setFormatter(formatter)
    LOGGER.addHandler(file_handler)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings = Depends(get_settings)) -> Iterator[EventStore]:
    store = SQLiteEventStore(settings.db_path)
    try:
        yield store
    finally:
        store.close()


def get_sources() -> List[SourceStrategy]:
    return build_default_sources()


def get_fetcher() -> Fetcher:
    return fetch_page


class EventIn(BaseModel):
    name: str
    location_name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    event_date: date
    event_time: str = "Evening"
    cost: Optional[str] = None
    source: Optional[str] = None
    verified: bool = False
    description: Optional[str] = None


class EventOut(BaseModel):
    id: int
    name: str
    location_name: str
    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")
    event_date: str
    event_time: Optional[str] = None
    cost: Optional[str] = None
    source: Optional[str] = None
    verified: bool
    description: Optional[str] = None
    created_at: str
    distance: Optional[float] = Field(default=None, description="Miles from the requested point")


class LiveReportIn(BaseModel):
    event_id: Optional[int] = None
    location_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: Optional[str] = None
    message: Optional[str] = None


class LiveReportOut(LiveReportIn):
    id: int
    report_timestamp: int
    created_at: str


class SourceRunOut(BaseModel):
    count: int
    found: int
    duplicates: int
    failed: int
    error: Optional[str] = None


class CleanupOut(BaseModel):
    found: int
    deleted: int
    failed: int


app = FastAPI(title="Fireworks Finder API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _store_failure(action: str, exc: StoreError) -> HTTPException:
    LOGGER.error("Failed to %s: %s", action, exc)
    return HTTPException(status_code=500, detail=f"Failed to {action}")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/events", response_model=list[EventOut])
def list_events(
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    store: EventStore = Depends(get_store),
) -> list[dict[str, Any]]:
    LOGGER.info("Fetching events lat=%s lng=%s", lat, lng)
    try:
        rows = store.query(EVENTS_TABLE, {"verified": True}, order_by="event_date")
    except StoreError as exc:
        raise _store_failure("fetch events", exc) from exc
    if lat is not None and lng is not None:
        for row in rows:
            row["distance"] = gazetteer.distance_miles(lat, lng, row["lat"], row["lng"])
    return rows


@app.get("/api/events/upcoming", response_model=list[EventOut])
def upcoming_events(store: EventStore = Depends(get_store)) -> list[dict[str, Any]]:
    today = date.today()
    horizon = today + timedelta(days=UPCOMING_WINDOW_DAYS)
    try:
        return store.query(
            EVENTS_TABLE,
            [
                ("verified", "=", True),
                ("event_date", ">=", today.isoformat()),
                ("event_date", "<=", horizon.isoformat()),
            ],
            order_by="event_date",
        )
    except StoreError as exc:
        raise _store_failure("fetch upcoming events", exc) from exc


@app.get("/api/events/search", response_model=list[EventOut])
def search_events(
    q: str = Query(..., min_length=1, description="Text to look for in name, location or description"),
    store: EventStore = Depends(get_store),
) -> list[dict[str, Any]]:
    LOGGER.info("Searching events q=%s", q)
    try:
        return store.search(
            EVENTS_TABLE,
            ["name", "location_name", "description"],
            q,
            filters={"verified": True},
            order_by="event_date",
        )
    except StoreError as exc:
        raise _store_failure("search events", exc) from exc


@app.post("/api/events", response_model=EventOut, status_code=201)
def create_event(event: EventIn, store: EventStore = Depends(get_store)) -> dict[str, Any]:
    record = event.model_dump()
    record["event_date"] = event.event_date.isoformat()
    if event.lat is None or event.lng is None:
        coordinates = gazetteer.resolve(gazetteer.canonicalize(event.location_name))
        record["lat"] = coordinates.lat
        record["lng"] = coordinates.lng
    try:
        return store.insert(EVENTS_TABLE, record)
    except StoreError as exc:
        raise _store_failure("create event", exc) from exc


@app.get("/api/reports", response_model=list[LiveReportOut])
def recent_reports(store: EventStore = Depends(get_store)) -> list[dict[str, Any]]:
    cutoff = int(time.time() * 1000) - LIVE_REPORT_WINDOW_MS
    try:
        return store.query(
            LIVE_REPORTS_TABLE,
            [("report_timestamp", ">=", cutoff)],
            order_by="report_timestamp",
            descending=True,
        )
    except StoreError as exc:
        raise _store_failure("fetch live reports", exc) from exc


@app.post("/api/reports", response_model=LiveReportOut, status_code=201)
def create_report(report: LiveReportIn, store: EventStore = Depends(get_store)) -> dict[str, Any]:
    record = report.model_dump()
    record["report_timestamp"] = int(time.time() * 1000)
    try:
        return store.insert(LIVE_REPORTS_TABLE, record)
    except StoreError as exc:
        raise _store_failure("create live report", exc) from exc


@app.post("/scrape", response_model=dict[str, SourceRunOut])
def scrape(
    store: EventStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    sources: List[SourceStrategy] = Depends(get_sources),
    fetcher: Fetcher = Depends(get_fetcher),
) -> dict[str, dict[str, Any]]:
    LOGGER.info("Scrape triggered for %s sources", len(sources))
    return run_ingestion(store, settings, sources, fetcher=fetcher)


@app.post("/scrape/cleanup", response_model=CleanupOut)
def cleanup(store: EventStore = Depends(get_store)) -> dict[str, int]:
    LOGGER.info("Cleanup triggered")
    return run_cleanup(store)


@app.get("/scrape/debug")
def scrape_debug(
    settings: Settings = Depends(get_settings),
    sources: List[SourceStrategy] = Depends(get_sources),
    fetcher: Fetcher = Depends(get_fetcher),
) -> dict[str, Any]:
    return {
        "message": "Debug information for scrapers",
        "results": debug_sources(sources, settings, fetcher=fetcher),
    }
