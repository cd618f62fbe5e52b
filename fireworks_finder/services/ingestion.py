"""
Scrape the configured fireworks pages and load new events into the store.

`EventIngestor.run` processes every source in turn: fetch, segment, extract,
batch-dedupe, then a sequential duplicate-check-and-insert per candidate. A
failing source is logged and reported in the run summary; it never stops the
remaining sources.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Sequence

import requests

from fireworks_finder.services.extraction import ExtractionCandidate
from fireworks_finder.services.reconciler import Reconciler, run_cleanup
from fireworks_finder.services.settings import Settings, load_settings, parse_event_date
from fireworks_finder.services.sources import Fetcher, SourceStrategy, build_default_sources, fetch_page
from fireworks_finder.services.store import EventStore, SQLiteEventStore

LOGGER = logging.getLogger(__name__)


class EventIngestor:
    """Runs every source strategy and hands the candidates to the reconciler."""

    def __init__(
        self,
        sources: Sequence[SourceStrategy],
        store: EventStore | None,
        settings: Settings,
        fetcher: Fetcher = fetch_page,
    ) -> None:
        self.sources = list(sources)
        self.store = store
        self.settings = settings
        self.fetcher = fetcher
        self.reconciler = Reconciler(store) if store is not None else None

    def collect(self, source: SourceStrategy) -> List[ExtractionCandidate]:
        """Candidates for one source; raises on fetch failure."""
        LOGGER.info("Scraping %s ...", source.name)
        document = self.fetcher(source.url, self.settings.request_headers, self.settings.fetch_timeout)
        return source.extract_candidates(document, self.settings)

    def run(self) -> Dict[str, Dict[str, Any]]:
        LOGGER.info(
            "Running EventIngestor with %s sources (event_date=%s)",
            len(self.sources),
            self.settings.event_date.isoformat(),
        )
        summary: Dict[str, Dict[str, Any]] = {}
        for source in self.sources:
            entry: Dict[str, Any] = {"count": 0, "found": 0, "duplicates": 0, "failed": 0, "error": None}
            summary[source.name] = entry
            try:
                candidates = self.collect(source)
            except requests.RequestException as exc:
                LOGGER.warning("Failed to fetch %s: %s", source.url, exc)
                entry["error"] = str(exc)
                continue
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Error while scraping %s: %s", source.name, exc)
                entry["error"] = str(exc)
                continue
            entry["found"] = len(candidates)
            if self.reconciler is None:
                continue
            result = self.reconciler.ingest(candidates)
            entry["count"] = result.inserted
            entry["duplicates"] = result.duplicates
            entry["failed"] = result.failed
            LOGGER.info(
                "Source %s: %s found, %s inserted, %s duplicates, %s failed",
                source.name,
                len(candidates),
                result.inserted,
                result.duplicates,
                result.failed,
            )
        errors = [f"{name}: {entry['error']}" for name, entry in summary.items() if entry["error"]]
        if errors:
            LOGGER.warning("Source errors encountered: %s", "; ".join(errors))
        return summary

    def preview(self) -> List[ExtractionCandidate]:
        """Extract from every source without touching the store."""
        collected: List[ExtractionCandidate] = []
        for source in self.sources:
            try:
                collected.extend(self.collect(source))
            except requests.RequestException as exc:
                LOGGER.warning("Failed to fetch %s: %s", source.url, exc)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Error while previewing %s: %s", source.name, exc)
        return collected


def run_ingestion(
    store: EventStore,
    settings: Settings,
    sources: Sequence[SourceStrategy] | None = None,
    fetcher: Fetcher = fetch_page,
) -> Dict[str, Dict[str, Any]]:
    ingestor = EventIngestor(
        sources if sources is not None else build_default_sources(),
        store,
        settings,
        fetcher=fetcher,
    )
    return ingestor.run()


def select_sources(names: Sequence[str] | None) -> List[SourceStrategy]:
    sources = build_default_sources()
    if not names:
        return sources
    wanted = set(names)
    unknown = wanted - {source.name for source in sources}
    if unknown:
        raise ValueError(f"Unknown source(s): {', '.join(sorted(unknown))}")
    return [source for source in sources if source.name in wanted]


def _parse_cli_date(value: str) -> date:
    try:
        return parse_event_date(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Scrape fireworks events into the event store.")
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help="SQLite database for events (default: FIREWORKS_DB_PATH or datasets/fireworks/events.sqlite).",
    )
    parser.add_argument(
        "--event-date",
        type=_parse_cli_date,
        default=None,
        help="Primary holiday date used when a page gives no date (YYYY-MM-DD, default 2025-07-04).",
    )
    parser.add_argument(
        "--source",
        action="append",
        default=None,
        help="Only scrape this source (repeatable), e.g. --source fox9.com.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print extracted candidates as JSON lines without writing to the store.",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Run the duplicate cleanup pass after ingestion.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: FIREWORKS_LOG_LEVEL or INFO).",
    )
    args = parser.parse_args(argv)

    settings = load_settings().with_overrides(
        db_path=args.db_path,
        event_date=args.event_date,
        log_level=args.log_level,
    )
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        force=True,
    )
    LOGGER.info("Starting fireworks ingestion with args: %s", args)

    try:
        sources = select_sources(args.source)
    except ValueError as exc:
        parser.error(str(exc))

    if args.dry_run:
        ingestor = EventIngestor(sources, None, settings)
        for candidate in ingestor.preview():
            print(json.dumps(candidate.to_record()))
        return 0

    try:
        store = SQLiteEventStore(settings.db_path)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Could not open store at %s", settings.db_path)
        return 1
    try:
        summary = run_ingestion(store, settings, sources)
        for name, entry in summary.items():
            print(f"{name}: count={entry['count']} error={entry['error']}")
        if args.cleanup:
            cleanup = run_cleanup(store)
            print(f"cleanup: found={cleanup['found']} deleted={cleanup['deleted']}")
    except Exception:  # noqa: BLE001
        LOGGER.exception("Ingestion run failed.")
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
