"""
Keep the events table at one record per (location_name, event_date).

Two mechanisms share this job. At ingestion, `Reconciler.ingest` checks every
candidate against the store before inserting it. Separately, `reconcile` scans
the whole table and deletes every member of a duplicate group except the
earliest-created one. The cleanup pass is the backstop for races between
overlapping ingestion runs, which the ingest-time check cannot see.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from fireworks_finder.services.extraction import ExtractionCandidate
from fireworks_finder.services.settings import load_settings
from fireworks_finder.services.store import EVENTS_TABLE, EventStore, SQLiteEventStore, StoreError

LOGGER = logging.getLogger(__name__)


@dataclass
class IngestResult:
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0


def group_key(record: Dict[str, Any]) -> tuple[str, str]:
    return (record.get("location_name") or "", record.get("event_date") or "")


class Reconciler:
    def __init__(self, store: EventStore, table: str = EVENTS_TABLE) -> None:
        self.store = store
        self.table = table

    def is_duplicate(self, candidate: ExtractionCandidate) -> bool:
        """Name match OR (location, date) match; store errors count as "not a duplicate"."""
        try:
            by_name = self.store.query(self.table, {"name": candidate.name}, limit=1)
            if by_name:
                LOGGER.debug("Duplicate by name: %s", candidate.name)
                return True
            by_key = self.store.query(
                self.table,
                {"location_name": candidate.location_name, "event_date": candidate.event_date},
                limit=1,
            )
        except StoreError as exc:
            LOGGER.warning("Duplicate check failed for '%s'; inserting anyway: %s", candidate.name, exc)
            return False
        if by_key:
            LOGGER.debug(
                "Duplicate by location/date: %s on %s",
                candidate.location_name,
                candidate.event_date,
            )
            return True
        return False

    def ingest(self, candidates: Iterable[ExtractionCandidate]) -> IngestResult:
        # One candidate at a time: the check-then-insert of the next candidate
        # must see the previous insert.
        result = IngestResult()
        for candidate in candidates:
            if self.is_duplicate(candidate):
                result.duplicates += 1
                continue
            try:
                self.store.insert(self.table, candidate.to_record())
            except StoreError as exc:
                LOGGER.warning("Failed to insert '%s': %s", candidate.name, exc)
                result.failed += 1
                continue
            LOGGER.info("Inserted %s (%s)", candidate.name, candidate.event_date)
            result.inserted += 1
        return result

    def find_duplicate_groups(self, records: Sequence[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
        groups: "OrderedDict[tuple[str, str], List[Dict[str, Any]]]" = OrderedDict()
        for record in records:
            groups.setdefault(group_key(record), []).append(record)
        return [members for members in groups.values() if len(members) > 1]

    def reconcile(self) -> Dict[str, int]:
        summary = {"found": 0, "deleted": 0, "failed": 0}
        try:
            records = self.store.query(self.table, order_by=["created_at", "id"])
        except StoreError as exc:
            LOGGER.error("Cleanup aborted; could not read %s: %s", self.table, exc)
            return summary
        groups = self.find_duplicate_groups(records)
        LOGGER.info("Scanned %s records; %s duplicate groups.", len(records), len(groups))
        for members in groups:
            keeper, *surplus = members
            summary["found"] += len(surplus)
            for record in surplus:
                try:
                    self.store.delete(self.table, record["id"])
                except StoreError as exc:
                    LOGGER.warning(
                        "Failed to delete duplicate id=%s (%s, %s): %s",
                        record["id"],
                        record.get("location_name"),
                        record.get("event_date"),
                        exc,
                    )
                    summary["failed"] += 1
                    continue
                summary["deleted"] += 1
            LOGGER.debug(
                "Kept id=%s for %s on %s",
                keeper["id"],
                keeper.get("location_name"),
                keeper.get("event_date"),
            )
        LOGGER.info(
            "Cleanup complete: found %s duplicates, deleted %s, failed %s.",
            summary["found"],
            summary["deleted"],
            summary["failed"],
        )
        return summary


def run_cleanup(store: EventStore) -> Dict[str, int]:
    return Reconciler(store).reconcile()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Delete duplicate fireworks events from the store.")
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help="SQLite database holding the events table (default: FIREWORKS_DB_PATH or datasets/fireworks/events.sqlite).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: FIREWORKS_LOG_LEVEL or INFO).",
    )
    args = parser.parse_args(argv)

    settings = load_settings().with_overrides(db_path=args.db_path, log_level=args.log_level)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        force=True,
    )
    try:
        store = SQLiteEventStore(settings.db_path)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Could not open store at %s", settings.db_path)
        return 1
    try:
        summary = run_cleanup(store)
    finally:
        store.close()
    print(f"found={summary['found']} deleted={summary['deleted']} failed={summary['failed']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
