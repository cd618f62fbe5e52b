#!/usr/bin/env python3
"""
Entry point used by cron to scrape fireworks event pages into the store.

Usage:
    python3 scripts/ingest_events.py --db-path datasets/fireworks/events.sqlite --cleanup
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from fireworks_finder.services.ingestion import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
