"""Intra-batch duplicate removal for a single source's extraction run."""

from __future__ import annotations

import logging
from typing import Iterable, List

from fireworks_finder.services.extraction import ExtractionCandidate

LOGGER = logging.getLogger(__name__)

DEDUPE_KEYS = ("location_name", "name")


def dedupe(
    candidates: Iterable[ExtractionCandidate],
    key: str = "location_name",
) -> List[ExtractionCandidate]:
    """Keep the first candidate per `key` value, preserving order."""
    if key not in DEDUPE_KEYS:
        raise ValueError(f"Unsupported dedupe key '{key}'; expected one of {DEDUPE_KEYS}.")
    seen: set[str] = set()
    unique: List[ExtractionCandidate] = []
    dropped = 0
    for candidate in candidates:
        value = getattr(candidate, key)
        if value in seen:
            dropped += 1
            continue
        seen.add(value)
        unique.append(candidate)
    if dropped:
        LOGGER.debug("Dropped %s in-batch duplicates by %s.", dropped, key)
    return unique
