"""
Turn a single text block into at most one event candidate.

The heuristics are small named functions applied in a fixed order (keyword
gate, location, time, date, name, coordinates, description). Any step that
finds nothing ends extraction for the block; that is the common case and not
an error.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterator, Pattern, Sequence

from fireworks_finder.services import gazetteer
from fireworks_finder.services.segmentation import RawDocument, SegmentRule, TextBlock, segment
from fireworks_finder.services.settings import Settings

LOGGER = logging.getLogger(__name__)

DEFAULT_EVENT_TIME = "Evening"
JULY = 7

RELEVANCE_KEYWORDS = ("firework", "celebration", "july", "4th")
BROAD_RELEVANCE_KEYWORDS = (
    "firework",
    "celebration",
    "july",
    "4th",
    "independence",
    "display",
    "festival",
)

# Clock times, bare hours, or "dusk"/"evening"; the first hit in the block wins.
SCAN_TIME_PATTERN = re.compile(
    r"(\d{1,2}:\d{2}\s*[ap]m?|\d{1,2}\s*[ap]m|dusk|evening)",
    re.IGNORECASE,
)
LISTING_TIME_PATTERN = re.compile(
    r"(\d{1,2}:\d{2}\s*[ap]\.?m\.?|\d{1,2}\s*[ap]\.?m\.?|dusk|nightfall)",
    re.IGNORECASE,
)
# "p.m." keeps its dots; a full stop after a bare "pm" ends the sentence.
GENERAL_TIME_PATTERN = re.compile(
    r"(\d{1,2}:\d{2}\s*[ap](?:\.m\.|m\b)|\d{1,2}\s*[ap](?:\.m\.|m\b)|dusk|evening|nightfall)",
    re.IGNORECASE,
)
JULY_DAY_PATTERN = re.compile(r"july\s*(\d{1,2})", re.IGNORECASE)
LITERAL_JULY_DAYS = (3, 5, 6)


class DateMode(str, Enum):
    JULY_DAY = "july-day"
    LITERAL = "literal"


class VocabularyCase(str, Enum):
    UPPER = "upper"
    EXACT = "exact"


@dataclass
class ExtractionCandidate:
    name: str
    location_name: str
    lat: float
    lng: float
    event_date: str
    event_time: str
    cost: str
    source: str
    description: str
    verified: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.location_name, self.event_date)

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExtractionRule:
    """Segmentation rule plus the per-source extraction heuristics."""

    segment_rule: SegmentRule
    vocabulary: tuple[str, ...]
    keywords: tuple[str, ...] = RELEVANCE_KEYWORDS
    vocabulary_case: VocabularyCase = VocabularyCase.EXACT
    time_pattern: Pattern[str] = GENERAL_TIME_PATTERN
    date_mode: DateMode = DateMode.JULY_DAY
    name_suffix: str = "Fireworks"
    celebration_suffix: str | None = "Celebration"
    cost: str = "Free"
    description_limit: int = 400
    location_from_anchor: bool = False

    def blocks(self, document: RawDocument) -> Iterator[TextBlock]:
        return segment(document, self.segment_rule, anchors=self.vocabulary)


def passes_keyword_gate(text: str, keywords: Sequence[str]) -> bool:
    """True when any keyword occurs in the lower-cased text; no keywords means no gate."""
    if not keywords:
        return True
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def match_location(text: str, vocabulary: Sequence[str]) -> str | None:
    """First vocabulary entry found in the text, in vocabulary order (not text order)."""
    if not text:
        return None
    lowered = text.lower()
    for location in vocabulary:
        if location.lower() in lowered:
            return location
    return None


def extract_time(text: str, pattern: Pattern[str] = GENERAL_TIME_PATTERN) -> str:
    match = pattern.search(text or "")
    if match:
        return match.group(0)
    return DEFAULT_EVENT_TIME


def extract_date(text: str, settings: Settings) -> str:
    """`July <day>` in the run's year, else the run's configured event date."""
    match = JULY_DAY_PATTERN.search(text or "")
    if match:
        try:
            return date(settings.event_year, JULY, int(match.group(1))).isoformat()
        except ValueError:
            LOGGER.debug("Ignoring impossible date 'July %s'.", match.group(1))
    return settings.event_date.isoformat()


def extract_literal_date(text: str, settings: Settings) -> str:
    lowered = (text or "").lower()
    for day in LITERAL_JULY_DAYS:
        if f"july {day}" in lowered:
            return date(settings.event_year, JULY, day).isoformat()
    return settings.event_date.isoformat()


def title_case(value: str) -> str:
    """Upper-case the first letter of each space-separated word, lower-case the rest."""
    return " ".join(word[:1].upper() + word[1:] for word in value.lower().split(" "))


def canonical_location(location: str, case: VocabularyCase) -> str:
    if case is VocabularyCase.UPPER:
        location = title_case(location)
    return gazetteer.canonicalize(location)


def synthesize_name(location_name: str, text: str, rule: ExtractionRule) -> str:
    if rule.celebration_suffix and "celebration" in text.lower():
        return f"{location_name} {rule.celebration_suffix}"
    return f"{location_name} {rule.name_suffix}"


def truncate_description(text: str, limit: int) -> str:
    return text.strip()[:limit]


def _locate(block: TextBlock, rule: ExtractionRule) -> str | None:
    if rule.location_from_anchor and block.anchor:
        return block.anchor
    # A city named in the heading beats anything found in the sibling text.
    if block.anchor:
        found = match_location(block.anchor, rule.vocabulary)
        if found:
            return found
    hint = block.hints.get("location")
    if hint:
        found = match_location(hint, rule.vocabulary)
        if found:
            return found
    return match_location(block.text, rule.vocabulary)


def extract(
    block: TextBlock,
    rule: ExtractionRule,
    settings: Settings,
    source: str,
) -> ExtractionCandidate | None:
    text = block.text
    if not passes_keyword_gate(text, rule.keywords):
        return None
    location = _locate(block, rule)
    if not location:
        return None
    event_time = block.hints.get("time") or extract_time(text, rule.time_pattern)
    if rule.date_mode is DateMode.LITERAL:
        event_date = extract_literal_date(text, settings)
    else:
        event_date = extract_date(text, settings)
    location_name = canonical_location(location, rule.vocabulary_case)
    coordinates = gazetteer.resolve(location_name)
    return ExtractionCandidate(
        name=synthesize_name(location_name, text, rule),
        location_name=location_name,
        lat=coordinates.lat,
        lng=coordinates.lng,
        event_date=event_date,
        event_time=event_time,
        cost=rule.cost,
        source=source,
        description=truncate_description(text, rule.description_limit),
        verified=False,
    )
