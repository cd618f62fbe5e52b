"""
Configured event pages and the extraction strategy bound to each.

A strategy runs its primary rule over the fetched page; if that yields nothing
and the source declares a fallback, the looser fallback rule (any block naming
a known city plus a relevance keyword) runs instead. Page markup changes often,
so the fallback trades precision for recall only when the primary misses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Sequence

import requests

from fireworks_finder.services import gazetteer
from fireworks_finder.services.dedupe import dedupe
from fireworks_finder.services.extraction import (
    BROAD_RELEVANCE_KEYWORDS,
    LISTING_TIME_PATTERN,
    SCAN_TIME_PATTERN,
    DateMode,
    ExtractionCandidate,
    ExtractionRule,
    VocabularyCase,
    extract,
)
from fireworks_finder.services.segmentation import RawDocument, SegmentRule, describe_document
from fireworks_finder.services.settings import Settings

LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[str, Mapping[str, str], int], RawDocument]

# Upper-cased as the page prints them. Earlier entries win when a block
# mentions several cities.
FAMILY_FUN_LOCATIONS = (
    "COLUMBIA HEIGHTS",
    "HAM LAKE",
    "DULUTH",
    "WOODBURY",
    "CHANHASSEN",
    "EDEN PRAIRIE",
    "EDINA",
    "BLAINE",
    "MINNEAPOLIS",
    "ST. PAUL",
    "BLOOMINGTON",
    "PLYMOUTH",
    "BURNSVILLE",
    "EAGAN",
    "MINNETONKA",
    "LAKEVILLE",
    "MAPLE GROVE",
    "BROOKLYN PARK",
    "STILLWATER",
    "ANOKA",
    "ST LOUIS PARK",
    "RICHFIELD",
    "EXCELSIOR",
    "SHAKOPEE",
)

FOX9_CITIES = (
    "Albert Lea",
    "Austin",
    "Bemidji",
    "Bloomington",
    "Cannon Falls",
    "Coon Rapids",
    "Crosby",
    "Crosslake",
    "Delano",
    "Detroit Lakes",
    "Duluth",
    "Eagan",
    "Edina",
    "Excelsior",
    "Ely",
    "Eveleth",
    "Lake City",
    "Mankato",
    "Minneapolis",
    "Nisswa",
    "Pequot Lakes",
    "Richfield",
    "Shakopee",
    "Spicer",
    "St. Louis Park",
    "Tofte",
    "Waconia",
    "Warroad",
)

FAMILY_FUN_RULE = ExtractionRule(
    segment_rule=SegmentRule.SCAN,
    vocabulary=FAMILY_FUN_LOCATIONS,
    vocabulary_case=VocabularyCase.UPPER,
    time_pattern=SCAN_TIME_PATTERN,
    name_suffix="Independence Day Fireworks",
    celebration_suffix="July 4th Celebration",
    cost="Free",
    description_limit=400,
)

FOX9_RULE = ExtractionRule(
    segment_rule=SegmentRule.LINE_PAIR,
    vocabulary=FOX9_CITIES,
    # The whole article is a fireworks list; the city heading is the gate.
    keywords=(),
    time_pattern=LISTING_TIME_PATTERN,
    date_mode=DateMode.LITERAL,
    name_suffix="July 4th Fireworks",
    celebration_suffix=None,
    cost="Check local details",
    description_limit=300,
    location_from_anchor=True,
)

TWIN_CITIES_FAMILY_RULE = ExtractionRule(
    segment_rule=SegmentRule.HEADER_FOLLOW,
    vocabulary=gazetteer.vocabulary(),
    keywords=BROAD_RELEVANCE_KEYWORDS,
    name_suffix="Fireworks",
    celebration_suffix="Celebration",
    cost="See event details",
    description_limit=500,
)

GAZETTEER_SCAN_RULE = ExtractionRule(
    segment_rule=SegmentRule.SCAN,
    vocabulary=gazetteer.vocabulary(),
    keywords=BROAD_RELEVANCE_KEYWORDS,
    name_suffix="July 4th Fireworks",
    celebration_suffix="July 4th Celebration",
    cost="Check local details",
    description_limit=400,
)


@dataclass(frozen=True)
class SourceStrategy:
    name: str
    url: str
    primary: ExtractionRule
    fallback: ExtractionRule | None = None
    dedupe_key: str = "location_name"

    def _run_rule(self, rule: ExtractionRule, document: RawDocument, settings: Settings) -> List[ExtractionCandidate]:
        candidates: List[ExtractionCandidate] = []
        for block in rule.blocks(document):
            candidate = extract(block, rule, settings, self.name)
            if candidate:
                candidates.append(candidate)
        return candidates

    def extract_candidates(self, document: RawDocument, settings: Settings) -> List[ExtractionCandidate]:
        candidates = self._run_rule(self.primary, document, settings)
        if not candidates and self.fallback is not None:
            LOGGER.info("Primary strategy for %s found nothing; trying fallback.", self.name)
            candidates = self._run_rule(self.fallback, document, settings)
        unique = dedupe(candidates, key=self.dedupe_key)
        LOGGER.info(
            "Found %s %s events (%s before batch dedupe)",
            len(unique),
            self.name,
            len(candidates),
        )
        return unique


def fetch_page(url: str, headers: Mapping[str, str], timeout: int) -> RawDocument:
    """Download a page; network and HTTP errors propagate as `requests.RequestException`."""
    response = requests.get(url, headers=dict(headers), timeout=timeout)
    response.raise_for_status()
    return RawDocument(source=url, text=response.text, url=url)


def build_default_sources() -> List[SourceStrategy]:
    return [
        SourceStrategy(
            name="familyfuntwincities.com",
            url="https://www.familyfuntwincities.com/twin-cities-independence-day-activities/",
            primary=FAMILY_FUN_RULE,
        ),
        SourceStrategy(
            name="fox9.com",
            url="https://www.fox9.com/news/july-4th-fireworks-minnesota-2025-list",
            primary=FOX9_RULE,
            fallback=GAZETTEER_SCAN_RULE,
            dedupe_key="name",
        ),
        SourceStrategy(
            name="twincitiesfamily.com",
            url="https://twincitiesfamily.com/4th-of-july-events-fireworks/",
            primary=TWIN_CITIES_FAMILY_RULE,
            fallback=GAZETTEER_SCAN_RULE,
        ),
    ]


def debug_sources(
    sources: Sequence[SourceStrategy],
    settings: Settings,
    fetcher: Fetcher = fetch_page,
) -> Dict[str, Dict[str, object]]:
    """Fetch each page and summarize its structure without extracting events."""
    results: Dict[str, Dict[str, object]] = {}
    for source in sources:
        try:
            document = fetcher(source.url, settings.request_headers, settings.fetch_timeout)
        except requests.RequestException as exc:
            LOGGER.warning("Debug fetch failed for %s: %s", source.url, exc)
            results[source.name] = {"status": "error", "error": str(exc)}
            continue
        results[source.name] = {"status": "success", **describe_document(document)}
    return results
