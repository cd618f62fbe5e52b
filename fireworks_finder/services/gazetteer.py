"""
Static gazetteer for the Twin Cities region: canonical city name -> coordinates.

Lookups never fail. A name that is not in the table resolves to the default
coordinate (Minneapolis) so an unknown city only degrades map placement.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Tuple

LOGGER = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959.0


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class GazetteerEntry:
    name: str
    lat: float
    lng: float
    variants: Tuple[str, ...] = ()

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)


# Declaration order matters: `vocabulary()` feeds the scan vocabularies, where the
# first substring hit wins.
GAZETTEER_ENTRIES: Tuple[GazetteerEntry, ...] = (
    GazetteerEntry("Minneapolis", 44.9778, -93.2650, ("Mpls",)),
    GazetteerEntry("St. Paul", 44.9537, -93.0900, ("Saint Paul", "St Paul")),
    GazetteerEntry("Bloomington", 44.8408, -93.2982),
    GazetteerEntry("Plymouth", 45.0105, -93.4555),
    GazetteerEntry("Duluth", 46.7867, -92.1005),
    GazetteerEntry("Rochester", 44.0121, -92.4802),
    GazetteerEntry("Mankato", 44.1636, -94.0000),
    GazetteerEntry("St. Cloud", 45.5579, -94.1632, ("Saint Cloud", "St Cloud")),
    GazetteerEntry("Moorhead", 46.8737, -96.7678),
    GazetteerEntry("Burnsville", 44.7678, -93.2777),
    GazetteerEntry("Eagan", 44.8041, -93.1668),
    GazetteerEntry("Eden Prairie", 44.8547, -93.4708),
    GazetteerEntry("Minnetonka", 44.9211, -93.4687),
    GazetteerEntry("Edina", 44.8897, -93.3498),
    GazetteerEntry("Lakeville", 44.6497, -93.2427),
    GazetteerEntry("Woodbury", 44.9239, -92.9594),
    GazetteerEntry("Maple Grove", 45.0724, -93.4558),
    GazetteerEntry("Brooklyn Park", 45.0941, -93.3563),
    GazetteerEntry("Stillwater", 45.0566, -92.8065),
    GazetteerEntry("Anoka", 45.1972, -93.3866),
    GazetteerEntry("Chanhassen", 44.8619, -93.5272),
    GazetteerEntry("Columbia Heights", 45.0411, -93.2630),
    GazetteerEntry("Ham Lake", 45.2469, -93.2077),
    GazetteerEntry("Blaine", 45.1607, -93.2349),
    GazetteerEntry("St Louis Park", 44.9481, -93.3478, ("St. Louis Park", "Saint Louis Park")),
    GazetteerEntry("Richfield", 44.8831, -93.2830),
    GazetteerEntry("Excelsior", 44.9022, -93.5647),
    GazetteerEntry("Shakopee", 44.7973, -93.5272),
    GazetteerEntry("Albert Lea", 43.6481, -93.3687),
    GazetteerEntry("Austin", 43.6666, -92.9735),
    GazetteerEntry("Bemidji", 47.4737, -94.8803),
    GazetteerEntry("Cannon Falls", 44.5094, -92.9054),
    GazetteerEntry("Coon Rapids", 45.1732, -93.3030),
    GazetteerEntry("Delano", 45.0424, -93.7888),
    GazetteerEntry("Detroit Lakes", 46.8171, -95.8453),
    GazetteerEntry("Ely", 47.9032, -91.8673),
    GazetteerEntry("Eveleth", 47.4624, -92.5407),
    GazetteerEntry("Lake City", 44.4497, -92.2685),
    GazetteerEntry("Nisswa", 46.5199, -94.2886),
)

DEFAULT_CITY = "Minneapolis"

_BY_NAME: Dict[str, GazetteerEntry] = {entry.name: entry for entry in GAZETTEER_ENTRIES}
_BY_VARIANT: Dict[str, str] = {
    variant.lower(): entry.name for entry in GAZETTEER_ENTRIES for variant in entry.variants
}

DEFAULT_COORDINATES = _BY_NAME[DEFAULT_CITY].coordinates


def names() -> Tuple[str, ...]:
    """Canonical city names in declaration order."""
    return tuple(entry.name for entry in GAZETTEER_ENTRIES)


def vocabulary() -> Tuple[str, ...]:
    """Canonical names each followed by their variants, for substring scans."""
    return tuple(name for entry in GAZETTEER_ENTRIES for name in (entry.name, *entry.variants))


def canonicalize(name: str) -> str:
    """Map a known spelling variant to its canonical key; other names pass through."""
    cleaned = (name or "").strip()
    if cleaned in _BY_NAME:
        return cleaned
    return _BY_VARIANT.get(cleaned.lower(), cleaned)


def resolve(name: str) -> Coordinates:
    entry = _BY_NAME.get(name)
    if entry is None:
        LOGGER.debug("'%s' not in gazetteer; using %s coordinates.", name, DEFAULT_CITY)
        return DEFAULT_COORDINATES
    return entry.coordinates


def distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
