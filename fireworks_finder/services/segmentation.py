"""
Split fetched event pages into candidate text blocks.

Each source page is segmented with one of three structural rules (see
`SegmentRule`). Segmentation is lazy: `segment` returns a generator, so a
document has to be segmented again if the blocks are needed twice.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Sequence

from bs4 import BeautifulSoup, Tag

LOGGER = logging.getLogger(__name__)

MIN_BLOCK_LENGTH = 50
MAX_BLOCK_LENGTH = 1000
MAX_FOLLOWING_SIBLINGS = 3
MIN_PAIRED_LINE_LENGTH = 20

HEADING_SELECTOR = "h1, h2, h3, h4, h5, .event-title, .entry-title"
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
TITLE_KEYWORDS = ("firework", "4th", "fourth", "july", "independence", "celebration")
VENUE_HINTS = ("park", "lake", "downtown")
CLOCK_PATTERN = re.compile(r"\d{1,2}:\d{2}\s*[ap](?:\.m\.|m\b)|\d{1,2}\s*[ap](?:\.m\.|m\b)", re.IGNORECASE)

BLOCK_TAGS = [
    "p",
    "div",
    "li",
    "section",
    "article",
    "header",
    "footer",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "tr",
    "table",
    "ul",
    "ol",
]
REMOVABLE_TAGS = ["script", "style", "noscript", "iframe", "svg"]


class SegmentRule(str, Enum):
    SCAN = "scan"
    HEADER_FOLLOW = "header-follow"
    LINE_PAIR = "line-pair"


@dataclass
class RawDocument:
    source: str
    text: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    url: str | None = None


@dataclass
class TextBlock:
    text: str
    origin: str
    index: int
    anchor: str | None = None
    hints: dict[str, str] = field(default_factory=dict)


def _normalize_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _parse(document: RawDocument) -> BeautifulSoup:
    soup = BeautifulSoup(document.text or "", "html.parser")
    for tag in soup(REMOVABLE_TAGS):
        tag.decompose()
    return soup


def document_lines(document: RawDocument) -> list[str]:
    """Rendered text of the page as stripped, non-empty lines."""
    soup = _parse(document)
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")
    root = soup.body or soup
    return [line.strip() for line in root.get_text().split("\n") if line.strip()]


def segment(
    document: RawDocument,
    rule: SegmentRule,
    *,
    anchors: Sequence[str] = (),
    min_length: int = MIN_BLOCK_LENGTH,
    max_length: int = MAX_BLOCK_LENGTH,
    max_siblings: int = MAX_FOLLOWING_SIBLINGS,
    min_pair_length: int = MIN_PAIRED_LINE_LENGTH,
    title_keywords: Sequence[str] = TITLE_KEYWORDS,
) -> Iterator[TextBlock]:
    if rule is SegmentRule.SCAN:
        return _scan_blocks(document, min_length, max_length)
    if rule is SegmentRule.HEADER_FOLLOW:
        return _header_follow_blocks(document, max_siblings, title_keywords)
    if rule is SegmentRule.LINE_PAIR:
        return _line_pair_blocks(document, anchors, min_pair_length)
    raise ValueError(f"Unsupported segmentation rule: {rule!r}")


def _scan_blocks(document: RawDocument, min_length: int, max_length: int) -> Iterator[TextBlock]:
    """Every paragraph/container element becomes a block, bounded by length."""
    soup = _parse(document)
    index = 0
    for element in soup.find_all(["p", "div"]):
        text = _normalize_whitespace(element.get_text(" ", strip=True))
        # Short blocks carry no context; very long ones are page chrome.
        if len(text) < min_length or len(text) > max_length:
            continue
        yield TextBlock(text=text, origin="paragraph", index=index)
        index += 1


def _following_tags(heading: Tag, limit: int) -> list[Tag]:
    siblings: list[Tag] = []
    for sibling in heading.next_siblings:
        if not isinstance(sibling, Tag):
            continue
        if sibling.name in HEADING_TAGS:
            break
        siblings.append(sibling)
        if len(siblings) >= limit:
            break
    return siblings


def _header_follow_blocks(
    document: RawDocument,
    max_siblings: int,
    title_keywords: Sequence[str],
) -> Iterator[TextBlock]:
    soup = _parse(document)
    index = 0
    for heading in soup.select(HEADING_SELECTOR):
        title = _normalize_whitespace(heading.get_text(" ", strip=True))
        lowered = title.lower()
        if not title or not any(keyword in lowered for keyword in title_keywords):
            continue
        sibling_texts = [
            text
            for text in (
                _normalize_whitespace(sibling.get_text(" ", strip=True))
                for sibling in _following_tags(heading, max_siblings)
            )
            if text
        ]
        if not sibling_texts:
            LOGGER.debug("Heading '%s' has no following content; skipping.", title)
            continue
        hints: dict[str, str] = {}
        for text in sibling_texts:
            if any(hint in text.lower() for hint in VENUE_HINTS):
                hints["location"] = text
                break
        for text in sibling_texts:
            match = CLOCK_PATTERN.search(text)
            if match:
                hints["time"] = match.group(0)
                break
        yield TextBlock(
            text=" ".join([title, *sibling_texts]),
            origin="header+sibling",
            index=index,
            anchor=title,
            hints=hints,
        )
        index += 1


def _line_pair_blocks(
    document: RawDocument,
    anchors: Sequence[str],
    min_pair_length: int,
) -> Iterator[TextBlock]:
    """Pair an exact city-name line with the line right after it."""
    anchor_set = set(anchors)
    lines = document_lines(document)
    index = 0
    for position, line in enumerate(lines):
        if line not in anchor_set or position + 1 >= len(lines):
            continue
        following = lines[position + 1]
        if len(following) <= min_pair_length:
            continue
        yield TextBlock(text=following, origin="line-pair", index=index, anchor=line)
        index += 1


def describe_document(document: RawDocument, sample_size: int = 10) -> dict[str, Any]:
    """Structural summary of a fetched page, used to debug broken selectors."""
    soup = _parse(document)
    title_tag = soup.find("title")
    page_text = (soup.body or soup).get_text(" ", strip=True).lower()
    sample_headers = [
        _normalize_whitespace(tag.get_text(" ", strip=True))
        for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5"])[:sample_size]
    ]
    sample_paragraphs = []
    for tag in soup.find_all("p")[:sample_size]:
        text = _normalize_whitespace(tag.get_text(" ", strip=True))
        if 20 < len(text) < 200:
            sample_paragraphs.append(text)
    return {
        "page_title": title_tag.get_text(strip=True) if title_tag else "",
        "page_length": len(document.text or ""),
        "h3_count": len(soup.find_all("h3")),
        "h4_count": len(soup.find_all("h4")),
        "p_count": len(soup.find_all("p")),
        "li_count": len(soup.find_all("li")),
        "event_title_count": len(soup.select(".event-title")),
        "entry_title_count": len(soup.select(".entry-title")),
        "sample_headers": sample_headers,
        "sample_paragraphs": sample_paragraphs,
        "has_july": "july" in page_text,
        "has_fireworks": "firework" in page_text,
        "has_4th": "4th" in page_text,
    }
