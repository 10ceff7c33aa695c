# -*- coding: utf-8 -*-
"""
PAGASA severe weather bulletin parser.

The bulletin is loosely structured prose. We walk the body text nodes in
document order and track whether we are inside the wind-signal section and
which signal level is current; every other text node in that state is a
candidate affected area.
"""

import logging
import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from .parsing import body_of, first_match, flat_text, iter_text_nodes, make_soup, norm_text
from .proxy_fetcher import ProxyFetcher, min_length
from .schemas import CycloneBulletin, WindSignal
from .settings import settings
from .sources import PAGASA_URL

logger = logging.getLogger(__name__)

NO_CYCLONE_PHRASES = (
    "there is no active tropical cyclone",
    "no active tropical cyclone",
    "no tropical cyclone within the philippine area of responsibility",
    "no tropical cyclone is being monitored",
)

# Case-sensitive, matched against the bulletin's own capitalisation
ACTIVE_INDICATORS = ("Location of Eye", "Center")

SECTION_START = re.compile(r"WIND\s+SIGNAL|Areas\s+with\s+TCWS", re.I)
SECTION_END = re.compile(r"HEAVY\s+RAINFALL|SEVERE\s+WINDS|TRACK\s+AND\s+INTENSITY|HAZARDS", re.I)
SIGNAL_HEADER = re.compile(r"(?:TCWS|Signal)\s*(?:#|No\.?)\s*([1-5])\b", re.I)

FOR_NAME = re.compile(r"\bFOR\s*:\s*(.+)")
QUOTED_NAME = re.compile(
    r"\b(Super\s+Typhoon|Typhoon|Severe\s+Tropical\s+Storm|Tropical\s+Storm|Tropical\s+Depression)"
    r"\s*[\"'“”‘’]\s*([A-Za-z][A-Za-z\- ]*?)\s*[\"'“”‘’]",
    re.I,
)
ISSUED_AT = re.compile(
    r"Issued\s+at\s*:?\s*(\d{1,2}:\d{2}\s*[AP]\.?M\.?)\s*,?\s*(?:today\s*,?\s*)?(\d{1,2}\s+[A-Za-z]+\s+\d{4})",
    re.I,
)

QUOTE_CHARS = "\"'“”‘’"
HEADER_SELECTOR = "h1, h2, h3, h4, h5, .page-header, strong, b"

UNKNOWN_NAME = "Unknown Cyclone"
ACTIVE_NAME = "Active Tropical Cyclone"

# Fragments that are labels or whole island groups, never a useful area
LABEL_FRAGMENTS = {
    "luzon", "visayas", "mindanao",
    "prov", "prov.", "province", "provinces",
    "area", "areas", "location", "locations", "affected areas",
    "and", "or", "&", "none",
}
MIN_AREA_LENGTH = 3

SUMMARY_NONE = "No active tropical cyclone within the Philippine Area of Responsibility."
SUMMARY_NONE_DETECTED = "No active tropical cyclone detected."
SUMMARY_ACTIVE_NO_SIGNALS = "Active Cyclone detected. View full bulletin for details."


def _strip_quotes(text: str) -> str:
    return norm_text("".join(ch for ch in text if ch not in QUOTE_CHARS))


# Name strategies, each takes the header texts and returns a name or None

def name_from_for_line(headers: list[str]) -> Optional[str]:
    for text in headers:
        m = FOR_NAME.search(text)
        if m:
            name = _strip_quotes(m.group(1))
            if name:
                return name
    return None


def name_from_quoted_category(headers: list[str]) -> Optional[str]:
    for text in headers:
        m = QUOTED_NAME.search(text)
        if m:
            return _strip_quotes(f"{norm_text(m.group(1))} {m.group(2)}")
    return None


NAME_STRATEGIES = (name_from_for_line, name_from_quoted_category)


def has_no_cyclone_phrase(body_text: str) -> bool:
    low = body_text.lower()
    return any(p in low for p in NO_CYCLONE_PHRASES)


def _clean_area(text: str) -> str:
    return norm_text(text).strip(" :;,-–—•*.")


def is_area_candidate(text: str) -> bool:
    if len(text) < MIN_AREA_LENGTH:
        return False
    if text.lower() in LABEL_FRAGMENTS:
        return False
    return any(ch.isalpha() for ch in text)


def extract_signals(nodes: list[str]) -> list[WindSignal]:
    inside = False
    level: Optional[int] = None
    areas: dict[int, dict[str, None]] = {}

    for text in nodes:
        if inside and SECTION_END.search(text):
            inside = False
            level = None
            continue
        if SECTION_START.search(text):
            inside = True

        if not inside:
            continue

        m = SIGNAL_HEADER.search(text)
        if m:
            level = int(m.group(1))
            areas.setdefault(level, {})
            text = text[m.end():]
        elif level is None or SECTION_START.search(text):
            continue

        area = _clean_area(text)
        if is_area_candidate(area):
            areas[level][area] = None

    return [
        WindSignal(level=lvl, areas=list(found))
        for lvl, found in sorted(areas.items(), reverse=True)
        if found
    ]


def parse_issued_at(body_text: str, tz: ZoneInfo) -> Optional[datetime]:
    m = ISSUED_AT.search(body_text)
    if not m:
        return None
    try:
        dt = date_parser.parse(f"{m.group(2)} {m.group(1).replace('.', '')}")
    except (ValueError, OverflowError):
        return None
    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt


def summarize(signals: list[WindSignal]) -> str:
    if signals:
        return "Active Signals: " + ", ".join(f"Signal #{s.level}" for s in signals)
    return SUMMARY_ACTIVE_NO_SIGNALS


def extract(html: str, fetched_at: Optional[datetime] = None, source_url: str = PAGASA_URL) -> CycloneBulletin:
    tz = ZoneInfo(settings.app_timezone)
    fetched_at = fetched_at or datetime.now(tz)

    soup = make_soup(html)
    body = body_of(soup)
    body_text = flat_text(body)

    def _none(summary: str) -> CycloneBulletin:
        return CycloneBulletin(
            has_active_cyclone=False,
            summary=summary,
            source_url=source_url,
            issued_at=fetched_at,
        )

    if has_no_cyclone_phrase(body_text):
        return _none(SUMMARY_NONE)

    headers = [norm_text(el.get_text(" ")) for el in body.select(HEADER_SELECTOR)]
    name = first_match(NAME_STRATEGIES, headers)
    signals = extract_signals(list(iter_text_nodes(body)))

    if not signals and name is None:
        if not any(ind in body_text for ind in ACTIVE_INDICATORS):
            # First check missed, nothing suggests a storm either
            return _none(SUMMARY_NONE_DETECTED)
        logger.info("Active cyclone indicators found but no name or signals could be parsed")

    if name is None:
        name = ACTIVE_NAME if signals else UNKNOWN_NAME

    return CycloneBulletin(
        has_active_cyclone=True,
        name=name,
        signals=signals,
        summary=summarize(signals),
        source_url=source_url,
        issued_at=parse_issued_at(body_text, tz) or fetched_at,
    )


async def fetch_typhoon_bulletin(fetcher: ProxyFetcher) -> CycloneBulletin:
    """Raises NetworkExhausted when no proxy delivers the bulletin."""
    html = await fetcher.fetch_text(
        PAGASA_URL,
        min_length(500),
        timeout=settings.typhoon_timeout_seconds,
    )
    return extract(html)
