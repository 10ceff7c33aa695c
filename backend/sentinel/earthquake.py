# -*- coding: utf-8 -*-
"""
PHIVOLCS latest-earthquake table scraper.

The listing page is a plain HTML table: a header row ("Date/Time",
"Latitude", ..., "Magnitude") followed by one row per event. Rows that cannot
be read (bad magnitude, bad timestamp) are dropped silently.
"""

import logging
import re
import time
from datetime import datetime
from typing import Optional
from urllib.parse import urljoin
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from .parsing import make_soup, norm_text
from .proxy_fetcher import ProxyFetcher, contains_any
from .schemas import EarthquakeFeed, FeedMetadata, SeismicEvent
from .settings import settings
from .sources import PHIVOLCS_URL

logger = logging.getLogger(__name__)

HEADER_KEYWORDS = ("date/time", "latitude", "magnitude")
REGION_CODE = "ph"
UNKNOWN_PLACE = "Unknown Location"

_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)

_NUMBER = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)")


def _parse_float(text: str) -> Optional[float]:
    m = _NUMBER.match(text or "")
    return float(m.group(0)) if m else None


def parse_event_time(raw: str, tz: ZoneInfo) -> Optional[datetime]:
    """'09 Oct 2023 - 02:30 PM' -> aware datetime in ``tz``; None if unreadable."""
    cleaned = norm_text(raw.replace("-", ""))
    if not cleaned:
        return None
    # Two different defaults: any date part dateutil filled in shows up as a mismatch
    try:
        dt = date_parser.parse(cleaned, default=_DEFAULT_A)
        other = date_parser.parse(cleaned, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if dt.date() != other.date():
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def start_of_today(now: datetime, tz: ZoneInfo) -> datetime:
    local = now.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def _candidate_rows(soup):
    rows = soup.find_all("tr")
    for i, row in enumerate(rows):
        text = row.get_text(" ").lower()
        if all(k in text for k in HEADER_KEYWORDS):
            return rows[i + 1:]
    # No header: let per-row validation sort it out
    return rows


def _detail_url(cell, base_url: str) -> str:
    link = cell.find("a")
    href = link.get("href") if link else None
    if href:
        return urljoin(base_url, href.strip())
    return base_url


def extract(
    html: str,
    min_magnitude: float,
    today_only: bool = False,
    now: Optional[datetime] = None,
    base_url: str = PHIVOLCS_URL,
) -> list[SeismicEvent]:
    tz = ZoneInfo(settings.app_timezone)
    cutoff = start_of_today(now or datetime.now(tz), tz) if today_only else None

    events: list[SeismicEvent] = []
    for row in _candidate_rows(make_soup(html)):
        cells = row.find_all("td")
        if len(cells) < 5:
            continue
        texts = [norm_text(c.get_text(" ")) for c in cells]

        magnitude = _parse_float(texts[4])
        if magnitude is None or magnitude < min_magnitude:
            continue

        occurred = parse_event_time(texts[0], tz)
        if occurred is None:
            continue
        if cutoff is not None and occurred < cutoff:
            continue

        occurred_ms = int(occurred.timestamp() * 1000)
        events.append(SeismicEvent(
            magnitude=magnitude,
            place=(texts[5] if len(texts) > 5 else "") or UNKNOWN_PLACE,
            occurred_at_ms=occurred_ms,
            depth_km=_parse_float(texts[3]) or 0.0,
            latitude=_parse_float(texts[1]) or 0.0,
            longitude=_parse_float(texts[2]) or 0.0,
            source_url=_detail_url(cells[0], base_url),
            stable_id=f"{REGION_CODE}{occurred_ms}",
        ))
    return events


def _metadata(title: str, status: int, api: str, count: int) -> FeedMetadata:
    return FeedMetadata(
        generated_ms=int(time.time() * 1000),
        url=PHIVOLCS_URL,
        title=title,
        status=status,
        api=api,
        count=count,
    )


async def fetch_earthquakes(fetcher: ProxyFetcher, min_magnitude: float = 1.0, today_only: bool = False) -> EarthquakeFeed:
    """Fetch and parse the listing. Connection loss is reported in metadata, not raised."""
    result = await fetcher.fetch(
        PHIVOLCS_URL,
        contains_any("Date/Time", "Latitude"),
        timeout=settings.earthquake_timeout_seconds,
    )
    if not result.ok:
        logger.error(f"Failed to fetch PHIVOLCS data from all proxies ({len(result.attempts)} attempts)")
        return EarthquakeFeed(metadata=_metadata("Connection Error", 500, "scrape_failed", 0))

    try:
        events = extract(result.text, min_magnitude, today_only=today_only)
    except Exception as e:
        logger.error(f"Error parsing PHIVOLCS data: {e}")
        return EarthquakeFeed(metadata=_metadata("Error parsing data", 500, "error", 0))

    return EarthquakeFeed(
        metadata=_metadata("PHIVOLCS Data", 200, "scrape", len(events)),
        events=events,
    )
