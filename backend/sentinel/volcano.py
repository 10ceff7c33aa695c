# -*- coding: utf-8 -*-
"""
PHIVOLCS volcano alert level extraction.

Two source layouts are supported: one activity page per volcano (default), or
a single bulletin listing table with one row per bulletin, newest first.
Whatever happens, every monitored volcano gets exactly one record; anything we
could not read is reported as level '?'.
"""

import asyncio
import logging
import re
from typing import Optional, Sequence

from .parsing import body_of, first_match, flat_text, iter_text_nodes, make_soup, norm_text, search_group
from .proxy_fetcher import ProxyFetcher, looks_like_html
from .schemas import VolcanoRecord
from .settings import settings
from .sources import MONITORED_VOLCANOES, VolcanoSource

logger = logging.getLogger(__name__)

UNKNOWN_LEVEL = "?"
LABEL_OFFLINE = "Offline"
LABEL_PARSE_ERROR = "Parse Error"
LABEL_UNKNOWN_DATE = "Unknown Date"

ALERT_LEVEL = re.compile(r"Alert\s+(?:Level|Status)\s*:?\s*([0-5])\b", re.I)
ALERT_LABEL = re.compile(r"Alert\s+(?:Level|Status)", re.I)
LEADING_LEVEL = re.compile(r"^:?\s*([0-5])\b")
DATE_TOKEN = re.compile(
    r"\b(\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{4})\b",
    re.I,
)


# Level strategies: text nodes first, the level digit may sit in a child element of its own

def level_from_text_nodes(nodes: list[str]) -> Optional[str]:
    for i, text in enumerate(nodes):
        found = search_group(ALERT_LEVEL, text)
        if found:
            return found
        if ALERT_LABEL.search(text) and i + 1 < len(nodes):
            found = search_group(LEADING_LEVEL, nodes[i + 1])
            if found:
                return found
    return None


def level_from_flat_text(nodes: list[str]) -> Optional[str]:
    return search_group(ALERT_LEVEL, " ".join(nodes))


def date_from_text_nodes(nodes: list[str]) -> Optional[str]:
    for text in nodes:
        found = search_group(DATE_TOKEN, text)
        if found:
            return norm_text(found)
    return None


def date_from_flat_text(nodes: list[str]) -> Optional[str]:
    found = search_group(DATE_TOKEN, " ".join(nodes))
    return norm_text(found) if found else None


LEVEL_STRATEGIES = (level_from_text_nodes, level_from_flat_text)
DATE_STRATEGIES = (date_from_text_nodes, date_from_flat_text)


def unknown_record(source: VolcanoSource, label: str, url: Optional[str] = None) -> VolcanoRecord:
    return VolcanoRecord(name=source.name, alert_level=UNKNOWN_LEVEL, last_updated_label=label, source_url=url or source.url)


def extract_page(html: str, source: VolcanoSource) -> VolcanoRecord:
    """Read one activity page. Never raises."""
    try:
        nodes = list(iter_text_nodes(body_of(make_soup(html))))
        level = first_match(LEVEL_STRATEGIES, nodes, default=UNKNOWN_LEVEL)
        date = first_match(DATE_STRATEGIES, nodes, default=LABEL_UNKNOWN_DATE)
    except Exception as e:
        logger.error(f"Error parsing {source.name}: {e}")
        return unknown_record(source, LABEL_PARSE_ERROR)
    return VolcanoRecord(name=source.name, alert_level=level, last_updated_label=date, source_url=source.url)


def extract_pages(
    html_by_name: dict[str, Optional[str]],
    monitored: Sequence[VolcanoSource] = MONITORED_VOLCANOES,
) -> list[VolcanoRecord]:
    """A missing or None page means the fetch failed for that volcano."""
    records = []
    for source in monitored:
        html = html_by_name.get(source.name)
        if html is None:
            records.append(unknown_record(source, LABEL_OFFLINE))
        else:
            records.append(extract_page(html, source))
    return records


def extract_listing(
    html: Optional[str],
    monitored: Sequence[VolcanoSource] = MONITORED_VOLCANOES,
    listing_url: Optional[str] = None,
) -> list[VolcanoRecord]:
    """First matching row wins per volcano; the table is assumed newest-first."""
    if html is None:
        return [unknown_record(s, LABEL_OFFLINE, listing_url) for s in monitored]

    resolved: dict[str, VolcanoRecord] = {}
    try:
        for row in make_soup(html).find_all("tr"):
            text = flat_text(row)
            low = text.lower()
            for source in monitored:
                if source.name in resolved or source.name.lower() not in low:
                    continue
                resolved[source.name] = VolcanoRecord(
                    name=source.name,
                    alert_level=search_group(ALERT_LEVEL, text) or UNKNOWN_LEVEL,
                    last_updated_label=date_from_flat_text([text]) or LABEL_UNKNOWN_DATE,
                    source_url=listing_url or source.url,
                )
            if len(resolved) == len(monitored):
                break
    except Exception as e:
        logger.error(f"Error parsing volcano bulletin listing: {e}")
        return [resolved.get(s.name) or unknown_record(s, LABEL_PARSE_ERROR, listing_url) for s in monitored]

    return [resolved.get(s.name) or unknown_record(s, LABEL_UNKNOWN_DATE, listing_url) for s in monitored]


async def _fetch_page(fetcher: ProxyFetcher, source: VolcanoSource) -> Optional[str]:
    result = await fetcher.fetch(source.url, looks_like_html, timeout=settings.volcano_timeout_seconds)
    if not result.ok:
        logger.warning(f"Volcano page offline: {source.name}")
        return None
    return result.text


async def fetch_volcano_status(
    fetcher: ProxyFetcher,
    monitored: Sequence[VolcanoSource] = MONITORED_VOLCANOES,
    strategy: Optional[str] = None,
) -> list[VolcanoRecord]:
    strategy = strategy or settings.volcano_strategy

    if strategy == "listing":
        result = await fetcher.fetch(
            settings.volcano_listing_url,
            looks_like_html,
            timeout=settings.volcano_timeout_seconds,
        )
        return extract_listing(result.text, monitored, listing_url=settings.volcano_listing_url)

    pages = await asyncio.gather(*(_fetch_page(fetcher, s) for s in monitored))
    return extract_pages({s.name: page for s, page in zip(monitored, pages)}, monitored)
