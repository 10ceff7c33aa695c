# -*- coding: utf-8 -*-
"""
Widget state holders.

A widget owns one loader and the last data it produced. A failed refresh
flips the status to ERROR but keeps the previous data, so the dashboard keeps
showing something. Nothing raised inside a loader ever leaves ``refresh``.
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from .earthquake import fetch_earthquakes
from .log_utils import append_refresh_log
from .preferences import Preferences
from .proxy_fetcher import NetworkExhausted, ProxyFetcher
from .situation_report import SituationReporter
from .settings import settings
from .typhoon import fetch_typhoon_bulletin
from .volcano import fetch_volcano_status
from .weather import fetch_weather

logger = logging.getLogger(__name__)

CONNECTION_FAILED = "Connection Failed"
CONNECTION_LOST = "Connection Lost"
AI_INITIALIZING = "Initializing AI Analysis..."


class FeedError(Exception):
    """The source answered but its payload could not be turned into data."""


class LoadingState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class Widget:
    def __init__(self, name: str, loader: Callable[[], Awaitable[Any]], interval_minutes: float):
        self.name = name
        self.loader = loader
        self.interval_minutes = interval_minutes
        self.status = LoadingState.IDLE
        self.data: Any = None
        self.error: Optional[str] = None
        self.last_updated: Optional[datetime] = None

    async def refresh(self) -> None:
        self.status = LoadingState.LOADING
        start = time.perf_counter()
        try:
            data = await self.loader()
        except NetworkExhausted as e:
            logger.warning(f"[{self.name}] {e}")
            self._fail(CONNECTION_FAILED)
        except FeedError as e:
            logger.warning(f"[{self.name}] {e}")
            self._fail(str(e))
        except Exception as e:
            logger.error(f"[{self.name}] refresh failed: {e}", exc_info=True)
            self._fail(str(e) or e.__class__.__name__)
        else:
            self.data = data
            self.error = None
            self.status = LoadingState.SUCCESS
            self.last_updated = datetime.now(ZoneInfo(settings.app_timezone))

        append_refresh_log({
            "widget": self.name,
            "status": self.status.value,
            "error": self.error,
            "elapsed": round(time.perf_counter() - start, 3),
        })

    async def retry(self) -> None:
        await self.refresh()

    def _fail(self, message: str) -> None:
        self.error = message
        self.status = LoadingState.ERROR

    def snapshot(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "error": self.error,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "data": _dump(self.data),
        }


def _dump(data: Any) -> Any:
    if hasattr(data, "model_dump"):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_dump(x) for x in data]
    return data


class EarthquakeWidget(Widget):
    """Today's events above the saved magnitude threshold, newest first, plus an AI status line."""

    def __init__(self, fetcher: ProxyFetcher, preferences: Preferences, reporter: SituationReporter):
        super().__init__("earthquake", self._load, settings.earthquake_interval_minutes)
        self.fetcher = fetcher
        self.preferences = preferences
        self.reporter = reporter
        self.report = AI_INITIALIZING

    async def _load(self):
        feed = await fetch_earthquakes(self.fetcher, self.preferences.min_magnitude, today_only=True)
        if feed.connection_failed:
            raise NetworkExhausted(feed.metadata.url)
        if feed.metadata.status != 200:
            raise FeedError(feed.metadata.title)
        return sorted(feed.events, key=lambda e: e.occurred_at_ms, reverse=True)

    async def refresh(self) -> None:
        await super().refresh()
        if self.status is LoadingState.SUCCESS:
            now = datetime.now(ZoneInfo(settings.app_timezone)).strftime("%m/%d/%Y, %I:%M:%S %p")
            self.report = await self.reporter.generate_situation_report(self.data, now)

    def _fail(self, message: str) -> None:
        super()._fail(CONNECTION_LOST if message == CONNECTION_FAILED else message)

    async def set_min_magnitude(self, value: float) -> None:
        self.preferences.min_magnitude = value
        await self.refresh()

    def snapshot(self) -> dict:
        out = super().snapshot()
        out["min_magnitude"] = self.preferences.min_magnitude
        out["report"] = self.report
        return out


def typhoon_widget(fetcher: ProxyFetcher) -> Widget:
    return Widget("typhoon", lambda: fetch_typhoon_bulletin(fetcher), settings.typhoon_interval_minutes)


def volcano_widget(fetcher: ProxyFetcher) -> Widget:
    return Widget("volcano", lambda: fetch_volcano_status(fetcher), settings.volcano_interval_minutes)


def weather_widget() -> Widget:
    return Widget("weather", fetch_weather, settings.weather_interval_minutes)


def traffic_widget(reporter: SituationReporter) -> Widget:
    return Widget("traffic", reporter.estimate_traffic, settings.traffic_interval_minutes)
