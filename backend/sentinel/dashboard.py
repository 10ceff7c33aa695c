#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Optional

from .log_utils import rotate_logs, setup_logging
from .preferences import Preferences
from .proxy_fetcher import ProxyFetcher
from .scheduler import RefreshScheduler
from .settings import settings
from .situation_report import SituationReporter
from .widgets import EarthquakeWidget, Widget, traffic_widget, typhoon_widget, volcano_widget, weather_widget

logger = logging.getLogger(__name__)


class Dashboard:
    """All widgets plus the scheduler that keeps them fresh."""

    def __init__(
        self,
        fetcher: Optional[ProxyFetcher] = None,
        preferences: Optional[Preferences] = None,
        reporter: Optional[SituationReporter] = None,
        scheduler: Optional[RefreshScheduler] = None,
    ):
        self.fetcher = fetcher or ProxyFetcher()
        self.preferences = preferences or Preferences()
        self.reporter = reporter or SituationReporter()
        self.scheduler = scheduler or RefreshScheduler()

        self.earthquake = EarthquakeWidget(self.fetcher, self.preferences, self.reporter)
        self.widgets: dict[str, Widget] = {
            w.name: w
            for w in (
                self.earthquake,
                typhoon_widget(self.fetcher),
                volcano_widget(self.fetcher),
                weather_widget(),
                traffic_widget(self.reporter),
            )
        }

    def mount(self, name: str) -> None:
        widget = self.widgets[name]
        self.scheduler.add(name, widget.refresh, widget.interval_minutes)

    def unmount(self, name: str) -> None:
        self.scheduler.remove(name)

    def start(self) -> None:
        for name in self.widgets:
            self.mount(name)
        self.scheduler.add("log_rotation", rotate_logs, settings.log_rotation_hours * 60, run_now=False)
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.shutdown()

    async def refresh_all(self) -> None:
        await asyncio.gather(*(w.refresh() for w in self.widgets.values()))

    def snapshot(self) -> dict:
        return {name: w.snapshot() for name, w in self.widgets.items()}


async def run_forever(dashboard: Dashboard) -> None:
    dashboard.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        dashboard.stop()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--once", action="store_true", help="Refresh every widget once and print the state as JSON")
    parser.add_argument("--min-mag", type=float, help="Save a new minimum earthquake magnitude before refreshing")
    args = parser.parse_args()

    setup_logging()
    dashboard = Dashboard()
    if args.min_mag is not None:
        dashboard.preferences.min_magnitude = args.min_mag

    if args.once:
        asyncio.run(dashboard.refresh_all())
        print(json.dumps(dashboard.snapshot(), ensure_ascii=False, indent=2))
        return

    try:
        asyncio.run(run_forever(dashboard))
    except KeyboardInterrupt:
        logger.info("Stopped by user.")


if __name__ == "__main__":
    main()
