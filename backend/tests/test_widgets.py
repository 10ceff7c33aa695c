import asyncio
import json
import time
from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import httpx

from sentinel import earthquake
from sentinel.preferences import Preferences
from sentinel.proxy_fetcher import NetworkExhausted
from sentinel.settings import ConfigProvider, settings
from sentinel.situation_report import REPORT_OFFLINE, SituationReporter
from sentinel.widgets import EarthquakeWidget, LoadingState, Widget

MANILA = ZoneInfo("Asia/Manila")


class StubReporter:
    def __init__(self):
        self.calls = []

    async def generate_situation_report(self, events, current_time):
        self.calls.append(list(events))
        return f"{len(events)} events"


def test_successful_refresh_stores_data_and_timestamp():
    async def loader():
        return ["ok"]

    widget = Widget("demo", loader, 5)
    asyncio.run(widget.refresh())

    assert widget.status is LoadingState.SUCCESS
    assert widget.data == ["ok"]
    assert widget.error is None
    assert widget.last_updated is not None


def test_network_failure_keeps_previous_data():
    calls = {"n": 0}

    async def loader():
        calls["n"] += 1
        if calls["n"] > 1:
            raise NetworkExhausted("https://pagasa.test/")
        return "bulletin"

    widget = Widget("typhoon", loader, 15)
    asyncio.run(widget.refresh())
    asyncio.run(widget.refresh())

    assert widget.status is LoadingState.ERROR
    assert widget.error == "Connection Failed"
    assert widget.data == "bulletin"


def test_unexpected_error_never_escapes_refresh():
    async def loader():
        raise RuntimeError("layout changed")

    widget = Widget("volcano", loader, 30)
    asyncio.run(widget.refresh())

    assert widget.status is LoadingState.ERROR
    assert widget.error == "layout changed"


def test_retry_recovers():
    state = {"fail": True}

    async def loader():
        if state["fail"]:
            raise NetworkExhausted("https://x.test/")
        return 1

    widget = Widget("weather", loader, 15)
    asyncio.run(widget.refresh())
    state["fail"] = False
    asyncio.run(widget.retry())

    assert widget.status is LoadingState.SUCCESS
    assert widget.error is None


def test_each_cycle_is_written_to_refresh_log():
    async def loader():
        return None

    widget = Widget("demo", loader, 5)
    asyncio.run(widget.refresh())

    lines = (settings.logs_dir / "refresh_log.jsonl").read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[-1])
    assert record["widget"] == "demo"
    assert record["status"] == "SUCCESS"


def _today_page(*rows):
    header = "<tr><td>Date/Time</td><td>Latitude</td><td>Longitude</td><td>Depth</td><td>Magnitude</td><td>Location</td></tr>"
    return f"<html><body><table>{header}{''.join(rows)}</table></body></html>"


def _row(hour, minute, mag):
    when = datetime.now(MANILA).replace(hour=hour, minute=minute, second=0, microsecond=0)
    stamp = when.strftime("%d %B %Y - %I:%M %p")
    return f"<tr><td>{stamp}</td><td>16.41</td><td>120.59</td><td>005</td><td>{mag}</td><td>Baguio City (Benguet)</td></tr>"


def test_earthquake_widget_sorts_newest_first_and_reports(make_fetcher, tmp_path):
    html = _today_page(_row(0, 1, "3.0"), _row(0, 2, "2.5"), _row(0, 0, "0.5"))
    reporter = StubReporter()
    widget = EarthquakeWidget(
        make_fetcher(lambda request: httpx.Response(200, text=html)),
        Preferences(tmp_path / "prefs.json"),
        reporter,
    )
    asyncio.run(widget.refresh())

    assert widget.status is LoadingState.SUCCESS
    assert [e.magnitude for e in widget.data] == [2.5, 3.0]
    assert widget.report == "2 events"
    assert reporter.calls[0] == widget.data


def test_earthquake_widget_connection_lost_keeps_events(make_fetcher, tmp_path):
    pages = iter([_today_page(_row(0, 1, "3.0"))])

    def handler(request):
        body = next(pages, None)
        return httpx.Response(200, text=body) if body else httpx.Response(503)

    widget = EarthquakeWidget(make_fetcher(handler), Preferences(tmp_path / "prefs.json"), StubReporter())
    asyncio.run(widget.refresh())
    asyncio.run(widget.refresh())

    assert widget.status is LoadingState.ERROR
    assert widget.error == "Connection Lost"
    assert len(widget.data) == 1
    assert widget.report == "1 events"


def test_set_min_magnitude_persists_and_refilters(make_fetcher, tmp_path):
    html = _today_page(_row(0, 1, "3.0"), _row(0, 2, "4.6"))
    path = tmp_path / "prefs.json"
    widget = EarthquakeWidget(
        make_fetcher(lambda request: httpx.Response(200, text=html)),
        Preferences(path),
        StubReporter(),
    )
    asyncio.run(widget.set_min_magnitude(4.5))

    assert [e.magnitude for e in widget.data] == [4.6]
    assert Preferences(path).min_magnitude == 4.5
    assert widget.snapshot()["min_magnitude"] == 4.5


def test_slow_ai_report_does_not_hold_the_earthquake_cycle(make_fetcher, tmp_path, monkeypatch):
    async def create(model, messages):
        await asyncio.sleep(5)

    monkeypatch.setattr(settings, "ai_timeout_seconds", 0.2)
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    reporter = SituationReporter(ConfigProvider(SimpleNamespace(gemini_api_key="k")), client)
    html = _today_page(_row(0, 1, "3.0"))
    widget = EarthquakeWidget(make_fetcher(lambda request: httpx.Response(200, text=html)), Preferences(tmp_path / "p.json"), reporter)

    start = time.perf_counter()
    asyncio.run(widget.refresh())

    assert time.perf_counter() - start < 2
    assert widget.status is LoadingState.SUCCESS
    assert widget.report == REPORT_OFFLINE


def test_unparsable_feed_is_an_error_not_an_empty_day(make_fetcher, tmp_path, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("table layout changed")

    monkeypatch.setattr(earthquake, "extract", broken)
    reporter = StubReporter()
    widget = EarthquakeWidget(
        make_fetcher(lambda request: httpx.Response(200, text=_today_page())),
        Preferences(tmp_path / "prefs.json"),
        reporter,
    )
    asyncio.run(widget.refresh())

    assert widget.status is LoadingState.ERROR
    assert widget.error == "Error parsing data"
    assert reporter.calls == []
