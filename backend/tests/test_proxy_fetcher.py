"""Proxy rotation: strict ordering, validation fallthrough, timeouts and typed failures."""
import asyncio
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from conftest import target_of
from sentinel.proxy_fetcher import (
    FailureKind,
    NetworkExhausted,
    contains_any,
    looks_like_html,
    min_length,
    template_rewriter,
    with_cache_buster,
)

TARGET = "https://earthquake.phivolcs.dost.gov.ph/"


def test_first_valid_proxy_wins_and_later_proxies_are_not_called(make_fetcher):
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        if request.url.host == "p1.test":
            return httpx.Response(503, text="busy")
        return httpx.Response(200, text="<table>Date/Time Latitude</table>")

    fetcher = make_fetcher(handler)
    result = asyncio.run(fetcher.fetch(TARGET, contains_any("Date/Time")))

    assert result.ok
    assert "Latitude" in result.text
    assert hosts == ["p1.test", "p2.test"]
    assert [a.kind for a in result.attempts] == [FailureKind.HTTP_STATUS]


def test_always_rejecting_validator_exhausts_every_proxy_in_order(make_fetcher):
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        return httpx.Response(200, text="short")

    fetcher = make_fetcher(handler)
    result = asyncio.run(fetcher.fetch(TARGET, lambda text: False))

    assert not result.ok
    assert result.failure.kind == FailureKind.EXHAUSTED
    assert hosts == ["p1.test", "p2.test", "p3.test"]
    assert all(a.kind == FailureKind.VALIDATION for a in result.attempts)


def test_slow_proxy_is_abandoned_within_its_timeout(make_fetcher):
    async def handler(request):
        if request.url.host == "p1.test":
            await asyncio.sleep(5)
        return httpx.Response(200, text="<html>" + "x" * 600)

    fetcher = make_fetcher(handler, timeout=0.2)
    start = time.perf_counter()
    result = asyncio.run(fetcher.fetch(TARGET, looks_like_html))

    assert result.ok
    assert result.attempts[0].kind == FailureKind.TIMEOUT
    assert time.perf_counter() - start < 2


def test_all_timeouts_return_failure_instead_of_hanging(make_fetcher):
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, text="never")

    fetcher = make_fetcher(handler, timeout=0.1)
    start = time.perf_counter()
    result = asyncio.run(fetcher.fetch(TARGET, looks_like_html))

    assert not result.ok
    assert [a.kind for a in result.attempts] == [FailureKind.TIMEOUT] * 3
    assert time.perf_counter() - start < 3


def test_transport_error_falls_through_to_next_proxy(make_fetcher):
    def handler(request):
        if request.url.host == "p1.test":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, text="<!DOCTYPE html><html></html>")

    result = asyncio.run(make_fetcher(handler).fetch(TARGET, looks_like_html))

    assert result.ok
    assert result.attempts[0].kind == FailureKind.TRANSPORT


def test_target_is_cache_busted_before_reaching_the_proxy(make_fetcher):
    seen = []

    def handler(request):
        seen.append(target_of(request))
        return httpx.Response(200, text="Date/Time")

    asyncio.run(make_fetcher(handler).fetch(TARGET, contains_any("Date/Time")))

    query = parse_qs(urlsplit(seen[0]).query)
    assert seen[0].startswith(TARGET)
    assert query["t"][0].isdigit()


def test_fetch_text_raises_network_exhausted(make_fetcher):
    fetcher = make_fetcher(lambda request: httpx.Response(500))

    with pytest.raises(NetworkExhausted) as exc:
        asyncio.run(fetcher.fetch_text(TARGET, looks_like_html))

    assert exc.value.target_url == TARGET
    assert len(exc.value.attempts) == 3


def test_cache_buster_keeps_existing_query():
    assert with_cache_buster("https://a.test/x?y=1", now_ms=42) == "https://a.test/x?y=1&t=42"
    assert with_cache_buster("https://a.test/", now_ms=42) == "https://a.test/?t=42"


def test_template_rewriter_percent_encodes_target():
    rewrite = template_rewriter("https://api.codetabs.com/v1/proxy?quest={url}")
    assert rewrite("https://a.test/?t=1") == "https://api.codetabs.com/v1/proxy?quest=https%3A%2F%2Fa.test%2F%3Ft%3D1"


def test_validators():
    assert min_length(5)("abcdef")
    assert not min_length(5)("abc")
    assert looks_like_html("<!DOCTYPE html>")
    assert not looks_like_html('{"error": "blocked"}')
    assert contains_any("Latitude", "Date/Time")("... Latitude ...")
    assert not contains_any("Latitude")("")
