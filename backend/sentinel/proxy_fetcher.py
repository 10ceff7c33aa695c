# -*- coding: utf-8 -*-
"""
Fetch public pages through rotating CORS proxies.

Government sites (PHIVOLCS, PAGASA) are slow, flaky and often block direct
clients, so every request goes through an ordered list of passthrough proxies.
The first proxy that returns a 2xx response whose body passes the caller's
validator wins. A total failure is returned as a value, never raised, unless
the caller asks for ``fetch_text``.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

import httpx

from .settings import settings

logger = logging.getLogger(__name__)

Validator = Callable[[str], bool]
ProxyRewriter = Callable[[str], str]


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    VALIDATION = "validation_failed"
    TRANSPORT = "transport"
    EXHAUSTED = "all_proxies_exhausted"


@dataclass
class FetchFailure:
    kind: FailureKind
    proxy_url: str = ""
    detail: str = ""


@dataclass
class FetchResult:
    text: Optional[str] = None
    failure: Optional[FetchFailure] = None
    attempts: list[FetchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.text is not None


class NetworkExhausted(Exception):
    """Every proxy attempt failed for a target URL."""

    def __init__(self, target_url: str, attempts: Sequence[FetchFailure] = ()):
        self.target_url = target_url
        self.attempts = list(attempts)
        kinds = ", ".join(a.kind.value for a in self.attempts) or "no proxies"
        super().__init__(f"All proxies failed for {target_url} ({kinds})")


def template_rewriter(template: str) -> ProxyRewriter:
    """Build a rewriter from a template such as ``https://corsproxy.io/?{url}``."""
    def _rewrite(target_url: str) -> str:
        return template.format(url=quote(target_url, safe=""))
    return _rewrite


def default_proxies() -> list[ProxyRewriter]:
    return [template_rewriter(t) for t in settings.proxy_templates]


def with_cache_buster(url: str, now_ms: Optional[int] = None) -> str:
    """Append ``t=<epoch ms>`` so neither the origin nor the proxy serves a stale copy."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    parts = urlsplit(url)
    extra = urlencode({"t": stamp})
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


# Validators

def contains_any(*markers: str) -> Validator:
    def _check(text: str) -> bool:
        return bool(text) and any(m in text for m in markers)
    return _check


def min_length(n: int) -> Validator:
    def _check(text: str) -> bool:
        return bool(text) and len(text) > n
    return _check


def looks_like_html(text: str) -> bool:
    if not text:
        return False
    head = text.lower()
    return "<html" in head or "<!doctype" in head


class ProxyFetcher:
    """Tries each proxy strictly in order, one at a time."""

    def __init__(
        self,
        proxies: Optional[Sequence[ProxyRewriter]] = None,
        timeout: float = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.proxies = list(proxies) if proxies is not None else default_proxies()
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        ua = random.choice(settings.user_agents) if settings.user_agents else settings.user_agent
        return {"User-Agent": ua}

    async def fetch(self, target_url: str, validator: Validator, timeout: Optional[float] = None) -> FetchResult:
        limit = timeout if timeout is not None else self.timeout
        busted = with_cache_buster(target_url)
        attempts: list[FetchFailure] = []

        if self._client is not None:
            text = await self._try_proxies(self._client, busted, validator, limit, attempts)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                text = await self._try_proxies(client, busted, validator, limit, attempts)

        if text is not None:
            return FetchResult(text=text, attempts=attempts)

        logger.warning(f"All {len(self.proxies)} proxies failed for {target_url}")
        return FetchResult(
            failure=FetchFailure(FailureKind.EXHAUSTED, detail=target_url),
            attempts=attempts,
        )

    async def fetch_text(self, target_url: str, validator: Validator, timeout: Optional[float] = None) -> str:
        result = await self.fetch(target_url, validator, timeout=timeout)
        if not result.ok:
            raise NetworkExhausted(target_url, result.attempts)
        return result.text

    async def _try_proxies(self, client, target_url, validator, limit, attempts) -> Optional[str]:
        for rewrite in self.proxies:
            proxy_url = rewrite(target_url)
            outcome = await self._attempt(client, proxy_url, validator, limit)
            if isinstance(outcome, str):
                return outcome
            logger.debug(f"Proxy attempt failed ({outcome.kind.value}): {proxy_url} {outcome.detail}")
            attempts.append(outcome)
        return None

    async def _attempt(self, client: httpx.AsyncClient, proxy_url: str, validator: Validator, limit: float):
        """Returns the body on success, otherwise a FetchFailure."""
        try:
            # wait_for bounds the whole attempt, httpx timeouts are per network phase
            response = await asyncio.wait_for(
                client.get(proxy_url, headers=self._headers(), timeout=limit),
                timeout=limit,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            return FetchFailure(FailureKind.TIMEOUT, proxy_url, str(e) or "timed out")
        except httpx.HTTPError as e:
            return FetchFailure(FailureKind.TRANSPORT, proxy_url, str(e))

        if not response.is_success:
            return FetchFailure(FailureKind.HTTP_STATUS, proxy_url, f"HTTP {response.status_code}")

        text = response.text
        if not validator(text):
            return FetchFailure(FailureKind.VALIDATION, proxy_url, f"{len(text or '')} chars")
        return text
