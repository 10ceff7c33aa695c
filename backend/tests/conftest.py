import asyncio
from urllib.parse import unquote

import httpx
import pytest

from sentinel.proxy_fetcher import ProxyFetcher, template_rewriter
from sentinel.settings import settings

PROXY_TEMPLATES = [
    "https://p1.test/raw?url={url}",
    "https://p2.test/?url={url}",
    "https://p3.test/proxy?quest={url}",
]


@pytest.fixture(autouse=True)
def _isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "logs_dir", tmp_path / "logs")
    monkeypatch.setattr(settings, "preferences_path", tmp_path / "data" / "preferences.json")


def target_of(request: httpx.Request) -> str:
    """The original URL a proxy request was made for."""
    params = request.url.params
    return unquote(params.get("url") or params.get("quest") or "")


@pytest.fixture
def make_fetcher():
    """make_fetcher(handler) -> ProxyFetcher whose three proxies all hit ``handler``."""
    clients = []

    def _make(handler, timeout: float = 1.0) -> ProxyFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return ProxyFetcher([template_rewriter(t) for t in PROXY_TEMPLATES], timeout=timeout, client=client)

    yield _make

    for client in clients:
        asyncio.run(client.aclose())
