import re
from typing import Callable, Iterator, Optional, Sequence, TypeVar

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

T = TypeVar("T")

_SKIP_PARENTS = {"script", "style", "noscript", "template"}


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def norm_text(t: str) -> str:
    return " ".join((t or "").split())


def body_of(soup: BeautifulSoup) -> Tag:
    return soup.body or soup


def iter_text_nodes(root: Tag) -> Iterator[str]:
    """Depth-first, non-empty, whitespace-collapsed text nodes (scripts and comments skipped)."""
    for node in root.descendants:
        if not isinstance(node, NavigableString) or isinstance(node, Comment):
            continue
        if node.parent is not None and node.parent.name in _SKIP_PARENTS:
            continue
        text = norm_text(str(node))
        if text:
            yield text


def flat_text(root: Tag) -> str:
    return " ".join(iter_text_nodes(root))


def first_match(strategies: Sequence[Callable[..., Optional[T]]], *args, default: T = None) -> T:
    """Run strategies in order and return the first non-None result."""
    for strategy in strategies:
        value = strategy(*args)
        if value is not None:
            return value
    return default


def search_group(pattern: re.Pattern, text: str, group: int = 1) -> Optional[str]:
    m = pattern.search(text or "")
    return m.group(group) if m else None
