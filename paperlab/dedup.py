from __future__ import annotations

import re
from typing import Iterable, Union

from .models import Highlight, LibraryTitle, ReadingListEntry

READING_LIST = "reading_list"
LIBRARY = "library"

# Library titles are compared on this many leading characters when the
# candidate citation was truncated mid-title.
LIBRARY_PREFIX_LEN = 30

_RE_LINEBREAK_HYPHEN = (
    re.compile(r"(\w)- (\w)"),
    re.compile(r"(\w) - (\w)"),
    re.compile(r"(\w) -(\w)"),
)
_RE_PUNCT = re.compile(r"[.,;:()\[\]{}'\"]")
_RE_WS = re.compile(r"\s+")

Comparable = Union[str, ReadingListEntry, LibraryTitle, Highlight]


def normalize_for_comparison(text: str) -> str:
    s = (text or "").lower()
    for pat in _RE_LINEBREAK_HYPHEN:
        s = pat.sub(r"\1\2", s)
    # Line-break cleanup is inconsistent upstream, so every hyphen goes.
    s = s.replace("-", "")
    s = _RE_PUNCT.sub("", s)
    return _RE_WS.sub(" ", s).strip()


def _normalized(item: Comparable) -> str:
    if isinstance(item, ReadingListEntry):
        return item.normalized_text
    if isinstance(item, LibraryTitle):
        return normalize_for_comparison(item.title)
    if isinstance(item, Highlight):
        return normalize_for_comparison(item.text)
    return normalize_for_comparison(str(item or ""))


def _library_match(ref_norm: str, title_norm: str) -> bool:
    if not ref_norm or not title_norm:
        return False
    if ref_norm == title_norm:
        return True
    if title_norm in ref_norm or ref_norm in title_norm:
        return True
    prefix = title_norm[: min(LIBRARY_PREFIX_LEN, len(title_norm))]
    return prefix in ref_norm


def matches_library_title(candidate: str, title: str) -> bool:
    """
    Loose match of a citation against a paper title already in the library.
    Citations are often truncated or carry author/year noise around the
    title, so containment and a title-prefix hit both count.
    """
    return _library_match(normalize_for_comparison(candidate), normalize_for_comparison(title))


def is_duplicate(candidate: str, existing: Iterable[Comparable], *, policy: str = READING_LIST) -> bool:
    """
    READING_LIST: exact equality of normalized text.
    LIBRARY: the looser matches_library_title rule.
    """
    cand = normalize_for_comparison(candidate)
    if policy == LIBRARY:
        return any(_library_match(cand, _normalized(e)) for e in existing)
    if policy != READING_LIST:
        raise ValueError(f"unknown dedup policy: {policy!r}")
    if not cand:
        return False
    return any(cand == _normalized(e) for e in existing)


def find_library_match(candidate: str, titles: Iterable[LibraryTitle]) -> LibraryTitle | None:
    cand = normalize_for_comparison(candidate)
    for t in titles:
        if _library_match(cand, normalize_for_comparison(t.title)):
            return t
    return None


def plan_dedupe(highlights: Iterable[Highlight]) -> list[Highlight]:
    """Reading-list items to delete: all but the oldest of each normalized-text group."""
    groups: dict[str, list[Highlight]] = {}
    for h in highlights:
        groups.setdefault(normalize_for_comparison(h.text), []).append(h)

    doomed: list[Highlight] = []
    for items in groups.values():
        if len(items) > 1:
            items.sort(key=lambda h: h.created_at)
            doomed.extend(items[1:])
    return doomed
