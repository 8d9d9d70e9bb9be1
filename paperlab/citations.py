from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Selections this long are prose, never a citation marker.
MAX_MARKER_SELECTION = 100
_SHORT_MARKER_LEN = 10
_LIKELY_MARKER_LEN = 15
_TITLE_FALLBACK_LEN = 150

_MARKER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\[(\d+(?:\s*[-–,]\s*\d+)*)\]"),  # [1], [1-3], [1, 2], [1–3]
    re.compile(r"\((\d+(?:\s*[-–,]\s*\d+)*)\)"),  # (1), (1-3), (1, 2)
    re.compile(r"^(\d+)$"),
    re.compile(r"^(\d+\s*[-–]\s*\d+)$"),
]
_RE_SHORT_MARKER = re.compile(r"^[\[(]?\d")
_RE_LIKELY_MARKER = re.compile(r"[\[(]\s*\d+")
_RE_DIGITS = re.compile(r"\d+")
_RE_INT = re.compile(r"^\d+$")
_RE_LIST_SPLIT = re.compile(r"[,\-–]")

_RE_QUOTED_TITLE = re.compile(r"[“”\"]([^“”\"]+)[“”\"]")
_RE_AFTER_YEAR = re.compile(r"\(\d{4}\)\.\s*([^.]+)")
_RE_SEGMENT_SPLIT = re.compile(r"\.\s+")

_RE_AUTHOR_ET_AL = re.compile(r"^([^,]+(?:,\s*[A-Z]\.?)?\s+et\s+al\.?)", re.IGNORECASE)
_RE_AUTHOR_BEFORE_AND = re.compile(
    r"^([^,]+(?:,\s*[A-Z]\.?)?)\s*(?:,\s*[A-Z]|,\s*and\s+|\s+and\s+)", re.IGNORECASE
)
_RE_AUTHOR_BEFORE_YEAR = re.compile(r"^([^(]+?)(?:\s*\(\d{4}\))")
_RE_TRAILING_PUNCT = re.compile(r"[.,;:]+$")


@dataclass(frozen=True)
class ReferenceInfo:
    number: str
    title: str
    full_citation: str
    first_author: str | None = None


def detect_reference(selected_text: str) -> str | None:
    """
    Return the citation number(s) a selection points at ("12", "1-3", "1, 2"),
    or None when it does not look like a citation marker.
    """
    s = (selected_text or "").strip()
    if not s or len(s) >= MAX_MARKER_SELECTION:
        return None

    for pat in _MARKER_PATTERNS:
        m = pat.search(s)
        if m:
            return m.group(1)

    if len(s) <= _SHORT_MARKER_LEN and _RE_SHORT_MARKER.match(s):
        nums = _RE_DIGITS.findall(s)
        if nums:
            return ", ".join(nums)
    return None


def is_likely_reference(text: str) -> bool:
    s = (text or "").strip()
    if len(s) > _LIKELY_MARKER_LEN:
        return False
    return bool(_RE_LIKELY_MARKER.search(s) or _RE_INT.match(s))


def first_number(number: str) -> str:
    return _RE_LIST_SPLIT.split(number or "")[0].strip()


def extract_title(ref_text: str) -> str:
    s = (ref_text or "").strip()

    m = _RE_QUOTED_TITLE.search(s)
    if m:
        return m.group(1).strip()

    m = _RE_AFTER_YEAR.search(s)
    if m:
        return m.group(1).strip()

    # Author list first, title second.
    parts = _RE_SEGMENT_SPLIT.split(s)
    if len(parts) >= 2:
        cand = parts[1].strip()
        if 5 < len(cand) < 200:
            return cand

    if len(s) > _TITLE_FALLBACK_LEN:
        return s[:_TITLE_FALLBACK_LEN] + "..."
    return s


def extract_first_author(ref_text: str) -> str | None:
    s = (ref_text or "").strip()
    if not s:
        return None

    m = _RE_AUTHOR_ET_AL.match(s)
    if m:
        return m.group(1).strip()

    m = _RE_AUTHOR_BEFORE_AND.match(s)
    if m:
        return m.group(1).strip()

    m = _RE_AUTHOR_BEFORE_YEAR.match(s)
    if m:
        return _RE_TRAILING_PUNCT.sub("", m.group(1).strip()).strip()

    first = _RE_SEGMENT_SPLIT.split(s)[0].strip()
    if first and len(first) < 100:
        return first
    return None


def resolve(number: str, references: dict[str, str]) -> ReferenceInfo | None:
    """Look up the first number of a marker in a document's reference map."""
    key = first_number(number)
    if not key:
        return None
    ref = (references or {}).get(key)
    if not ref:
        logger.debug("reference [%s] not in map (%d entries)", key, len(references or {}))
        return None
    return ReferenceInfo(
        number=key,
        title=extract_title(ref),
        full_citation=ref,
        first_author=extract_first_author(ref),
    )


def citation_note(number: str, info: ReferenceInfo | None, user_note: str | None = None) -> str:
    base = f"[{number}] {info.full_citation}" if info else f"Reference [{number}]"
    user_note = (user_note or "").strip()
    return f"{base}\n\n{user_note}" if user_note else base
