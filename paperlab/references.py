from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractorConfig:
    # Largest forward jump between accepted [N] markers.
    max_gap: int = 5
    min_chars: int = 30
    min_words: int = 5
    # How far after a header to look for a first citation.
    header_lookahead: int = 500
    # Rough length of one bibliography entry, used to bound the end scan.
    est_citation_len: int = 500
    # End markers closer than this to the section start are ignored.
    min_end_offset: int = 100
    min_bracketed: int = 2
    min_numbered: int = 3


DEFAULT_CONFIG = ExtractorConfig()

_HEADER_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("references", re.compile(r"\bReferences?\b", re.IGNORECASE)),
    ("bibliography", re.compile(r"\bBibliography\b", re.IGNORECASE)),
    ("works_cited", re.compile(r"\bWorks\s+Cited\b", re.IGNORECASE)),
    ("literature_cited", re.compile(r"\bLiterature\s+Cited\b", re.IGNORECASE)),
    ("cited_literature", re.compile(r"\bCited\s+Literature\b", re.IGNORECASE)),
]

_END_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\bAppendix\s*[A-Z]?\b", re.IGNORECASE),
    re.compile(r"\bFull\s+Corpus\b", re.IGNORECASE),
    re.compile(r"\bSupplementary\s+Materials?\b", re.IGNORECASE),
    re.compile(r"\bAcknowledgements?\b", re.IGNORECASE),
    re.compile(r"\bAcknowledgments?\b", re.IGNORECASE),
    re.compile(r"\bAbout\s+the\s+Authors?\b", re.IGNORECASE),
    re.compile(r"\bAuthor\s+Biographies?\b", re.IGNORECASE),
    re.compile(r"\bTable\s+\d+:", re.IGNORECASE),
    re.compile(r"\bFigure\s+\d+:", re.IGNORECASE),
]

_RE_WS = re.compile(r"\s+")
_RE_BRACKET = re.compile(r"\[(\d+)\]")
_RE_FIRST_BRACKET = re.compile(r"\[1\]")
# Whitespace is already collapsed, so "line start" means start or a space.
_RE_CITATION_START = re.compile(r"\[1\]|(?:^|\s)1\.\s+[A-Z]")
_RE_NUMBERED = re.compile(r"(?:^|\s)(\d{1,3})\.\s+[A-Z]")
_RE_NUMBERED_LEAD = re.compile(r"^\d{1,3}\.\s*")
_RE_LINEBREAK_HYPHEN = (
    re.compile(r"(\w)- (\w)"),
    re.compile(r"(\w) - (\w)"),
    re.compile(r"(\w) -(\w)"),
)


def clean_hyphenated_line_breaks(text: str) -> str:
    """
    Join words split across a line break ("hyper- visor" -> "hypervisor").
    A hyphen with no space on either side is a real compound and is kept.
    """
    s = text or ""
    for pat in _RE_LINEBREAK_HYPHEN:
        s = pat.sub(r"\1\2", s)
    return _RE_WS.sub(" ", s).strip()


def looks_like_citation(text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> bool:
    # Short fragments here are almost always table cells from a neighbouring column.
    if len(text) < config.min_chars:
        return False
    return len(text.split()) >= config.min_words


# --- section boundaries ---

def find_start_by_header(text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> int | None:
    half = len(text) // 2
    tail = text[half:]
    for name, pat in _HEADER_PATTERNS:
        hits = list(pat.finditer(tail))
        if not hits:
            continue
        for m in hits:
            after = tail[m.end(): m.end() + config.header_lookahead]
            if _RE_CITATION_START.search(after):
                logger.debug("[RefParser] header %r at %d (verified by citation start)", name, half + m.end())
                return half + m.end()
        logger.debug("[RefParser] header %r at %d (first occurrence, unverified)", name, half + hits[0].end())
        return half + hits[0].end()
    return None


def find_start_by_first_marker(text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> int | None:
    third = len(text) // 3
    if third <= 0:
        return None
    offset = len(text) - third
    m = _RE_FIRST_BRACKET.search(text, offset)
    if not m:
        return None
    logger.debug("[RefParser] no header; using first [1] at %d", m.start())
    return m.start()


_START_STRATEGIES: list[Callable[[str, ExtractorConfig], int | None]] = [
    find_start_by_header,
    find_start_by_first_marker,
]


def find_bibliography_start(text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> int | None:
    for strategy in _START_STRATEGIES:
        pos = strategy(text, config)
        if pos is not None:
            return pos
    return None


def _sequential_run(matches: list[re.Match[str]], max_gap: int) -> list[re.Match[str]]:
    run: list[re.Match[str]] = []
    expected = 1
    for m in matches:
        n = int(m.group(1))
        if expected <= n <= expected + max_gap:
            run.append(m)
            expected = n + 1
        elif n == 1 and not any(int(x.group(1)) == 1 for x in run):
            # A real [1] re-anchors a run that began on stray markers.
            run = [m]
            expected = 2
    return run


def find_bibliography_end(section: str, config: ExtractorConfig = DEFAULT_CONFIG) -> int:
    """
    Trim trailing appendices and captions. Two-column extraction interleaves
    captions with citations, so an end marker only counts after the last
    sequential citation.
    """
    run = _sequential_run(list(_RE_BRACKET.finditer(section)), config.max_gap)
    last_idx = run[-1].start() if run else 0
    floor = max(config.min_end_offset, last_idx + config.est_citation_len)

    end = len(section)
    for pat in _END_PATTERNS:
        m = pat.search(section, floor + 1)
        if m and m.start() < end:
            end = m.start()
    if end < len(section):
        logger.debug("[RefParser] trimming reference section from %d to %d chars", len(section), end)
    return end


# --- entry parsing strategies ---

def parse_bracketed(section: str, config: ExtractorConfig = DEFAULT_CONFIG) -> dict[str, str]:
    matches = list(_RE_BRACKET.finditer(section))
    run = _sequential_run(matches, config.max_gap)
    logger.debug("[RefParser] %d bracket markers, %d sequential", len(matches), len(run))
    if len(run) < config.min_bracketed:
        return {}

    out: dict[str, str] = {}
    skipped = 0
    for i, m in enumerate(run):
        end = run[i + 1].start() if i + 1 < len(run) else len(section)
        ref = clean_hyphenated_line_breaks(section[m.end(): end])
        if looks_like_citation(ref, config):
            out[m.group(1)] = ref
        else:
            skipped += 1
    if skipped:
        logger.debug("[RefParser] skipped %d bracket entries that do not look like citations", skipped)
    return out


def parse_numbered(section: str, config: ExtractorConfig = DEFAULT_CONFIG) -> dict[str, str]:
    matches = list(_RE_NUMBERED.finditer(section))
    if len(matches) < config.min_numbered:
        return {}

    out: dict[str, str] = {}
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(section)
        raw = _RE_NUMBERED_LEAD.sub("", section[m.start(): end].strip())
        ref = clean_hyphenated_line_breaks(raw)
        if looks_like_citation(ref, config):
            out[m.group(1)] = ref
    return out


ENTRY_STRATEGIES: list[tuple[str, Callable[[str, ExtractorConfig], dict[str, str]]]] = [
    ("bracketed", parse_bracketed),
    ("numbered", parse_numbered),
]


def extract_references(full_text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> dict[str, str]:
    """
    Best-effort bibliography recovery from plain extracted page text.

    Returns citation number -> citation text. An empty dict is a normal
    outcome (no bibliography found); this never raises.
    """
    try:
        text = _RE_WS.sub(" ", str(full_text or ""))
        if not text.strip():
            return {}

        start = find_bibliography_start(text, config)
        if start is None:
            logger.debug("[RefParser] could not find a references section")
            return {}

        section = text[start:]
        section = section[: find_bibliography_end(section, config)]

        for name, strategy in ENTRY_STRATEGIES:
            refs = strategy(section, config)
            if refs:
                logger.info("[RefParser] parsed %d references (%s)", len(refs), name)
                return refs
        return {}
    except Exception:
        logger.exception("[RefParser] reference extraction failed")
        return {}
