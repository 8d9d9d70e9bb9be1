from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Iterable

from .models import Rect

# Client rects at or under this size (viewport px) are line-break artifacts.
MIN_FRAGMENT_PX = 5.0
# Vertical distance under which two rects are treated as one text line.
SAME_LINE_TOLERANCE = 3.0
# Ordering uses a slightly tighter band than merging.
_SORT_LINE_TOLERANCE = 2.0
# Horizontal slack for "touching" rects.
TOUCH_SLACK = 1.0
# Rects at or under this size are ignored by click hit-testing.
MIN_HIT_SIZE = 2.0
# US-letter page width in points, used for fit-to-width.
STANDARD_PAGE_WIDTH = 612.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def as_client_rect(obj: Any) -> Rect:
    """
    Normalize a renderer-supplied rectangle into a plain Rect.
    Accepts mappings or objects exposing x/y/width/height (DOMRect style)
    or left/top/right/bottom.
    """
    x = _get(obj, "x")
    if x is None:
        x = _get(obj, "left")
    y = _get(obj, "y")
    if y is None:
        y = _get(obj, "top")
    w = _get(obj, "width")
    h = _get(obj, "height")
    if w is None and _get(obj, "right") is not None:
        w = float(_get(obj, "right")) - float(x or 0.0)
    if h is None and _get(obj, "bottom") is not None:
        h = float(_get(obj, "bottom")) - float(y or 0.0)
    return Rect(x=float(x or 0.0), y=float(y or 0.0), width=float(w or 0.0), height=float(h or 0.0))


def as_point(obj: Any) -> Point:
    if isinstance(obj, Point):
        return obj
    if isinstance(obj, (tuple, list)):
        return Point(float(obj[0]), float(obj[1]))
    x = _get(obj, "x")
    if x is None:
        x = _get(obj, "left")
    y = _get(obj, "y")
    if y is None:
        y = _get(obj, "top")
    return Point(float(x or 0.0), float(y or 0.0))


def effective_scale(scale: float, *, fit_to_width: bool = False, container_width: float = 0.0) -> float:
    if fit_to_width and container_width > 0:
        return float(container_width) / STANDARD_PAGE_WIDTH
    return float(scale)


def filter_fragments(rects: Iterable[Rect], min_size: float = MIN_FRAGMENT_PX) -> list[Rect]:
    return [r for r in rects if r.width > min_size and r.height > min_size]


def to_page_rect(rect: Rect, origin: Point, scale: float) -> Rect:
    return Rect(
        x=(rect.x - origin.x) / scale,
        y=(rect.y - origin.y) / scale,
        width=rect.width / scale,
        height=rect.height / scale,
    )


def to_viewport_rect(rect: Rect, origin: Point, scale: float) -> Rect:
    return Rect(
        x=rect.x * scale + origin.x,
        y=rect.y * scale + origin.y,
        width=rect.width * scale,
        height=rect.height * scale,
    )


def _line_order_key():
    def cmp(a: Rect, b: Rect) -> int:
        dy = a.y - b.y
        if abs(dy) > _SORT_LINE_TOLERANCE:
            return -1 if dy < 0 else 1
        dx = a.x - b.x
        if dx == 0:
            return 0
        return -1 if dx < 0 else 1

    return functools.cmp_to_key(cmp)


def merge_overlapping_rects(rects: list[Rect]) -> list[Rect]:
    """
    Collapse same-line rects that overlap or touch into one rect.
    Multi-fragment selections report one rect per text run; drawing them all
    double-paints the overlaps.
    """
    if not rects:
        return []
    ordered = sorted(rects, key=_line_order_key())

    merged: list[Rect] = []
    for r in ordered:
        if not merged:
            merged.append(Rect(r.x, r.y, r.width, r.height))
            continue
        last = merged[-1]
        same_line = abs(r.y - last.y) < SAME_LINE_TOLERANCE
        touches = r.x <= last.right + TOUCH_SLACK
        if same_line and touches:
            new_right = max(last.right, r.right)
            last.width = new_right - last.x
            last.height = max(last.height, r.height)
        else:
            merged.append(Rect(r.x, r.y, r.width, r.height))
    return merged


def selection_to_page_rects(
    client_rects: Iterable[Any],
    page_origin: Any,
    scale: float,
) -> list[Rect] | None:
    """
    Convert live selection client rects (viewport px) into merged
    page-intrinsic rects. Returns None when nothing drawable is left.
    """
    if scale <= 0:
        return None
    origin = as_point(page_origin)
    raw = filter_fragments(as_client_rect(r) for r in client_rects)
    if not raw:
        return None
    page_rects = [to_page_rect(r, origin, scale) for r in raw]
    merged = merge_overlapping_rects(page_rects)
    return merged or None


def page_rects_to_viewport(rects: Iterable[Rect], page_origin: Any, scale: float) -> list[Rect]:
    origin = as_point(page_origin)
    return [to_viewport_rect(r, origin, scale) for r in rects]


def hit_test(rects: list[Rect], click: Any, scale: float) -> Rect | None:
    """
    Pick the rect of a multi-rect highlight nearest to a click given in
    page-relative viewport px. Vertical distance dominates since text lines
    are the primary grouping.
    """
    p = as_point(click)
    valid = [r for r in rects if r.width > MIN_HIT_SIZE and r.height > MIN_HIT_SIZE]
    if not valid:
        return None
    best = valid[0]
    best_dist = float("inf")
    for r in valid:
        cx = (r.x + r.width / 2) * scale
        cy = (r.y + r.height / 2) * scale
        dist = abs(cy - p.y) + abs(cx - p.x) * 0.5
        if dist < best_dist:
            best_dist = dist
            best = r
    return best
