from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.deps import get_session
from paperlab.geometry import effective_scale, hit_test, page_rects_to_viewport
from paperlab.models import HIGHLIGHT_COLORS, HIGHLIGHT_THEMES, Highlight
from paperlab.session import ReaderSession, Selection

router = APIRouter(prefix="/api/highlights", tags=["highlights"])


class SelectionBody(BaseModel):
    text: str
    page_number: int
    client_rects: list[dict[str, float]]
    page_origin: dict[str, float] = {"x": 0.0, "y": 0.0}
    scale: float = 1.0
    color: str | None = None
    further_reading: bool = False
    note: str | None = None


class ColorBody(BaseModel):
    color: str


class CheckBody(BaseModel):
    text: str


class HitBody(BaseModel):
    # Click position relative to the page, in viewport px.
    x: float
    y: float
    scale: float = 1.0
    fit_to_width: bool = False
    container_width: float = 0.0


def _open_session() -> ReaderSession:
    session = get_session()
    if session.document_id is None:
        raise HTTPException(409, "no document is open")
    return session


def _local_highlight(highlight_id: str) -> Highlight:
    for h in get_session().highlights:
        if h.id == highlight_id:
            return h
    raise HTTPException(404, "highlight not found")


@router.get("")
async def list_highlights(page_number: int | None = None):
    items = get_session().highlights
    if page_number is not None:
        items = [h for h in items if h.page_number == page_number]
    return [h.to_dict() for h in items]


@router.get("/themes")
async def highlights_by_theme():
    items = get_session().highlights
    return [
        {
            "color": color,
            "theme": HIGHLIGHT_THEMES[color],
            "highlights": [h.to_dict() for h in items if h.color == color],
        }
        for color in HIGHLIGHT_COLORS
    ]


@router.get("/viewport")
async def highlights_in_viewport(
    page_number: int | None = None,
    scale: float = 1.0,
    origin_x: float = 0.0,
    origin_y: float = 0.0,
    fit_to_width: bool = False,
    container_width: float = 0.0,
):
    """Stored highlights re-projected to the current zoom for drawing."""
    eff = effective_scale(scale, fit_to_width=fit_to_width, container_width=container_width)
    if eff <= 0:
        raise HTTPException(400, "scale must be positive")
    origin = {"x": origin_x, "y": origin_y}
    items = get_session().highlights
    if page_number is not None:
        items = [h for h in items if h.page_number == page_number]
    return {
        "scale": eff,
        "highlights": [
            {
                "id": h.id,
                "page_number": h.page_number,
                "color": h.color,
                "rects": [r.to_dict() for r in page_rects_to_viewport(h.rects, origin, eff)],
            }
            for h in items
        ],
    }


@router.post("")
async def create_highlight(body: SelectionBody):
    session = _open_session()
    h = await session.create_highlight(Selection(**body.model_dump()))
    if h is None:
        return {"created": False, "highlight": None}
    return {"created": True, "highlight": h.to_dict()}


@router.post("/check")
async def check_selection(body: CheckBody) -> dict[str, Any]:
    return get_session().check_selection(body.text).to_dict()


@router.post("/{highlight_id}/hit")
async def hit_highlight(highlight_id: str, body: HitBody):
    h = _local_highlight(highlight_id)
    eff = effective_scale(body.scale, fit_to_width=body.fit_to_width, container_width=body.container_width)
    rect = hit_test(h.rects, {"x": body.x, "y": body.y}, eff)
    if rect is None:
        return {"hit": False, "index": None, "rect": None}
    return {"hit": True, "index": h.rects.index(rect), "rect": rect.to_dict()}


@router.patch("/{highlight_id}/color")
async def change_color(highlight_id: str, body: ColorBody):
    try:
        h = await get_session().change_color(highlight_id, body.color)
    except KeyError:
        raise HTTPException(404, "highlight not found")
    return h.to_dict()


@router.delete("/{highlight_id}")
async def delete_highlight(highlight_id: str):
    await get_session().delete_highlight(highlight_id)
    return {"ok": True}
