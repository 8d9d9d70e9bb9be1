from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.deps import get_session, get_store

router = APIRouter(prefix="/api/reading-list", tags=["reading-list"])


class CheckBody(BaseModel):
    text: str


@router.get("")
async def list_reading_list(document_id: str | None = None, status: str = "all"):
    items = await get_store().list_reading_list_across_library()
    if document_id:
        items = [h for h in items if h.document_id == document_id]
    if status == "resolved":
        items = [h for h in items if h.is_resolved]
    elif status == "unresolved":
        items = [h for h in items if not h.is_resolved]
    elif status != "all":
        raise HTTPException(400, f"unknown status filter: {status}")
    return [h.to_dict() for h in items]


@router.post("/{highlight_id}/toggle-resolved")
async def toggle_resolved(highlight_id: str):
    try:
        h = await get_session().toggle_resolved(highlight_id)
    except KeyError:
        raise HTTPException(404, "highlight not found")
    return h.to_dict()


@router.delete("/{highlight_id}")
async def remove_from_reading_list(highlight_id: str):
    await get_session().delete_highlight(highlight_id)
    return {"ok": True}


@router.post("/dedupe")
async def dedupe():
    removed = await get_session().dedupe_reading_list()
    return {"removed": removed}


@router.post("/check")
async def check_candidate(body: CheckBody):
    return get_session().check_selection(body.text).to_dict()
