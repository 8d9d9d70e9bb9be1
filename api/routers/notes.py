from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.deps import get_session

router = APIRouter(prefix="/api/notes", tags=["notes"])


class AddNoteBody(BaseModel):
    highlight_id: str
    content: str


class UpdateNoteBody(BaseModel):
    content: str


@router.get("")
async def list_notes(highlight_id: str | None = None):
    session = get_session()
    items = session.notes_for(highlight_id) if highlight_id else session.notes
    return [n.to_dict() for n in items]


@router.post("")
async def add_note(body: AddNoteBody):
    try:
        note = await get_session().add_note(body.highlight_id, body.content)
    except KeyError:
        raise HTTPException(404, "highlight not found")
    return note.to_dict()


@router.patch("/{note_id}")
async def update_note(note_id: str, body: UpdateNoteBody):
    try:
        note = await get_session().update_note(note_id, body.content)
    except KeyError:
        raise HTTPException(404, "note not found")
    return note.to_dict()


@router.delete("/{note_id}")
async def delete_note(note_id: str):
    try:
        await get_session().delete_note(note_id)
    except KeyError:
        raise HTTPException(404, "note not found")
    return {"ok": True}
