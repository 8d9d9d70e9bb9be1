from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from api.deps import get_session
from api.sse import sse_generator, sse_response
from paperlab.citations import resolve
from paperlab.references import extract_references

router = APIRouter(prefix="/api/references", tags=["references"])


class ExtractBody(BaseModel):
    text: str


@router.post("/extract")
def extract(body: ExtractBody):
    return extract_references(body.text)


@router.get("")
async def current_references():
    session = get_session()
    return {"document_id": session.document_id, "references": session.references}


@router.get("/{number}")
async def resolve_reference(number: str):
    info = resolve(number, get_session().references)
    if info is None:
        return {"number": number, "found": False}
    return {
        "number": info.number,
        "found": True,
        "title": info.title,
        "full_citation": info.full_citation,
        "first_author": info.first_author,
    }


@router.get("/load/status")
async def load_status():
    loader = get_session().loader

    def poll():
        snap = loader.snapshot()
        return {
            **snap,
            "done": snap.get("status") in ("done", "error", "idle"),
        }
    return sse_response(sse_generator(poll, interval=0.25, timeout_s=120.0))
