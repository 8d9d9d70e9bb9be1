from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.deps import get_session, get_settings, get_store
from paperlab.page_text import PdfPageTextSource, StaticPageTextSource

router = APIRouter(prefix="/api/documents", tags=["documents"])


class UpsertDocumentBody(BaseModel):
    id: str
    title: str = ""


class OpenDocumentBody(BaseModel):
    # Either the already-extracted page texts or a PDF file name under the pdf dir.
    pages: list[str] | None = None
    pdf: str | None = None
    num_pages: int | None = None


class ProgressBody(BaseModel):
    page: int


@router.get("")
async def list_documents():
    titles = await get_store().list_library_titles()
    return [{"id": t.id, "title": t.title} for t in titles]


@router.post("")
async def upsert_document(body: UpsertDocumentBody):
    await get_store().upsert_document(body.id, body.title)
    await get_session().refresh_library_titles()
    return {"ok": True}


@router.post("/{document_id}/open")
async def open_document(document_id: str, body: OpenDocumentBody):
    source = None
    if body.pages is not None:
        source = StaticPageTextSource(body.pages)
    elif body.pdf:
        pdf_dir = get_settings().pdf_dir.resolve()
        path = (pdf_dir / body.pdf).resolve()
        if path.parent != pdf_dir or not path.is_file():
            raise HTTPException(404, "pdf not found")
        source = await asyncio.to_thread(PdfPageTextSource, path)

    session = get_session()
    await session.open_document(document_id, source, num_pages=body.num_pages)
    return {
        "document_id": document_id,
        "highlights": [h.to_dict() for h in session.highlights],
        "notes": [n.to_dict() for n in session.notes],
    }


@router.post("/close")
async def close_document():
    await get_session().close()
    return {"ok": True}


@router.post("/{document_id}/progress")
async def observe_page(document_id: str, body: ProgressBody):
    session = get_session()
    if session.document_id != document_id:
        raise HTTPException(409, "document is not open")
    return {"scheduled": session.observe_page(body.page)}
