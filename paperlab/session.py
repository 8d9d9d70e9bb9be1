from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, TypeVar

from .autosave import ReadingProgressTracker
from .citations import ReferenceInfo, citation_note, detect_reference, is_likely_reference, resolve
from .dedup import find_library_match, plan_dedupe
from .geometry import selection_to_page_rects
from .models import (
    READING_LIST_COLOR,
    Highlight,
    LibraryTitle,
    Note,
    normalize_color,
    toggle_resolved_note,
)
from .page_text import PageTextSource
from .reading_list import ReadingListIndex
from .reference_sync import ReferenceLoader
from .store import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceError(RuntimeError):
    """A store write failed; the caller's local change has already been undone."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


@dataclass
class Selection:
    text: str
    page_number: int
    client_rects: list[Any]
    page_origin: Any
    scale: float
    color: str | None = None
    further_reading: bool = False
    note: str | None = None


@dataclass
class SelectionCheck:
    number: str | None = None
    likely_marker: bool = False
    reference: ReferenceInfo | None = None
    candidate_text: str = ""
    on_reading_list: bool = False
    library_match: LibraryTitle | None = None

    def to_dict(self) -> dict[str, Any]:
        ref = self.reference
        return {
            "number": self.number,
            "likely_marker": self.likely_marker,
            "reference": (
                {
                    "number": ref.number,
                    "title": ref.title,
                    "full_citation": ref.full_citation,
                    "first_author": ref.first_author,
                }
                if ref
                else None
            ),
            "candidate_text": self.candidate_text,
            "on_reading_list": self.on_reading_list,
            "library_match": (
                {"id": self.library_match.id, "title": self.library_match.title} if self.library_match else None
            ),
        }


@dataclass
class _OpenDocument:
    document_id: str
    highlights: list[Highlight] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    tracker: ReadingProgressTracker | None = None


class ReaderSession:
    """
    One reader: the open document's highlights and notes, the library-wide
    reading-list index, and the reference map of the open document.

    Highlight create/delete touch local state first and undo only their own
    change when the store rejects the write. Colour, resolved and note edits
    go to the store first and only then to local state.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        reading_list: ReadingListIndex | None = None,
        loader: ReferenceLoader | None = None,
        reading_list_color: str = READING_LIST_COLOR,
        progress_debounce_s: float = 1.0,
        reference_delay_s: float = 0.2,
    ) -> None:
        self.store = store
        self.reading_list = reading_list if reading_list is not None else ReadingListIndex()
        self.loader = loader if loader is not None else ReferenceLoader(delay_s=reference_delay_s)
        self.reading_list_color = normalize_color(reading_list_color, READING_LIST_COLOR)
        self.progress_debounce_s = float(progress_debounce_s)
        self.library_titles: list[LibraryTitle] = []
        self._doc: _OpenDocument | None = None

    # --- lifecycle ---

    async def start(self) -> None:
        n = await self._persist("load reading list", self.reading_list.reload(self.store))
        await self.refresh_library_titles()
        logger.info("[Session] reading list ready: %d entries, %d library titles", n, len(self.library_titles))

    async def refresh_library_titles(self) -> list[LibraryTitle]:
        self.library_titles = await self._persist("load library titles", self.store.list_library_titles())
        return list(self.library_titles)

    async def open_document(
        self,
        document_id: str,
        source: PageTextSource | None = None,
        num_pages: int | None = None,
    ) -> None:
        await self._close_document(flush=True)
        try:
            doc = await self._load_document(document_id, source, num_pages)
        except BaseException:
            # The loader owns the source only once load() has it.
            if source is not None:
                source.close()
            raise
        self._doc = doc

        if source is not None:
            self.loader.load(document_id, source)
        else:
            self.loader.unload()

    async def _load_document(
        self, document_id: str, source: PageTextSource | None, num_pages: int | None
    ) -> _OpenDocument:
        highlights = await self._persist("load highlights", self.store.get_highlights(document_id))
        notes = await self._persist("load notes", self.store.get_notes(document_id))
        doc = _OpenDocument(document_id=document_id, highlights=list(highlights), notes=list(notes))

        pages = num_pages if num_pages is not None else (source.page_count() if source is not None else 0)
        if pages:
            stored = await self._persist("load reading progress", self.store.get_reading_progress(document_id))

            async def _save(progress: int) -> None:
                await self.store.set_reading_progress(document_id, progress)

            doc.tracker = ReadingProgressTracker(
                pages, _save, stored_progress=stored, delay_s=self.progress_debounce_s
            )
        return doc

    async def close(self) -> None:
        await self._close_document(flush=False)

    async def _close_document(self, *, flush: bool) -> None:
        doc = self._doc
        self._doc = None
        self.loader.unload()
        if doc is None or doc.tracker is None:
            return
        if flush:
            try:
                await doc.tracker.flush()
            except Exception:
                logger.exception("[Session] saving reading progress for %s failed", doc.document_id)
        doc.tracker.cancel()

    # --- read side ---

    @property
    def document_id(self) -> str | None:
        return self._doc.document_id if self._doc else None

    @property
    def highlights(self) -> list[Highlight]:
        return list(self._doc.highlights) if self._doc else []

    @property
    def notes(self) -> list[Note]:
        return list(self._doc.notes) if self._doc else []

    @property
    def references(self) -> dict[str, str]:
        if self._doc is None or self.loader.document_id != self._doc.document_id:
            return {}
        return self.loader.references

    def notes_for(self, highlight_id: str) -> list[Note]:
        return [n for n in self.notes if n.highlight_id == highlight_id]

    def check_selection(self, text: str) -> SelectionCheck:
        """What the selection popup offers for this text."""
        text = (text or "").strip()
        number = detect_reference(text)
        info = resolve(number, self.references) if number else None
        candidate = info.title if info else text
        return SelectionCheck(
            number=number,
            likely_marker=is_likely_reference(text),
            reference=info,
            candidate_text=candidate,
            on_reading_list=self.reading_list.contains_text(candidate),
            library_match=find_library_match(candidate, self.library_titles),
        )

    # --- highlights ---

    async def create_highlight(self, selection: Selection) -> Highlight | None:
        doc = self._require_document()
        rects = selection_to_page_rects(selection.client_rects, selection.page_origin, selection.scale)
        if rects is None:
            logger.debug("[Session] selection on page %d has no drawable rects", selection.page_number)
            return None

        text = (selection.text or "").strip()
        note = (selection.note or "").strip() or None
        if selection.further_reading:
            color = normalize_color(selection.color, self.reading_list_color)
            number = detect_reference(text)
            if number:
                info = resolve(number, self.references)
                if info:
                    text = info.title
                note = citation_note(number, info, selection.note)
            if self.reading_list.contains_text(text):
                logger.info("[ReadingList] skipping duplicate: %s", text[:80])
                return None
            match = find_library_match(text, self.library_titles)
            if match is not None:
                logger.info("[ReadingList] already in library as %s: %s", match.id, text[:80])
                return None
        else:
            color = normalize_color(selection.color)

        highlight = Highlight(
            document_id=doc.document_id,
            page_number=int(selection.page_number),
            text=text,
            rects=rects,
            color=color,
            note=note,
            is_further_reading=bool(selection.further_reading),
        )

        doc.highlights.append(highlight)
        undo = self.reading_list.add(highlight)
        try:
            await self.store.add_highlight(highlight)
        except Exception as exc:
            self.reading_list.rollback(undo)
            if self._doc is doc:
                doc.highlights = [h for h in doc.highlights if h.id != highlight.id]
            raise PersistenceError("create highlight", exc) from exc
        return highlight

    async def delete_highlight(self, highlight_id: str) -> None:
        doc = self._doc
        removed_highlights: list[Highlight] = []
        removed_notes: list[Note] = []
        if doc is not None:
            removed_highlights = [h for h in doc.highlights if h.id == highlight_id]
            removed_notes = [n for n in doc.notes if n.highlight_id == highlight_id]
            doc.highlights = [h for h in doc.highlights if h.id != highlight_id]
            doc.notes = [n for n in doc.notes if n.highlight_id != highlight_id]
        undo = self.reading_list.remove(highlight_id)
        try:
            await self.store.delete_highlight(highlight_id)
        except Exception as exc:
            self.reading_list.rollback(undo)
            if doc is not None and self._doc is doc:
                doc.highlights.extend(removed_highlights)
                doc.highlights.sort(key=lambda h: h.created_at)
                doc.notes.extend(removed_notes)
                doc.notes.sort(key=lambda n: n.created_at)
            raise PersistenceError("delete highlight", exc) from exc

    async def change_color(self, highlight_id: str, color: str) -> Highlight:
        current = await self._lookup(highlight_id)
        updated = current.touched(color=normalize_color(color, current.color))
        await self._persist("change colour", self.store.update_highlight(updated))
        self._replace_local(updated)
        return updated

    async def toggle_resolved(self, highlight_id: str) -> Highlight:
        current = await self._lookup(highlight_id)
        updated = current.touched(note=toggle_resolved_note(current.note))
        await self._persist("toggle resolved", self.store.update_highlight(updated))
        self._replace_local(updated)
        return updated

    async def dedupe_reading_list(self) -> int:
        items = await self._persist("load reading list", self.store.list_reading_list_across_library())
        doomed = plan_dedupe(items)
        for h in doomed:
            await self.delete_highlight(h.id)
        if doomed:
            logger.info("[ReadingList] removed %d duplicate entries", len(doomed))
        return len(doomed)

    # --- notes ---

    async def add_note(self, highlight_id: str, content: str) -> Note:
        owner = await self._lookup(highlight_id)
        note = Note(highlight_id=owner.id, document_id=owner.document_id, content=content)
        await self._persist("add note", self.store.add_note(note))
        doc = self._doc
        if doc is not None and doc.document_id == note.document_id:
            doc.notes.append(note)
        return note

    async def update_note(self, note_id: str, content: str) -> Note:
        current = self._require_note(note_id)
        updated = replace(current, content=content, updated_at=time.time())
        await self._persist("update note", self.store.update_note(updated))
        doc = self._require_document()
        doc.notes = [updated if n.id == note_id else n for n in doc.notes]
        return updated

    async def delete_note(self, note_id: str) -> None:
        self._require_note(note_id)
        await self._persist("delete note", self.store.delete_note(note_id))
        doc = self._require_document()
        doc.notes = [n for n in doc.notes if n.id != note_id]

    # --- reading progress ---

    def observe_page(self, page: int) -> bool:
        doc = self._doc
        if doc is None or doc.tracker is None:
            return False
        return doc.tracker.observe(page)

    async def flush_progress(self) -> None:
        doc = self._doc
        if doc is not None and doc.tracker is not None:
            await doc.tracker.flush()

    # --- helpers ---

    def _require_document(self) -> _OpenDocument:
        if self._doc is None:
            raise RuntimeError("no document is open")
        return self._doc

    def _require_note(self, note_id: str) -> Note:
        for n in self.notes:
            if n.id == note_id:
                return n
        raise KeyError(note_id)

    async def _lookup(self, highlight_id: str) -> Highlight:
        for h in self.highlights:
            if h.id == highlight_id:
                return h
        found = await self._persist("load highlight", self.store.get_highlight(highlight_id))
        if found is None:
            raise KeyError(highlight_id)
        return found

    def _replace_local(self, updated: Highlight) -> None:
        doc = self._doc
        if doc is None:
            return
        doc.highlights = [updated if h.id == updated.id else h for h in doc.highlights]

    async def _persist(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except Exception as exc:
            logger.error("[Session] %s failed: %s", operation, exc)
            raise PersistenceError(operation, exc) from exc
