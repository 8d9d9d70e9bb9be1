from __future__ import annotations

import asyncio
import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Protocol, TypeVar

from .models import Highlight, LibraryTitle, Note, Rect

T = TypeVar("T")


class StoreError(RuntimeError):
    pass


class RecordStore(Protocol):
    async def get_highlights(self, document_id: str) -> list[Highlight]: ...
    async def get_highlight(self, highlight_id: str) -> Highlight | None: ...
    async def add_highlight(self, highlight: Highlight) -> None: ...
    async def update_highlight(self, highlight: Highlight) -> None: ...
    # Removes the highlight's notes in the same write.
    async def delete_highlight(self, highlight_id: str) -> None: ...
    async def get_notes(self, document_id: str) -> list[Note]: ...
    async def add_note(self, note: Note) -> None: ...
    async def update_note(self, note: Note) -> None: ...
    async def delete_note(self, note_id: str) -> None: ...
    async def list_reading_list_across_library(self) -> list[Highlight]: ...
    async def list_library_titles(self) -> list[LibraryTitle]: ...
    async def get_reading_progress(self, document_id: str) -> int: ...
    async def set_reading_progress(self, document_id: str, progress: int) -> None: ...


def _row_to_highlight(row: sqlite3.Row) -> Highlight:
    try:
        rects = [Rect.from_dict(r) for r in json.loads(row["rects"] or "[]")]
    except (TypeError, ValueError):
        rects = []
    return Highlight(
        id=row["id"],
        document_id=row["document_id"],
        page_number=int(row["page_number"]),
        color=row["color"],
        text=row["text"],
        rects=rects,
        note=row["note"],
        is_further_reading=bool(row["is_further_reading"]),
        created_at=float(row["created_at"]),
        updated_at=float(row["updated_at"]),
    )


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        highlight_id=row["highlight_id"],
        document_id=row["document_id"],
        content=row["content"],
        created_at=float(row["created_at"]),
        updated_at=float(row["updated_at"]),
    )


class SqliteRecordStore:
    """
    Local persistence for the reader:
    - one sqlite file
    - documents (library titles + reading progress), highlights, notes
    - rects kept as JSON in page-intrinsic units

    The async methods run their sqlite work in a worker thread; every call
    opens its own connection.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(fn, *args)

    def _init_db(self) -> None:
        with self._tx() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                  id TEXT PRIMARY KEY,
                  title TEXT NOT NULL,
                  reading_progress INTEGER NOT NULL DEFAULT 0,
                  created_at REAL NOT NULL,
                  updated_at REAL NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS highlights (
                  id TEXT PRIMARY KEY,
                  document_id TEXT NOT NULL,
                  page_number INTEGER NOT NULL,
                  color TEXT NOT NULL,
                  text TEXT NOT NULL,
                  rects TEXT NOT NULL,
                  note TEXT,
                  is_further_reading INTEGER NOT NULL DEFAULT 0,
                  created_at REAL NOT NULL,
                  updated_at REAL NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notes (
                  id TEXT PRIMARY KEY,
                  highlight_id TEXT NOT NULL,
                  document_id TEXT NOT NULL,
                  content TEXT NOT NULL,
                  created_at REAL NOT NULL,
                  updated_at REAL NOT NULL,
                  FOREIGN KEY(highlight_id) REFERENCES highlights(id)
                );
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_highlights_document_id ON highlights(document_id);")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_highlights_further ON highlights(is_further_reading);")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_notes_highlight_id ON notes(highlight_id);")

    # --- documents ---

    def _upsert_document(self, document_id: str, title: str) -> None:
        title = (title or "").strip() or document_id
        now = time.time()
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO documents (id, title, created_at, updated_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET title=excluded.title, updated_at=excluded.updated_at",
                (document_id, title, now, now),
            )

    def _list_library_titles(self) -> list[LibraryTitle]:
        with self._tx() as conn:
            rows = conn.execute("SELECT id, title FROM documents ORDER BY created_at ASC, rowid ASC").fetchall()
        return [LibraryTitle(id=r["id"], title=r["title"]) for r in rows]

    def _get_reading_progress(self, document_id: str) -> int:
        with self._tx() as conn:
            row = conn.execute("SELECT reading_progress FROM documents WHERE id = ?", (document_id,)).fetchone()
        return int(row["reading_progress"]) if row else 0

    def _set_reading_progress(self, document_id: str, progress: int) -> None:
        progress = max(0, min(100, int(progress)))
        with self._tx() as conn:
            conn.execute(
                "UPDATE documents SET reading_progress = ?, updated_at = ? WHERE id = ?",
                (progress, time.time(), document_id),
            )

    # --- highlights ---

    def _get_highlights(self, document_id: str) -> list[Highlight]:
        with self._tx() as conn:
            rows = conn.execute(
                "SELECT * FROM highlights WHERE document_id = ? ORDER BY created_at ASC, rowid ASC",
                (document_id,),
            ).fetchall()
        return [_row_to_highlight(r) for r in rows]

    def _get_highlight(self, highlight_id: str) -> Highlight | None:
        with self._tx() as conn:
            row = conn.execute("SELECT * FROM highlights WHERE id = ?", (highlight_id,)).fetchone()
        return _row_to_highlight(row) if row else None

    def _add_highlight(self, highlight: Highlight) -> None:
        h = highlight
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO highlights (id, document_id, page_number, color, text, rects, note, "
                "is_further_reading, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    h.id, h.document_id, int(h.page_number), h.color, h.text,
                    json.dumps([r.to_dict() for r in h.rects]), h.note,
                    1 if h.is_further_reading else 0, h.created_at, h.updated_at,
                ),
            )

    def _update_highlight(self, highlight: Highlight) -> None:
        h = highlight
        with self._tx() as conn:
            cur = conn.execute(
                "UPDATE highlights SET text = ?, color = ?, page_number = ?, rects = ?, note = ?, "
                "is_further_reading = ?, updated_at = ? WHERE id = ?",
                (
                    h.text, h.color, int(h.page_number), json.dumps([r.to_dict() for r in h.rects]),
                    h.note, 1 if h.is_further_reading else 0, h.updated_at, h.id,
                ),
            )
            if cur.rowcount == 0:
                raise StoreError(f"highlight not found: {h.id}")

    def _delete_highlight(self, highlight_id: str) -> None:
        with self._tx() as conn:
            conn.execute("DELETE FROM notes WHERE highlight_id = ?", (highlight_id,))
            conn.execute("DELETE FROM highlights WHERE id = ?", (highlight_id,))

    def _list_reading_list_across_library(self) -> list[Highlight]:
        with self._tx() as conn:
            rows = conn.execute(
                "SELECT * FROM highlights WHERE is_further_reading = 1 ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_highlight(r) for r in rows]

    # --- notes ---

    def _get_notes(self, document_id: str) -> list[Note]:
        with self._tx() as conn:
            rows = conn.execute(
                "SELECT * FROM notes WHERE document_id = ? ORDER BY created_at ASC, rowid ASC",
                (document_id,),
            ).fetchall()
        return [_row_to_note(r) for r in rows]

    def _add_note(self, note: Note) -> None:
        n = note
        with self._tx() as conn:
            owner = conn.execute("SELECT 1 FROM highlights WHERE id = ?", (n.highlight_id,)).fetchone()
            if not owner:
                raise StoreError(f"highlight not found: {n.highlight_id}")
            conn.execute(
                "INSERT INTO notes (id, highlight_id, document_id, content, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (n.id, n.highlight_id, n.document_id, n.content, n.created_at, n.updated_at),
            )

    def _update_note(self, note: Note) -> None:
        with self._tx() as conn:
            cur = conn.execute(
                "UPDATE notes SET content = ?, updated_at = ? WHERE id = ?",
                (note.content, note.updated_at, note.id),
            )
            if cur.rowcount == 0:
                raise StoreError(f"note not found: {note.id}")

    def _delete_note(self, note_id: str) -> None:
        with self._tx() as conn:
            conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))

    # --- async API ---

    async def upsert_document(self, document_id: str, title: str) -> None:
        await self._run(self._upsert_document, document_id, title)

    async def list_library_titles(self) -> list[LibraryTitle]:
        return await self._run(self._list_library_titles)

    async def get_reading_progress(self, document_id: str) -> int:
        return await self._run(self._get_reading_progress, document_id)

    async def set_reading_progress(self, document_id: str, progress: int) -> None:
        await self._run(self._set_reading_progress, document_id, progress)

    async def get_highlights(self, document_id: str) -> list[Highlight]:
        return await self._run(self._get_highlights, document_id)

    async def get_highlight(self, highlight_id: str) -> Highlight | None:
        return await self._run(self._get_highlight, highlight_id)

    async def add_highlight(self, highlight: Highlight) -> None:
        await self._run(self._add_highlight, highlight)

    async def update_highlight(self, highlight: Highlight) -> None:
        await self._run(self._update_highlight, highlight)

    async def delete_highlight(self, highlight_id: str) -> None:
        await self._run(self._delete_highlight, highlight_id)

    async def list_reading_list_across_library(self) -> list[Highlight]:
        return await self._run(self._list_reading_list_across_library)

    async def get_notes(self, document_id: str) -> list[Note]:
        return await self._run(self._get_notes, document_id)

    async def add_note(self, note: Note) -> None:
        await self._run(self._add_note, note)

    async def update_note(self, note: Note) -> None:
        await self._run(self._update_note, note)

    async def delete_note(self, note_id: str) -> None:
        await self._run(self._delete_note, note_id)
