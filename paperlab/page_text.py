from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Callable, Protocol

try:
    import fitz
except ImportError:
    fitz = None


class PageTextSource(Protocol):
    def page_count(self) -> int: ...

    async def get_page_text(self, page_number: int) -> str: ...

    def close(self) -> None: ...


class StaticPageTextSource:
    """Pages already extracted elsewhere (client upload, tests)."""

    def __init__(self, pages: list[str]) -> None:
        self._pages = [str(p or "") for p in pages]

    def page_count(self) -> int:
        return len(self._pages)

    async def get_page_text(self, page_number: int) -> str:
        return self._pages[page_number - 1]

    def close(self) -> None:
        pass


class PdfPageTextSource:
    """
    Page text straight from a PDF on disk. Reads run in a worker thread;
    close() waits for a read in progress, then releases the file.
    """

    def __init__(self, pdf_path: str | Path) -> None:
        if fitz is None:
            raise ImportError("PyMuPDF (fitz) not installed.")
        self._path = Path(pdf_path)
        self._lock = threading.Lock()
        self._doc = fitz.open(str(self._path))
        self._pages = len(self._doc)

    @property
    def closed(self) -> bool:
        return self._doc is None

    def page_count(self) -> int:
        return self._pages

    def _read(self, page_number: int) -> str:
        with self._lock:
            if self._doc is None:
                raise ValueError(f"document closed: {self._path.name}")
            return self._doc[page_number - 1].get_text("text") or ""

    async def get_page_text(self, page_number: int) -> str:
        return await asyncio.to_thread(self._read, page_number)

    def close(self) -> None:
        with self._lock:
            if self._doc is not None:
                self._doc.close()
                self._doc = None


async def collect_full_text(
    source: PageTextSource,
    *,
    is_current: Callable[[], bool] | None = None,
) -> str | None:
    """
    Join all page texts, one page at a time. The renderer's decoder state is
    shared between pages, so pages are never fetched concurrently.
    Returns None if is_current() turns false part way through.
    """
    parts: list[str] = []
    for i in range(1, source.page_count() + 1):
        if is_current is not None and not is_current():
            return None
        parts.append(await source.get_page_text(i))
    return "".join(p + "\n" for p in parts)
