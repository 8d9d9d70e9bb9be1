from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from .page_text import PageTextSource, collect_full_text
from .references import extract_references

logger = logging.getLogger(__name__)

DEFAULT_DELAY_S = 0.2


class ReferenceLoader:
    """
    Per-document reference map, extracted lazily after a short delay so it
    does not contend with the first render.

    The loader owns the page source it is given and closes it once the
    extraction finishes or is cancelled.

    Every load() gets a fresh token. Switching documents cancels the pending
    extraction, and any result that still arrives for an older token is
    dropped instead of being published under the new document.
    """

    def __init__(
        self,
        *,
        delay_s: float = DEFAULT_DELAY_S,
        extractor: Callable[[str], dict[str, str]] = extract_references,
        on_published: Callable[[str, dict[str, str]], None] | None = None,
    ) -> None:
        self._delay_s = max(0.0, float(delay_s))
        self._extractor = extractor
        self._on_published = on_published
        self._token = 0
        self._task: asyncio.Task | None = None
        self._source: PageTextSource | None = None
        self._references: dict[str, str] = {}
        self._state: dict[str, Any] = {"token": 0, "document_id": "", "status": "idle", "count": 0, "error": ""}

    @property
    def token(self) -> int:
        return self._token

    @property
    def document_id(self) -> str:
        return str(self._state.get("document_id") or "")

    @property
    def references(self) -> dict[str, str]:
        return dict(self._references)

    def snapshot(self) -> dict[str, Any]:
        return dict(self._state)

    def is_current(self, token: int) -> bool:
        return token == self._token

    def load(self, document_id: str, source: PageTextSource) -> int:
        self._cancel_pending()
        self._token += 1
        token = self._token
        self._source = source
        self._references = {}
        self._state = {
            "token": token,
            "document_id": document_id,
            "status": "pending",
            "count": 0,
            "error": "",
            "started_at": time.time(),
        }
        self._task = asyncio.get_running_loop().create_task(self._run(token, document_id, source))
        return token

    def unload(self) -> None:
        self._cancel_pending()
        self._token += 1
        self._references = {}
        self._state = {"token": self._token, "document_id": "", "status": "idle", "count": 0, "error": ""}

    async def wait(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def publish(self, token: int, document_id: str, references: dict[str, str]) -> bool:
        if not self.is_current(token) or document_id != self.document_id:
            logger.info(
                "[RefLoader] discarding stale references for %s (token %d, current %d)",
                document_id, token, self._token,
            )
            return False
        self._references = dict(references)
        self._state.update(status="done", count=len(self._references), finished_at=time.time())
        if self._on_published is not None:
            self._on_published(document_id, self.references)
        return True

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._release_source()

    def _release_source(self) -> None:
        source, self._source = self._source, None
        if source is None:
            return
        try:
            source.close()
        except Exception:
            logger.exception("[RefLoader] closing page source failed")

    async def _run(self, token: int, document_id: str, source: PageTextSource) -> None:
        try:
            if self._delay_s:
                await asyncio.sleep(self._delay_s)
            if not self.is_current(token):
                return
            self._state["status"] = "running"
            full_text = await collect_full_text(source, is_current=lambda: self.is_current(token))
            if full_text is None:
                return
            refs = self._extractor(full_text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("[RefLoader] extraction failed for %s", document_id)
            if self.is_current(token):
                self._state.update(status="error", error=str(exc))
            return
        finally:
            if self._source is source:
                self._release_source()
        self.publish(token, document_id, refs)
