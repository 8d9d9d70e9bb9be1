from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .dedup import READING_LIST, is_duplicate, normalize_for_comparison
from .models import Highlight, ReadingListEntry

logger = logging.getLogger(__name__)

Snapshot = tuple[ReadingListEntry, ...]


@dataclass(frozen=True)
class Undo:
    """What one add/remove changed, so exactly that change can be reversed."""

    added: tuple[str, ...] = ()
    removed: Snapshot = ()

    def __bool__(self) -> bool:
        return bool(self.added or self.removed)


def entry_for(highlight: Highlight) -> ReadingListEntry:
    return ReadingListEntry(
        highlight_id=highlight.id,
        document_id=highlight.document_id,
        normalized_text=normalize_for_comparison(highlight.text),
        created_at=highlight.created_at,
    )


class ReadingListIndex:
    """
    Library-wide set of reading-list entries used for deduplication.

    The only mutators are add/remove/rebuild. add and remove return an Undo
    describing their own change; rollback(undo) reverses that change and
    nothing else, so entries added or removed by other operations while a
    store write was in flight survive a failed write.
    """

    def __init__(self) -> None:
        self._entries: list[ReadingListEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[ReadingListEntry]:
        return list(self._entries)

    def snapshot(self) -> Snapshot:
        return tuple(self._entries)

    def rollback(self, undo: Undo) -> None:
        if not undo:
            return
        logger.warning(
            "[ReadingList] rolling back: dropping %d, restoring %d entries", len(undo.added), len(undo.removed)
        )
        dropped = set(undo.added)
        self._entries = [e for e in self._entries if e.highlight_id not in dropped]
        for entry in undo.removed:
            if not self.has_highlight(entry.highlight_id):
                self._entries.append(entry)

    def rebuild(self, highlights: Iterable[Highlight]) -> int:
        self._entries = [entry_for(h) for h in highlights if h.is_further_reading]
        return len(self._entries)

    async def reload(self, store) -> int:
        items = await store.list_reading_list_across_library()
        return self.rebuild(items)

    def add(self, highlight: Highlight) -> Undo:
        if not highlight.is_further_reading or self.has_highlight(highlight.id):
            return Undo()
        self._entries.append(entry_for(highlight))
        return Undo(added=(highlight.id,))

    def remove(self, highlight_id: str) -> Undo:
        removed = tuple(e for e in self._entries if e.highlight_id == highlight_id)
        if removed:
            self._entries = [e for e in self._entries if e.highlight_id != highlight_id]
        return Undo(removed=removed)

    def has_highlight(self, highlight_id: str) -> bool:
        return any(e.highlight_id == highlight_id for e in self._entries)

    def contains_text(self, text: str) -> bool:
        return is_duplicate(text, self._entries, policy=READING_LIST)

    def for_document(self, document_id: str) -> list[ReadingListEntry]:
        return [e for e in self._entries if e.document_id == document_id]
