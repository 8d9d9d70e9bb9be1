import asyncio

from paperlab.models import Highlight, Rect
from paperlab.reading_list import ReadingListIndex


def _hl(text, further=True, document_id="doc"):
    return Highlight(
        document_id=document_id,
        page_number=1,
        text=text,
        rects=[Rect(0, 0, 10, 10)],
        is_further_reading=further,
    )


class _Store:
    def __init__(self, items):
        self.items = items

    async def list_reading_list_across_library(self):
        return list(self.items)


def test_add_and_remove_return_their_own_undo():
    idx = ReadingListIndex()
    h = _hl("Hypervisor design")
    undo = idx.add(h)
    assert undo.added == (h.id,)
    assert len(idx) == 1
    assert idx.has_highlight(h.id)

    undo = idx.remove(h.id)
    assert [e.highlight_id for e in undo.removed] == [h.id]
    assert len(idx) == 0

    idx.rollback(undo)
    assert idx.has_highlight(h.id)


def test_rollback_keeps_entries_added_after_the_undone_change():
    idx = ReadingListIndex()
    first, second = _hl("alpha paper"), _hl("beta paper")
    undo = idx.add(first)
    idx.add(second)
    idx.rollback(undo)
    assert [e.highlight_id for e in idx.entries()] == [second.id]

    undo = idx.remove(second.id)
    idx.add(first)
    idx.rollback(undo)
    assert sorted(e.highlight_id for e in idx.entries()) == sorted([first.id, second.id])


def test_noop_changes_have_empty_undo():
    idx = ReadingListIndex()
    assert not idx.add(_hl("plain", further=False))
    assert not idx.remove("missing")


def test_add_ignores_plain_highlights_and_repeats():
    idx = ReadingListIndex()
    h = _hl("Hypervisor design")
    idx.add(_hl("plain", further=False))
    idx.add(h)
    idx.add(h)
    assert len(idx) == 1


def test_contains_text_uses_normalized_equality():
    idx = ReadingListIndex()
    idx.add(_hl("hypervisor design"))
    assert idx.contains_text("Hyper- visor Design.")
    assert not idx.contains_text("hypervisor design patterns")


def test_reload_rebuilds_from_store():
    idx = ReadingListIndex()
    idx.add(_hl("stale entry"))
    store = _Store([_hl("a", document_id="d1"), _hl("b", document_id="d2"), _hl("c", further=False)])
    n = asyncio.run(idx.reload(store))
    assert n == 2
    assert not idx.contains_text("stale entry")
    assert [e.normalized_text for e in idx.for_document("d2")] == ["b"]
