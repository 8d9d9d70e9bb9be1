import asyncio
import threading

import pytest

from paperlab.page_text import PdfPageTextSource, collect_full_text
from paperlab.reference_sync import ReferenceLoader


def _make_pdf(fitz, path, texts):
    doc = fitz.open()
    for text in texts:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    doc.save(str(path))
    doc.close()


def test_pdf_pages_are_read_in_order(tmp_path):
    fitz = pytest.importorskip("fitz")
    path = tmp_path / "paper.pdf"
    _make_pdf(fitz, path, ("First page body", "Second page body"))

    source = PdfPageTextSource(path)
    try:
        assert source.page_count() == 2
        full = asyncio.run(collect_full_text(source))
    finally:
        source.close()
    assert full.index("First page body") < full.index("Second page body")


def test_pdf_source_reads_off_the_loop_and_is_closed_by_loader(tmp_path):
    fitz = pytest.importorskip("fitz")
    path = tmp_path / "paper.pdf"
    _make_pdf(fitz, path, ("Only page body",))
    source = PdfPageTextSource(path)
    reader_threads = []
    read = source._read

    def tracking_read(page_number):
        reader_threads.append(threading.get_ident())
        return read(page_number)

    source._read = tracking_read

    async def main():
        loader = ReferenceLoader(delay_s=0)
        loader.load("doc1", source)
        await loader.wait()
        return loader.snapshot()

    snap = asyncio.run(main())
    assert snap["status"] == "done"
    assert reader_threads and threading.get_ident() not in reader_threads
    assert source.closed is True
    source.close()
    with pytest.raises(ValueError):
        read(1)
