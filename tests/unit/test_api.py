import json

import pytest
from fastapi.testclient import TestClient

from api.deps import get_store, reset_caches
from paperlab.store import StoreError

_BIB = "Discussion text. " * 20 + (
    "References [1] Smith, J. (2020). A Study of Annotation Tools for Readers. "
    "[2] Doe, A. (2019). Another Study of Citation Parsing in Practice."
)


def _selection(text, further=False):
    return {
        "text": text,
        "page_number": 4,
        "client_rects": [
            {"x": 110, "y": 210, "width": 80, "height": 14},
            {"x": 150, "y": 211, "width": 80, "height": 14},
        ],
        "page_origin": {"x": 10, "y": 10},
        "scale": 2.0,
        "further_reading": further,
    }


def _last_event(body):
    lines = [ln for ln in body.splitlines() if ln.startswith("data: ")]
    return json.loads(lines[-1][len("data: "):])


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("PAPERLAB_DB_PATH", str(tmp_path / "paperlab.sqlite3"))
    monkeypatch.setenv("PAPERLAB_PDF_DIR", str(tmp_path / "pdfs"))
    monkeypatch.setenv("PAPERLAB_REFERENCE_DELAY_S", "0")
    reset_caches()
    from api.main import app

    with TestClient(app) as c:
        yield c
    reset_caches()


def _open(client):
    assert client.post("/api/documents", json={"id": "doc1", "title": "Paper One"}).status_code == 200
    r = client.post("/api/documents/doc1/open", json={"pages": [_BIB]})
    assert r.status_code == 200
    status = _last_event(client.get("/api/references/load/status").text)
    assert status["status"] == "done"
    assert status["count"] == 2


def test_extract_endpoint(client):
    r = client.post("/api/references/extract", json={"text": _BIB})
    assert r.status_code == 200
    assert sorted(r.json()) == ["1", "2"]


def test_highlight_requires_open_document(client):
    r = client.post("/api/highlights", json=_selection("passage"))
    assert r.status_code == 409


def test_reading_list_flow(client):
    _open(client)

    refs = client.get("/api/references").json()
    assert refs["document_id"] == "doc1"
    assert sorted(refs["references"]) == ["1", "2"]

    r = client.post("/api/highlights", json=_selection("[1]", further=True))
    body = r.json()
    assert body["created"] is True
    h = body["highlight"]
    assert h["text"] == "A Study of Annotation Tools for Readers"
    assert h["rects"] == [{"x": 50.0, "y": 100.0, "width": 60.0, "height": 7.0}]

    again = client.post("/api/highlights", json=_selection("[1]", further=True)).json()
    assert again == {"created": False, "highlight": None}

    check = client.post("/api/reading-list/check", json={"text": "[1]"}).json()
    assert check["on_reading_list"] is True

    assert len(client.get("/api/reading-list").json()) == 1
    assert client.get("/api/reading-list", params={"status": "resolved"}).json() == []

    toggled = client.post(f"/api/reading-list/{h['id']}/toggle-resolved").json()
    assert toggled["is_resolved"] is True
    assert len(client.get("/api/reading-list", params={"status": "resolved"}).json()) == 1
    assert client.get("/api/reading-list", params={"status": "bogus"}).status_code == 400

    assert client.delete(f"/api/highlights/{h['id']}").json() == {"ok": True}
    assert client.get("/api/highlights").json() == []


def test_notes_endpoints(client):
    _open(client)
    h = client.post("/api/highlights", json=_selection("a passage")).json()["highlight"]

    note = client.post("/api/notes", json={"highlight_id": h["id"], "content": "draft"}).json()
    r = client.patch(f"/api/notes/{note['id']}", json={"content": "final"})
    assert r.json()["content"] == "final"
    assert [n["content"] for n in client.get("/api/notes", params={"highlight_id": h["id"]}).json()] == ["final"]

    assert client.patch("/api/notes/missing", json={"content": "x"}).status_code == 404
    assert client.post("/api/notes", json={"highlight_id": "missing", "content": "x"}).status_code == 404

    recolored = client.patch(f"/api/highlights/{h['id']}/color", json={"color": "green"}).json()
    assert recolored["color"] == "green"

    themes = {g["color"]: g for g in client.get("/api/highlights/themes").json()}
    assert themes["green"]["theme"] == "Findings"
    assert [x["id"] for x in themes["green"]["highlights"]] == [h["id"]]
    assert themes["yellow"]["highlights"] == []


def test_store_failure_maps_to_bad_gateway(client, monkeypatch):
    _open(client)

    async def fail(highlight):
        raise StoreError("disk full")

    monkeypatch.setattr(get_store(), "add_highlight", fail)
    r = client.post("/api/highlights", json=_selection("a passage"))
    assert r.status_code == 502
    assert "disk full" in r.json()["detail"]
    assert client.get("/api/highlights").json() == []


def test_progress_endpoint(client):
    _open(client)
    assert client.post("/api/documents/doc1/progress", json={"page": 1}).json() == {"scheduled": True}
    assert client.post("/api/documents/doc1/progress", json={"page": 1}).json() == {"scheduled": False}
    assert client.post("/api/documents/other/progress", json={"page": 1}).status_code == 409


def test_viewport_rects_and_hit_endpoints(client):
    _open(client)
    two_lines = dict(
        _selection("a passage over two lines"),
        client_rects=[
            {"x": 110, "y": 210, "width": 80, "height": 14},
            {"x": 110, "y": 250, "width": 80, "height": 14},
        ],
    )
    h = client.post("/api/highlights", json=two_lines).json()["highlight"]
    assert len(h["rects"]) == 2

    view = client.get(
        "/api/highlights/viewport",
        params={"page_number": 4, "scale": 4, "origin_x": 5, "origin_y": 5},
    ).json()
    assert view["scale"] == 4.0
    assert view["highlights"][0]["id"] == h["id"]
    assert view["highlights"][0]["rects"][0] == {"x": 205.0, "y": 405.0, "width": 160.0, "height": 28.0}

    fitted = client.get(
        "/api/highlights/viewport", params={"fit_to_width": True, "container_width": 1224}
    ).json()
    assert fitted["scale"] == 2.0
    assert client.get("/api/highlights/viewport", params={"scale": 0}).status_code == 400

    hit = client.post(f"/api/highlights/{h['id']}/hit", json={"x": 140, "y": 247, "scale": 2}).json()
    assert hit["hit"] is True
    assert hit["index"] == 1
    assert hit["rect"] == {"x": 50.0, "y": 120.0, "width": 40.0, "height": 7.0}

    assert client.post("/api/highlights/missing/hit", json={"x": 0, "y": 0}).status_code == 404
