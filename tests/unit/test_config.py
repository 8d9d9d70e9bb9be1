from pathlib import Path

from paperlab.config import load_settings


def test_defaults_live_under_home(monkeypatch, tmp_path):
    for name in (
        "PAPERLAB_DB_PATH",
        "PAPERLAB_PDF_DIR",
        "PAPERLAB_REFERENCE_DELAY_S",
        "PAPERLAB_PROGRESS_DEBOUNCE_S",
        "PAPERLAB_READING_LIST_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PAPERLAB_HOME", str(tmp_path))
    s = load_settings()
    assert s.db_path == Path(tmp_path).resolve() / "paperlab.sqlite3"
    assert s.pdf_dir == Path(tmp_path).resolve() / "pdfs"
    assert s.reference_delay_s == 0.2
    assert s.progress_debounce_s == 1.0
    assert s.reading_list_color == "purple"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PAPERLAB_DB_PATH", str(tmp_path / "x.sqlite3"))
    monkeypatch.setenv("PAPERLAB_REFERENCE_DELAY_S", "0.5")
    monkeypatch.setenv("PAPERLAB_PROGRESS_DEBOUNCE_S", "not-a-number")
    monkeypatch.setenv("PAPERLAB_READING_LIST_COLOR", "Blue")
    s = load_settings()
    assert s.db_path == (tmp_path / "x.sqlite3").resolve()
    assert s.reference_delay_s == 0.5
    assert s.progress_debounce_s == 1.0
    assert s.reading_list_color == "blue"
