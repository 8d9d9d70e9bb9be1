from __future__ import annotations

from functools import lru_cache

from paperlab.config import Settings, load_settings
from paperlab.session import ReaderSession
from paperlab.store import SqliteRecordStore


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_store() -> SqliteRecordStore:
    return SqliteRecordStore(get_settings().db_path)


@lru_cache(maxsize=1)
def get_session() -> ReaderSession:
    s = get_settings()
    return ReaderSession(
        get_store(),
        reading_list_color=s.reading_list_color,
        progress_debounce_s=s.progress_debounce_s,
        reference_delay_s=s.reference_delay_s,
    )


def reset_caches() -> None:
    get_session.cache_clear()
    get_store.cache_clear()
    get_settings.cache_clear()
