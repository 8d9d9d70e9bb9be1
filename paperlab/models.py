from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any

HIGHLIGHT_COLORS: tuple[str, ...] = ("yellow", "green", "blue", "red", "purple")
DEFAULT_HIGHLIGHT_COLOR = "yellow"
READING_LIST_COLOR = "purple"

# Colour semantics used when grouping highlights by theme.
HIGHLIGHT_THEMES: dict[str, str] = {
    "yellow": "Research Gaps & Problems",
    "red": "Limitations",
    "purple": "Further Reading",
    "blue": "Methodology",
    "green": "Findings",
}

RESOLVED_MARK = "✓"


def normalize_color(color: str | None, default: str = DEFAULT_HIGHLIGHT_COLOR) -> str:
    c = str(color or "").strip().lower()
    return c if c in HIGHLIGHT_COLORS else default


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Rect:
    """Axis-aligned rectangle in page-intrinsic units (scale 1.0, top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Rect:
        return cls(
            x=float(d.get("x", 0.0)),
            y=float(d.get("y", 0.0)),
            width=float(d.get("width", 0.0)),
            height=float(d.get("height", 0.0)),
        )


@dataclass
class Highlight:
    document_id: str
    page_number: int
    text: str
    rects: list[Rect]
    color: str = DEFAULT_HIGHLIGHT_COLOR
    note: str | None = None
    is_further_reading: bool = False
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=time.time)
    updated_at: float = 0.0

    def __post_init__(self) -> None:
        self.color = normalize_color(self.color)
        if not self.updated_at:
            self.updated_at = self.created_at

    @property
    def is_resolved(self) -> bool:
        return RESOLVED_MARK in (self.note or "")

    def touched(self, **changes: Any) -> Highlight:
        return replace(self, updated_at=time.time(), **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "page_number": self.page_number,
            "color": self.color,
            "text": self.text,
            "rects": [r.to_dict() for r in self.rects],
            "note": self.note,
            "is_further_reading": self.is_further_reading,
            "is_resolved": self.is_resolved,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Highlight:
        return cls(
            id=str(d["id"]),
            document_id=str(d["document_id"]),
            page_number=int(d.get("page_number") or 1),
            color=str(d.get("color") or DEFAULT_HIGHLIGHT_COLOR),
            text=str(d.get("text") or ""),
            rects=[Rect.from_dict(r) for r in (d.get("rects") or [])],
            note=d.get("note"),
            is_further_reading=bool(d.get("is_further_reading")),
            created_at=float(d.get("created_at") or time.time()),
            updated_at=float(d.get("updated_at") or 0.0),
        )


def toggle_resolved_note(note: str | None) -> str:
    """Flip the reading-list resolved marker on a note."""
    if note and RESOLVED_MARK in note:
        return note.replace(f" {RESOLVED_MARK}", "")
    return (note or "Reference") + f" {RESOLVED_MARK}"


@dataclass
class Note:
    highlight_id: str
    document_id: str
    content: str
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=time.time)
    updated_at: float = 0.0

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "highlight_id": self.highlight_id,
            "document_id": self.document_id,
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Note:
        return cls(
            id=str(d["id"]),
            highlight_id=str(d["highlight_id"]),
            document_id=str(d["document_id"]),
            content=str(d.get("content") or ""),
            created_at=float(d.get("created_at") or time.time()),
            updated_at=float(d.get("updated_at") or 0.0),
        )


@dataclass(frozen=True)
class ReadingListEntry:
    highlight_id: str
    document_id: str
    normalized_text: str
    created_at: float = 0.0


@dataclass(frozen=True)
class LibraryTitle:
    id: str
    title: str
