"""Domain models for the daylog stores."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class DatedEntry:
    id: int
    date: str
    title: str
    content: str
    created_at: str | None = None


@dataclass
class CatalogItem:
    """A free-form knowledge item kept in the JSON document collection.

    ``source`` and ``tags`` are optional; ``None`` means absent and the key is
    omitted from the serialized record.
    """

    id: str
    title: str
    content: str
    created_at: str
    updated_at: str
    source: str | None = None
    tags: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogItem:
        # Accept both the snake_case layout written here and camelCase records
        # written by earlier tooling.
        tags = data.get("tags")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            content=str(data.get("content", "")),
            created_at=str(data.get("created_at") or data.get("createdAt") or ""),
            updated_at=str(data.get("updated_at") or data.get("updatedAt") or ""),
            source=data.get("source"),
            tags=list(tags) if tags is not None else None,
        )


@dataclass
class Chunk:
    source_item_id: str
    chunk_index: int
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        return f"{self.source_item_id}:{self.chunk_index}"
