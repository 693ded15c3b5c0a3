"""Catalog item store — a JSON document collection in a single file.

Every mutation runs read-full-collection → apply in memory → write temp file →
atomic rename, inside a FIFO asyncio.Lock owned by the store instance (one
per running event loop), so at most one writer is ever between read and
write. Readers do not take the lock; the rename guarantees they see either
the old or the new snapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from daylog.db.models import CatalogItem
from daylog.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _clean_source(source: str | None) -> str | None:
    if source is None:
        return None
    return source.strip() or None


def _clean_tags(tags: Iterable[str] | None) -> list[str] | None:
    """Trim tags, drop empty ones and duplicates (first occurrence wins)."""
    if tags is None:
        return None
    cleaned: list[str] = []
    for tag in tags:
        if not tag:
            continue
        t = str(tag).strip()
        if t and t not in cleaned:
            cleaned.append(t)
    return cleaned or None


def _validate(title: str | None, content: str | None) -> None:
    if not (title or "").strip():
        raise ValidationError("title is required")
    if not (content or "").strip():
        raise ValidationError("content is required")


class CatalogStore:
    """CRUD over ``items.json`` with serialized, atomic writes.

    Args:
        path: Location of the collection file. Its directory is created on
            first write; a missing file reads as an empty collection.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._write_lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to the first loop that waits on it; a store that
        # outlives one asyncio.run() gets a fresh lock per loop.
        loop = asyncio.get_running_loop()
        if self._write_lock is None or self._lock_loop is not loop:
            self._write_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._write_lock

    # ------------------------------------------------------------------
    # File I/O (runs in a worker thread)
    # ------------------------------------------------------------------

    def _read_items(self) -> list[CatalogItem]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        parsed: Any = json.loads(raw)
        if not isinstance(parsed, list):
            logger.warning("%s does not hold a JSON array; treating as empty", self.path)
            return []
        return [CatalogItem.from_dict(d) for d in parsed if isinstance(d, dict)]

    def _write_items(self, items: list[CatalogItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(
            f"{self.path.name}.tmp-{os.getpid()}-{uuid.uuid4().hex}"
        )
        payload = json.dumps([item.to_dict() for item in items], indent=2, ensure_ascii=False)
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    async def _load(self) -> list[CatalogItem]:
        return await asyncio.to_thread(self._read_items)

    async def _save(self, items: list[CatalogItem]) -> None:
        await asyncio.to_thread(self._write_items, items)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self) -> list[CatalogItem]:
        """Return all items, most recently updated first."""
        items = await self._load()
        return sorted(items, key=lambda item: item.updated_at, reverse=True)

    async def get(self, item_id: str) -> CatalogItem | None:
        """Return the item with *item_id*, or None."""
        for item in await self._load():
            if item.id == item_id:
                return item
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        title: str,
        content: str,
        source: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> CatalogItem:
        """Validate, assign id and timestamps, append and persist a new item.

        Raises:
            ValidationError: If title or content is empty after trimming.
        """
        _validate(title, content)
        now = _now_iso()
        item = CatalogItem(
            id=str(uuid.uuid4()),
            title=title.strip(),
            content=content,
            source=_clean_source(source),
            tags=_clean_tags(tags),
            created_at=now,
            updated_at=now,
        )

        async with self._lock():
            items = await self._load()
            items.append(item)
            await self._save(items)

        logger.debug("created catalog item %s", item.id)
        return item

    async def update(
        self,
        item_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        source: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> CatalogItem:
        """Apply a partial patch; arguments left as None keep prior values.

        An empty ``source`` clears it; an empty ``tags`` list clears them.

        Raises:
            ValidationError: If *item_id* is empty, or the merged item has an
                empty title or content.
            NotFoundError: If no item has *item_id*.
        """
        if not item_id:
            raise ValidationError("id is required")

        async with self._lock():
            items = await self._load()
            idx = next((i for i, x in enumerate(items) if x.id == item_id), None)
            if idx is None:
                raise NotFoundError(item_id)

            current = items[idx]
            updated = CatalogItem(
                id=current.id,
                title=title.strip() if title is not None else current.title,
                content=content if content is not None else current.content,
                source=_clean_source(source) if source is not None else current.source,
                tags=_clean_tags(tags) if tags is not None else current.tags,
                created_at=current.created_at,
                updated_at=_now_iso(),
            )
            _validate(updated.title, updated.content)

            items[idx] = updated
            await self._save(items)

        logger.debug("updated catalog item %s", item_id)
        return updated

    async def delete(self, item_id: str) -> bool:
        """Remove the item with *item_id*; return whether anything was removed.

        Deleting a missing id is not an error.
        """
        if not item_id:
            raise ValidationError("id is required")

        async with self._lock():
            items = await self._load()
            remaining = [x for x in items if x.id != item_id]
            deleted = len(remaining) != len(items)
            if deleted:
                await self._save(remaining)

        return deleted
