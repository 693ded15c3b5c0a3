"""Character-window chunker for catalog item content.

Windows are ``chunk_size`` characters long with ``overlap`` characters shared
between neighbours. A window that would cut through text is shortened to the
last paragraph, line, sentence or word boundary in its second half, so chunks
rarely end mid-word. Whitespace-only chunks are dropped.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from daylog.db.models import Chunk

# Preferred break points, strongest first.
_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", "。", ". ", "! ", "? ", " ")


class TextChunker:
    """Split text into overlapping, boundary-aligned chunks.

    Args:
        chunk_size: Maximum chunk length in characters.
        overlap: Characters repeated from the end of the previous chunk;
            must be smaller than half of *chunk_size*.
    """

    def __init__(self, chunk_size: int = 900, overlap: int = 150) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < max(1, chunk_size // 2):
            raise ValueError("overlap must be in [0, chunk_size / 2)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[str]:
        """Return the chunk texts for *text* in order."""
        if not text or not text.strip():
            return []

        segments: list[str] = []
        pos = 0
        length = len(text)

        while pos < length:
            end = min(pos + self.chunk_size, length)
            if end < length:
                end = self._boundary(text, pos, end)
            segment = text[pos:end].strip()
            if segment:
                segments.append(segment)
            if end >= length:
                break
            pos = max(pos + 1, end - self.overlap)

        return segments

    def chunk(
        self, source_item_id: str, content: str, metadata: Mapping[str, Any] | None = None
    ) -> list[Chunk]:
        """Split *content* into Chunk objects with sequential ``chunk_index``.

        Each chunk's metadata is a copy of *metadata* plus ``chunk`` (its index).
        """
        base = dict(metadata or {})
        return [
            Chunk(
                source_item_id=source_item_id,
                chunk_index=i,
                text=t,
                metadata={**base, "chunk": i},
            )
            for i, t in enumerate(self.split(content))
        ]

    def _boundary(self, text: str, start: int, end: int) -> int:
        """Return the best break position in ``text[start:end]``, or *end*."""
        floor = start + self.chunk_size // 2
        for sep in _SEPARATORS:
            idx = text.rfind(sep, floor, end)
            if idx != -1:
                return idx + len(sep)
        return end
