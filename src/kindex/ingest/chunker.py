"""Paragraph/sentence-aware chunker with character overlap.

Pipeline:
  1. Split on blank lines into paragraphs.
  2. Split paragraphs longer than chunk_size on sentence endings (. ! ? 。).
  3. Greedily merge segments up to chunk_size; force-split oversize segments.
  4. Prefix each chunk after the first with the tail of its predecessor.
"""

from __future__ import annotations

import re

from kindex.db.models import ChunkMetadata, TextChunk
from kindex.ingest.base import BaseChunker

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200

_PARAGRAPH_RE = re.compile(r"\n\n+")
_SENTENCE_RE = re.compile(r"(?<=[.!?。])\s+")


class TextChunker(BaseChunker):
    """Split text on paragraph and sentence boundaries, then apply overlap.

    Default: 1000 characters / 200 characters overlap.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

    def chunk(self, text: str, metadata: ChunkMetadata) -> list[TextChunk]:
        trimmed = text.strip()
        if not trimmed:
            return []
        if len(trimmed) <= self.chunk_size:
            return [TextChunk(text=trimmed, index=0, metadata=metadata)]

        segments: list[str] = []
        for paragraph in split_paragraphs(trimmed):
            if len(paragraph) <= self.chunk_size:
                segments.append(paragraph)
            else:
                segments.extend(split_sentences(paragraph))

        raw = merge_segments(segments, self.chunk_size)
        texts = apply_overlap(raw, self.chunk_size, self.chunk_overlap)
        return [
            TextChunk(text=t, index=i, metadata=metadata) for i, t in enumerate(texts)
        ]


def chunk_text(
    text: str,
    metadata: ChunkMetadata,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[TextChunk]:
    """Functional shortcut for ``TextChunker(chunk_size, chunk_overlap).chunk()``."""
    return TextChunker(chunk_size, chunk_overlap).chunk(text, metadata)


def split_paragraphs(text: str) -> list[str]:
    """Split on runs of blank lines; trim and drop empty paragraphs."""
    return [p.strip() for p in _PARAGRAPH_RE.split(text) if p.strip()]


def split_sentences(text: str) -> list[str]:
    """Split after sentence-ending punctuation followed by whitespace."""
    return [s.strip() for s in _SENTENCE_RE.split(text) if s.strip()]


def merge_segments(segments: list[str], chunk_size: int) -> list[str]:
    """Greedily join *segments* with spaces into chunks of at most *chunk_size*.

    A segment longer than *chunk_size* flushes the current chunk and is cut
    into fixed *chunk_size* slices; its remainder becomes the current chunk.
    """
    chunks: list[str] = []
    current = ""

    for segment in segments:
        if len(segment) > chunk_size:
            if current:
                chunks.append(current.strip())
                current = ""
            remaining = segment
            while len(remaining) > chunk_size:
                chunks.append(remaining[:chunk_size])
                remaining = remaining[chunk_size:]
            current = remaining
            continue

        candidate = f"{current} {segment}" if current else segment
        if len(candidate) <= chunk_size:
            current = candidate
        else:
            if current:
                chunks.append(current.strip())
            current = segment

    if current.strip():
        chunks.append(current.strip())
    return chunks


def apply_overlap(chunks: list[str], chunk_size: int, chunk_overlap: int) -> list[str]:
    """Prefix chunk i>0 with the last *chunk_overlap* chars of chunk i-1.

    The previous chunk is taken before its own overlap was added. Results
    longer than *chunk_size* are truncated from the end.
    """
    if len(chunks) <= 1 or chunk_overlap <= 0:
        return list(chunks)

    result = [chunks[0]]
    for prev, chunk in zip(chunks, chunks[1:]):
        combined = prev[-chunk_overlap:] + chunk
        result.append(combined[:chunk_size])
    return result
