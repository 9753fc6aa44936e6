"""Tests for TextChunker and its helper stages."""

from __future__ import annotations

import pytest

from kindex.db.models import ChunkMetadata
from kindex.ingest.chunker import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    TextChunker,
    apply_overlap,
    chunk_text,
    merge_segments,
    split_paragraphs,
    split_sentences,
)

META = ChunkMetadata(source_url="https://example.com/a", source_title="A", category="blog")

_KOREAN = "모노레포로 전환하면서 빌드 캐시와 배포 파이프라인을 정리했다 "


def _korean(n: int) -> str:
    """Korean prose of exactly *n* characters with no leading/trailing space."""
    return (_KOREAN * (n // len(_KOREAN) + 1))[: n - 1] + "."


# ------------------------------------------------------------------
# Stages
# ------------------------------------------------------------------


def test_split_paragraphs_drops_empty_and_trims():
    assert split_paragraphs("  one \n\n\n\n two\n\n   \n\nthree") == ["one", "two", "three"]


def test_split_sentences_on_terminators():
    text = "First one. Second one! Third? 네 번째。 Fifth"
    assert split_sentences(text) == ["First one.", "Second one!", "Third?", "네 번째。", "Fifth"]


def test_split_sentences_without_terminator():
    assert split_sentences("no terminator here") == ["no terminator here"]


def test_merge_segments_packs_greedily():
    assert merge_segments(["aaa", "bbb", "ccc"], 7) == ["aaa bbb", "ccc"]


def test_merge_segments_force_splits_oversize():
    assert merge_segments(["xx", "abcdefghij", "yy"], 4) == ["xx", "abcd", "efgh", "ij", "yy"]


def test_merge_segments_empty():
    assert merge_segments([], 10) == []


def test_apply_overlap_prefixes_previous_tail():
    assert apply_overlap(["abcdef", "ghij"], 10, 2) == ["abcdef", "efghij"]


def test_apply_overlap_uses_pre_overlap_chunk():
    result = apply_overlap(["aaaa", "bbbb", "cccc"], 10, 2)
    assert result == ["aaaa", "aabbbb", "bbcccc"]


def test_apply_overlap_truncates_to_chunk_size():
    assert apply_overlap(["abcdef", "ghijkl"], 6, 3) == ["abcdef", "defghi"]


def test_apply_overlap_zero_or_single():
    assert apply_overlap(["a", "b"], 10, 0) == ["a", "b"]
    assert apply_overlap(["only"], 10, 3) == ["only"]


# ------------------------------------------------------------------
# TextChunker
# ------------------------------------------------------------------


def test_defaults():
    chunker = TextChunker()
    assert (chunker.chunk_size, chunker.chunk_overlap) == (DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_OVERLAP)
    assert (DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_OVERLAP) == (1000, 200)


@pytest.mark.parametrize("size,overlap", [(0, 0), (10, 10), (10, -1)])
def test_invalid_options(size, overlap):
    with pytest.raises(ValueError):
        TextChunker(chunk_size=size, chunk_overlap=overlap)


def test_empty_text_returns_empty():
    assert chunk_text("   \n\n ", META) == []


def test_short_text_single_chunk():
    chunks = chunk_text("  Short text.  ", META)
    assert len(chunks) == 1
    assert chunks[0].text == "Short text."
    assert chunks[0].index == 0
    assert chunks[0].metadata is META


def test_paragraph_boundaries_preferred():
    text = "A" * 60 + "\n\n" + "B" * 60
    chunks = chunk_text(text, META, chunk_size=100, chunk_overlap=0)
    assert [c.text for c in chunks] == ["A" * 60, "B" * 60]


def test_long_paragraph_split_on_sentences():
    sentence = "This sentence is about forty characters."
    text = " ".join([sentence] * 6)
    chunks = chunk_text(text, META, chunk_size=100, chunk_overlap=0)
    assert all(c.text.endswith(".") for c in chunks)
    assert all(len(c.text) <= 100 for c in chunks)


def test_unbroken_text_is_force_split():
    chunks = chunk_text("a" * 2500, META)
    assert [len(c.text) for c in chunks] == [1000, 1000, 700]


@pytest.mark.parametrize("size,overlap", [(50, 10), (120, 0), (300, 299), (1000, 200)])
def test_size_bound_and_contiguous_indices(size, overlap):
    text = "\n\n".join(_korean(n) for n in (40, 700, 1500, 90, 2300))
    chunks = chunk_text(text, META, chunk_size=size, chunk_overlap=overlap)
    assert chunks
    assert all(len(c.text) <= size for c in chunks)
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(c.metadata is META for c in chunks)


def test_korean_2500_characters_three_chunks():
    paragraphs = [_korean(830), _korean(830), _korean(836)]
    text = "\n\n".join(paragraphs)
    assert len(text) == 2500

    chunks = chunk_text(text, META)

    assert len(chunks) == 3
    assert all(len(c.text) <= 1000 for c in chunks)
    assert chunks[0].text == paragraphs[0]
    assert chunks[1].text.startswith(paragraphs[0][-200:])
    assert chunks[2].text.startswith(paragraphs[1][-200:])
