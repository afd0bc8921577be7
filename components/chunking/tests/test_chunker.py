"""Tests for fixed-size overlapping chunking."""

import math

import pytest
from components.chunking import TextChunker
from shared.errors import ConfigurationError


class TestTextChunker:
    """Test the TextChunker class."""

    def test_short_text_is_one_chunk(self):
        chunker = TextChunker(chunk_size=100, chunk_overlap=20)
        chunks = chunker.chunk("hello world")

        assert len(chunks) == 1
        assert chunks[0].chunk_id == 0
        assert chunks[0].text == "hello world"
        assert chunks[0].start_char == 0
        assert chunks[0].end_char == 11
        assert chunks[0].size == 11

    def test_text_exactly_chunk_size_is_one_chunk(self):
        chunker = TextChunker(chunk_size=50, chunk_overlap=10)
        assert len(chunker.chunk("x" * 50)) == 1

    def test_empty_text_has_no_chunks(self):
        assert TextChunker().chunk("") == []

    def test_default_parameters_on_2400_chars(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(2400))
        chunks = TextChunker().chunk(text)

        assert [c.start_char for c in chunks] == [0, 800, 1600]
        assert [c.end_char for c in chunks] == [1000, 1800, 2400]
        assert chunks[2].size == 800
        assert chunks[1].text == text[800:1800]

    def test_consecutive_chunks_share_overlap(self):
        text = "0123456789" * 30
        chunks = TextChunker(chunk_size=100, chunk_overlap=25).chunk(text)

        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev.text[-25:] == nxt.text[:25]

    @pytest.mark.parametrize(
        "length,size,overlap",
        [(2400, 1000, 200), (1001, 1000, 200), (5000, 300, 0), (777, 100, 99)],
    )
    def test_chunk_count_formula(self, length, size, overlap):
        chunks = TextChunker(size, overlap).chunk("a" * length)
        expected = math.ceil((length - overlap) / (size - overlap))
        assert len(chunks) == expected
        assert chunks[-1].end_char == length

    def test_chunk_ids_are_sequential(self):
        chunks = TextChunker(10, 2).chunk("z" * 95)
        assert [c.chunk_id for c in chunks] == list(range(len(chunks)))

    @pytest.mark.parametrize(
        "size,overlap", [(100, 100), (100, 150), (0, 0), (-5, 0), (100, -1)]
    )
    def test_invalid_parameters_rejected(self, size, overlap):
        with pytest.raises(ConfigurationError):
            TextChunker(chunk_size=size, chunk_overlap=overlap)

    def test_chunks_are_immutable(self):
        chunk = TextChunker().chunk("some text")[0]
        with pytest.raises(Exception):
            chunk.text = "changed"
