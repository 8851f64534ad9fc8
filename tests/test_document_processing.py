"""Unit tests for document processing components."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from groundchat import DocumentLoader, TextChunker


def test_load_markdown_document(sample_document_path):
    if not sample_document_path.exists():
        pytest.skip("Sample document not found")

    text = DocumentLoader.load_document(sample_document_path)

    assert isinstance(text, str)
    assert "Pollinet Member Handbook" in text


def test_load_txt_document(tmp_path):
    path = tmp_path / "notes.TXT"
    path.write_text("Hive inspections happen on Sundays.", encoding="utf-8")

    assert DocumentLoader.load_document(path) == "Hive inspections happen on Sundays."


def test_load_pdf_document(tmp_path):
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4")
    pages = [Mock(extract_text=Mock(return_value=f"Page text {i}")) for i in (1, 2)]

    with patch("groundchat.document_processing.pypdf.PdfReader") as mock_reader:
        mock_reader.return_value.pages = pages
        text = DocumentLoader.load_document(path)

    assert "--- Page 1 ---\nPage text 1" in text
    assert "--- Page 2 ---\nPage text 2" in text


def test_load_nonexistent_file():
    with pytest.raises(FileNotFoundError):
        DocumentLoader.load_document(Path("nonexistent_file.txt"))


def test_unsupported_file_type():
    with pytest.raises(ValueError, match="Unsupported file type"):
        DocumentLoader.load_document(Path("test.invalid"))


def test_chunk_creation(text_chunker_small):
    text = "This is a test document. " * 20

    chunks = text_chunker_small.chunk_text(text, document="test_doc")

    assert len(chunks) > 1
    for index, chunk in enumerate(chunks):
        assert chunk.content
        assert len(chunk.content) <= 100
        assert chunk.id == f"test_doc_{index}"
        assert chunk.metadata["source"] == "test_doc"
        assert chunk.metadata["document"] == "test_doc"
        assert chunk.metadata["chunk_index"] == str(index)
        assert chunk.embedding is None


def test_chunk_metadata_merges_base_metadata(text_chunker_small):
    chunks = text_chunker_small.chunk_text(
        "Short handbook text.", document="handbook", metadata={"source": "handbook.md"}
    )

    assert len(chunks) == 1
    assert chunks[0].metadata == {
        "source": "handbook.md",
        "document": "handbook",
        "chunk_index": "0",
        "start_char": "0",
        "end_char": "100",
    }


def test_empty_text_chunking(text_chunker_default):
    assert text_chunker_default.chunk_text("", "empty_source") == []
    assert text_chunker_default.chunk_text("   \n  ", "blank_source") == []


def test_chunk_overlap():
    chunker = TextChunker(chunk_size=50, overlap=10)

    chunks = chunker.chunk_text("A" * 100, "test")

    first_end = int(chunks[0].metadata["end_char"])
    second_start = int(chunks[1].metadata["start_char"])
    assert first_end - second_start == 10


def test_chunks_break_on_word_boundary():
    chunker = TextChunker(chunk_size=40, overlap=5)
    text = "alpha bravo charlie delta echo foxtrot golf hotel india juliet"

    chunks = chunker.chunk_text(text, "words")

    words = set(text.split())
    assert len(chunks) > 1
    for chunk in chunks[:-1]:
        assert chunk.content.split()[-1] in words


def test_chunking_always_advances():
    chunker = TextChunker(chunk_size=10, overlap=9)
    text = "abcdefghij klmnopqrst uvwxyz " * 5

    chunks = chunker.chunk_text(text, "dense")

    starts = [int(chunk.metadata["start_char"]) for chunk in chunks]
    assert starts == sorted(set(starts))
    assert int(chunks[-1].metadata["end_char"]) >= len(text.rstrip())


def test_rechunking_produces_same_ids(text_chunker_small):
    text = "Members share hive sensor data every morning. " * 8

    first = text_chunker_small.chunk_text(text, "sensors")
    second = text_chunker_small.chunk_text(text, "sensors")

    assert [chunk.id for chunk in first] == [chunk.id for chunk in second]


@pytest.mark.parametrize(("chunk_size", "overlap"), [(100, 100), (100, 150), (100, -1)])
def test_invalid_chunker_settings(chunk_size, overlap):
    with pytest.raises(ValueError, match="overlap"):
        TextChunker(chunk_size=chunk_size, overlap=overlap)
