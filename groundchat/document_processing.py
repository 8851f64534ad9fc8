"""Document loading and text chunking for knowledge base ingestion."""

from pathlib import Path

import pypdf

from .config import config
from .models import DocumentChunk

logger = config.get_logger(__name__)

TEXT_SUFFIXES = frozenset({".txt", ".md"})


class DocumentLoader:
    """Handles loading of PDF, Markdown and TXT documents."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text content from the PDF as a string.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                text = ""
                for page_num, page in enumerate(pdf_reader.pages):
                    page_text = page.extract_text()
                    text += f"\n--- Page {page_num + 1} ---\n{page_text}\n"
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            return text

    @staticmethod
    def load_text(file_path: Path) -> str:
        """Load text content from a plain text or Markdown file.

        Returns:
            The file content as a string.
        """
        try:
            text = file_path.read_text(encoding="utf-8")
            logger.info("Successfully loaded %s", file_path.name)
        except Exception:
            logger.exception("Error loading text file %s", file_path)
            raise
        else:
            return text

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext in TEXT_SUFFIXES:
            return cls.load_text(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)


class TextChunker:
    """Handles text chunking with fixed length and overlap strategy."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        """Initialize the TextChunker with chunk size and overlap.

        Args:
            chunk_size: The size of each text chunk.
            overlap: The number of overlapping characters between chunks.

        Raises:
            ValueError: If overlap is negative or not smaller than chunk_size.
        """
        if not 0 <= overlap < chunk_size:
            msg = f"overlap ({overlap}) must be in [0, chunk_size={chunk_size})"
            raise ValueError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk_text(
        self,
        text: str,
        document: str = "document",
        metadata: dict[str, str] | None = None,
    ) -> list[DocumentChunk]:
        """Split text into overlapping chunks.

        Chunk ids are ``"{document}_{index}"`` so re-ingesting a document
        overwrites its previous chunks.

        Returns:
            A list of DocumentChunk objects representing the text chunks.
        """
        base_metadata = dict(metadata or {})
        base_metadata.setdefault("source", document)

        chunks: list[DocumentChunk] = []
        start = 0

        while start < len(text):
            end = start + self.chunk_size
            chunk_text = text[start:end]

            # Ensure we don't break in the middle of a word (except for last chunk)
            if end < len(text) and not chunk_text.endswith(" "):
                last_space = chunk_text.rfind(" ")
                # At least half chunk size to prevent too small chunks after adjustment
                if last_space > self.chunk_size // 2:
                    end = start + last_space
                    chunk_text = text[start:end]

            if chunk_text.strip():
                index = len(chunks)
                chunks.append(
                    DocumentChunk(
                        id=f"{document}_{index}",
                        content=chunk_text.strip(),
                        metadata={
                            **base_metadata,
                            "document": document,
                            "chunk_index": str(index),
                            "start_char": str(start),
                            "end_char": str(end),
                        },
                    )
                )

            if end >= len(text):
                break
            # A word-boundary cut can be shorter than the overlap; always advance.
            start = max(end - self.overlap, start + 1)

        logger.info("Text split into %d chunks", len(chunks))
        return chunks
