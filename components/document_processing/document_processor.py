"""Turns an uploaded file into a chunked ProcessedDocument."""

import logging
from pathlib import Path
from typing import Optional

from components.chunking import TextChunker
from components.knowledge_service.models import ProcessedDocument
from shared.errors import InvalidInputError

from .extractors import MAX_FILE_SIZE_BYTES, SUPPORTED_FORMATS, extract_text

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255


def validate_filename(name: str) -> str:
    """Check an uploaded file name and return its lower-case extension.

    Raises:
        InvalidInputError: If the name is empty, too long, contains path
            separators or NUL, or has an unsupported extension.
    """
    if not name or not name.strip():
        raise InvalidInputError("Filename cannot be empty")
    if len(name) > MAX_FILENAME_LENGTH:
        raise InvalidInputError(
            f"Filename too long (max {MAX_FILENAME_LENGTH} characters)"
        )
    if any(ch in name for ch in ("/", "\\", "\x00")):
        raise InvalidInputError("Filename contains invalid characters")

    extension = Path(name).suffix.lower()
    if extension not in SUPPORTED_FORMATS:
        raise InvalidInputError(
            f"Unsupported file type: {extension or '(none)'}. "
            f"Supported: {', '.join(SUPPORTED_FORMATS)}"
        )
    return extension


class DocumentProcessor:
    """Extracts text from a file and splits it with a TextChunker."""

    def __init__(self, chunker: TextChunker):
        self.chunker = chunker

    def process_file(
        self, file_path: str, original_name: Optional[str] = None
    ) -> ProcessedDocument:
        """Extract and chunk one file.

        Args:
            file_path: Where the file is stored; also the document identity.
            original_name: Name the file was uploaded under. Its extension takes
                precedence over the stored path's.

        Returns:
            The processed document with at least one chunk.
        """
        path = Path(file_path)
        if not path.is_file():
            raise InvalidInputError(f"File not found: {file_path}")

        extension = Path(original_name).suffix.lower() if original_name else ""
        if not extension:
            extension = path.suffix.lower()
        if extension not in SUPPORTED_FORMATS:
            raise InvalidInputError(f"Unsupported file type: {extension or '(none)'}")

        file_size = path.stat().st_size
        if file_size > MAX_FILE_SIZE_BYTES:
            raise InvalidInputError(
                f"File too large: {file_size} bytes "
                f"(max {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB)"
            )

        file_name = original_name or path.name
        logger.info(f"Processing file: {file_name} ({extension}, {file_size} bytes)")

        text = extract_text(path, extension)
        if not text.strip():
            raise InvalidInputError(f"No text content could be extracted from {file_name}")

        chunks = self.chunker.chunk(text)
        logger.info(f"Extracted {len(text)} characters in {len(chunks)} chunks")

        return ProcessedDocument(
            file_path=str(path),
            file_name=file_name,
            file_type=extension,
            file_size=file_size,
            text=text,
            chunks=chunks,
        )
