"""Document processing component.

This component turns uploaded files into chunked documents: format detection,
filename validation, per-format text extraction, and chunking.
"""

from .document_processor import DocumentProcessor, validate_filename
from .extractors import (
    MAX_FILE_SIZE_BYTES,
    SUPPORTED_FORMATS,
    extract_text,
    json_to_text,
    supported_formats,
)

__all__ = [
    # Processing
    "DocumentProcessor",
    "validate_filename",
    # Extraction
    "MAX_FILE_SIZE_BYTES",
    "SUPPORTED_FORMATS",
    "extract_text",
    "json_to_text",
    "supported_formats",
]
