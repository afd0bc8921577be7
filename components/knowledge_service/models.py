"""Data models shared by the ingestion and query paths."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentChunk(BaseModel):
    """A contiguous slice of a document's extracted text."""

    model_config = ConfigDict(frozen=True)

    chunk_id: int = Field(..., description="Sequence index within the document")
    text: str = Field(..., description="The chunk text")
    size: int = Field(..., description="Character length of the chunk")
    start_char: int = Field(..., description="Start offset in the document text")
    end_char: int = Field(..., description="End offset (exclusive)")


class ProcessedDocument(BaseModel):
    """A document after extraction and chunking."""

    file_path: str = Field(..., description="Identity of the document")
    file_name: str = Field(..., description="Display name")
    file_type: str = Field(..., description="Lower-case extension with leading dot")
    file_size: int = Field(..., description="Raw byte size of the source file")
    text: str = Field(..., description="Full extracted text")
    chunks: List[DocumentChunk] = Field(default_factory=list)

    @property
    def num_chunks(self) -> int:
        return len(self.chunks)

    def summary(self) -> Dict[str, Any]:
        """Public view of the document without its full text."""
        return {
            "file_path": self.file_path,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "num_chunks": self.num_chunks,
            "text_length": len(self.text),
        }


class SearchResult(BaseModel):
    """A chunk returned by similarity search."""

    file_path: str
    file_name: str
    file_type: str
    chunk_id: int
    chunk_size: int
    text: str
    similarity_score: float = Field(..., ge=-1.0, le=1.0)


class AnswerSource(BaseModel):
    """A document referenced by the context of an answer."""

    file_name: str
    file_path: str
    similarity_score: float
    chunk_id: int


class AnswerRecord(BaseModel):
    """Result of a retrieval-augmented answer."""

    query: str
    answer: str
    sources: List[AnswerSource] = Field(default_factory=list)
    context_used: str = Field(..., description="Context text placed in the prompt")
    num_sources: int
    llm_type: str
    model_used: str


class DocumentInfo(BaseModel):
    """Per-document summary held by the vector store."""

    file_path: str
    file_name: str
    file_type: str
    file_size: int
    num_chunks: int


class VectorStoreStats(BaseModel):
    total_vectors: int
    total_documents: int
    embedding_model: str
    dimension: int
    store_path: str
    documents: List[DocumentInfo] = Field(default_factory=list)
    storage_size_mb: float


class StoredFile(BaseModel):
    name: str
    size_bytes: int
    size_mb: float
    modified: Optional[str] = Field(
        default=None, description="Modification time in ISO 8601 format (UTC)"
    )


class StorageInfo(BaseModel):
    """Space accounting for the upload directory."""

    upload_dir: str
    total_files: int = 0
    total_size_bytes: int = 0
    total_size_mb: float = 0.0
    files: List[StoredFile] = Field(default_factory=list)


class CleanupResult(BaseModel):
    """Outcome of an age-based cleanup pass."""

    deleted_files: int = 0
    freed_space_bytes: int = 0
    freed_space_mb: float = 0.0
    failed_files: List[str] = Field(default_factory=list)


class LLMModel(BaseModel):
    id: str
    name: str
    max_tokens: int


class SupportedFormat(BaseModel):
    extension: str
    name: str
    max_size_mb: int


class AskResult(BaseModel):
    """Retrieval results with an optional generated answer."""

    query: str
    results: List[SearchResult] = Field(default_factory=list)
    answer: Optional[AnswerRecord] = None
