# ruff: noqa: B008

import logging
from typing import List

from components.knowledge_service.main import KnowledgeService
from components.knowledge_service.models import LLMModel, VectorStoreStats
from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from shared.errors import EngineError, ErrorKind
from shared.retry import call_with_retry

from .models import (
    AnswerRequest,
    AnswerResponse,
    CleanupResponse,
    FormatsResponse,
    HealthResponse,
    MessageResponse,
    ModelInfoResponse,
    SearchRequest,
    SearchResponse,
    StorageResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "KnoRa AI Backend"
SERVICE_VERSION = "2.0.0"


def status_code_for(error: EngineError) -> int:
    """HTTP status for an engine error, chosen by its kind."""
    if error.kind is ErrorKind.VALIDATION:
        return 400
    if error.kind is ErrorKind.CAPABILITY:
        return 503 if error.retryable else 502
    if error.kind is ErrorKind.CANCELLED:
        return 499
    return 500


def create_app(service: KnowledgeService) -> FastAPI:
    """
    Creates and configures the FastAPI application, registering all routes.
    This function returns the app object but does not run it.

    Args:
        service: The fully initialized KnowledgeService instance.

    Returns:
        The configured FastAPI app instance.
    """
    app = FastAPI(title="KnoRa API", version=SERVICE_VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=service.config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        status = status_code_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error_kind": ErrorKind.VALIDATION.value,
                "message": str(exc.errors()),
            },
        )

    # Dependency provider to make the service available to endpoints
    def get_service() -> KnowledgeService:
        return service

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    def health() -> HealthResponse:
        return HealthResponse(
            status="healthy", service=SERVICE_NAME, version=SERVICE_VERSION
        )

    @app.post(
        "/documents/upload",
        response_model=UploadResponse,
        tags=["documents"],
        operation_id="upload_document",
    )
    def upload_document(
        file: UploadFile = File(...), svc: KnowledgeService = Depends(get_service)
    ) -> UploadResponse:
        document = svc.ingest_upload(file.filename or "", file.file)
        return UploadResponse(
            message=(
                f"Successfully processed {document.file_name} "
                f"into {document.num_chunks} chunks"
            ),
            document=document.summary(),
        )

    @app.get(
        "/documents/formats",
        response_model=FormatsResponse,
        tags=["documents"],
        operation_id="supported_formats",
    )
    def formats(svc: KnowledgeService = Depends(get_service)) -> FormatsResponse:
        return FormatsResponse(formats=svc.supported_formats())

    @app.post(
        "/search",
        response_model=SearchResponse,
        tags=["search"],
        operation_id="search_documents",
    )
    def search(
        request: SearchRequest, svc: KnowledgeService = Depends(get_service)
    ) -> SearchResponse:
        results = svc.search(request.query, request.k, request.score_threshold)
        return SearchResponse(results=results, query=request.query, count=len(results))

    @app.get(
        "/search/stats",
        response_model=VectorStoreStats,
        tags=["search"],
        operation_id="index_stats",
    )
    def index_stats(svc: KnowledgeService = Depends(get_service)) -> VectorStoreStats:
        return svc.index_stats()

    @app.delete(
        "/search/delete",
        response_model=MessageResponse,
        tags=["admin"],
        operation_id="delete_document",
    )
    def delete_document(
        file_path: str, svc: KnowledgeService = Depends(get_service)
    ) -> MessageResponse:
        removed = svc.delete_document(file_path)
        message = (
            f"Document {file_path} deleted"
            if removed
            else f"Document {file_path} was not indexed"
        )
        return MessageResponse(message=message)

    @app.delete(
        "/search/clear",
        response_model=MessageResponse,
        tags=["admin"],
        operation_id="clear_index",
    )
    def clear_index(svc: KnowledgeService = Depends(get_service)) -> MessageResponse:
        svc.clear_index()
        return MessageResponse(message="Vector store cleared")

    @app.get(
        "/search/storage",
        response_model=StorageResponse,
        tags=["admin"],
        operation_id="storage_info",
    )
    def storage_info(svc: KnowledgeService = Depends(get_service)) -> StorageResponse:
        return StorageResponse(**svc.storage_stats().model_dump())

    @app.post(
        "/search/storage/cleanup",
        response_model=CleanupResponse,
        tags=["admin"],
        operation_id="cleanup_storage",
    )
    def cleanup_storage(
        svc: KnowledgeService = Depends(get_service),
    ) -> CleanupResponse:
        return CleanupResponse(**svc.cleanup_storage().model_dump())

    @app.post(
        "/llm/answer",
        response_model=AnswerResponse,
        tags=["llm"],
        operation_id="generate_answer",
    )
    def generate_answer(
        request: AnswerRequest, svc: KnowledgeService = Depends(get_service)
    ) -> AnswerResponse:
        record = call_with_retry(
            lambda: svc.answer(
                request.query,
                request.retrieved_chunks,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
            ),
            policy=svc.config.retry,
        )
        return AnswerResponse(**record.model_dump(exclude={"query"}))

    @app.get(
        "/llm/models",
        response_model=List[LLMModel],
        tags=["llm"],
        operation_id="list_models",
    )
    def list_models(svc: KnowledgeService = Depends(get_service)) -> List[LLMModel]:
        return svc.list_models()

    @app.get(
        "/llm/model-info",
        response_model=ModelInfoResponse,
        tags=["llm"],
        operation_id="model_info",
    )
    def model_info(svc: KnowledgeService = Depends(get_service)) -> ModelInfoResponse:
        return ModelInfoResponse(**svc.model_info())

    return app
