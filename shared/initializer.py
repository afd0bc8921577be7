"""
Centralized application initializer.

This component is responsible for parsing command-line arguments, loading
configurations, and initializing all the core backend services (embedding model,
VectorStore, generator, KnowledgeService).
It provides a single, reliable entry point for building the application's core,
which the HTTP server then wraps.
"""

import argparse
import logging
import sys
from typing import Optional, Tuple

from components.answering import LiteLLMGenerator, TextGenerator
from components.chunking import TextChunker
from components.document_processing import DocumentProcessor
from components.embedding_system import create_embedding_model
from components.knowledge_service.main import KnowledgeService
from components.storage_lifecycle import StorageManager
from components.vector_store import VectorStore

from shared.config import Config, load_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def create_arg_parser() -> argparse.ArgumentParser:
    """
    Creates and returns the command-line argument parser.

    Returns:
        An ArgumentParser instance with all common arguments defined.
    """
    parser = argparse.ArgumentParser(description="KnoRa retrieval server.")
    parser.add_argument(
        "--database-dir",
        help="Override the storage directory for the vector database.",
    )
    parser.add_argument(
        "--upload-dir",
        help="Override the directory uploaded files are stored in.",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Path to the config folder to use for all config files.",
    )
    parser.add_argument(
        "-a",
        "--app-config",
        help="Path to the app.toml file to use.",
    )
    parser.add_argument(
        "-p",
        "--prompts-config",
        help="Path to the prompts.toml file to use.",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to run the server on.",
    )
    parser.add_argument(
        "--host",
        type=str,
        help="Host to run the server on.",
    )
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line overrides to a loaded configuration."""
    if getattr(args, "database_dir", None):
        logger.info(f"Overriding database directory with: {args.database_dir}")
        config.paths.database_dir = args.database_dir
    if getattr(args, "upload_dir", None):
        logger.info(f"Overriding upload directory with: {args.upload_dir}")
        config.paths.upload_dir = args.upload_dir
    if getattr(args, "host", None):
        logger.info(f"Overriding server host with: {args.host}")
        config.server.host = args.host
    if getattr(args, "port", None):
        logger.info(f"Overriding server port with: {args.port}")
        config.server.port = args.port
    return config


def build_service(
    config: Config, generator: Optional[TextGenerator] = None
) -> KnowledgeService:
    """
    Initializes all core components from a configuration.

    Args:
        config: The loaded configuration.
        generator: Language model to use instead of the configured LiteLLM one.

    Returns:
        A fully wired KnowledgeService.
    """
    # 1. The embedding model fixes the vector dimension for the store
    logger.info("Initializing embedding model...")
    embedding_model = create_embedding_model(config.embedding_model)
    logger.info(
        f"Initialized embedding model: "
        f"{config.embedding_model.provider}/{config.embedding_model.model_name}"
    )

    # 2. The vector store loads any persisted index
    logger.info("Initializing VectorStore...")
    vector_store = VectorStore(
        dimension=embedding_model.dimension,
        persist_directory=config.paths.database_dir,
        embedding_model_name=config.embedding_model.model_name,
    )

    # 3. Ingestion and answering
    chunker = TextChunker(config.indexing.chunk_size, config.indexing.chunk_overlap)
    processor = DocumentProcessor(chunker)
    generator = generator or LiteLLMGenerator(config.generation_model)

    logger.info("Initializing KnowledgeService...")
    service = KnowledgeService(
        config=config,
        vector_store=vector_store,
        embedding_model=embedding_model,
        generator=generator,
        processor=processor,
        storage_manager=StorageManager(config.paths.upload_dir),
    )
    logger.info("Core services initialized successfully.")
    return service


def initialize_service_from_args(
    args: argparse.Namespace,
) -> Tuple[Config, KnowledgeService]:
    """
    Loads configuration and initializes all core components based on command-line
    arguments.

    Args:
        args: Parsed command-line arguments from an ArgumentParser.

    Returns:
        A tuple containing the loaded Config object and the fully initialized
        KnowledgeService instance.
    """
    config = load_config(
        config_dir=args.config,
        app_config_path=args.app_config,
        prompts_config_path=args.prompts_config,
    )
    configure_logging(config.logging.level)
    logger.info("Initializing application core services...")
    apply_overrides(config, args)
    return config, build_service(config)
