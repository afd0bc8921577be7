"""Framework-free service layer for ingestion, search and answering.

The service itself lives in ``components.knowledge_service.main``.
"""
