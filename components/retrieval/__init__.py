"""Retrieval engine: query embedding plus thresholded similarity search."""

from .retriever import Retriever

__all__ = ["Retriever"]
