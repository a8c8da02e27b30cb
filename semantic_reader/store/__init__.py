"""Persistent vector storage for embedded feed items."""

from .vector_store import VectorStore

__all__ = ["VectorStore"]
