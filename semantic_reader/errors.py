"""Typed errors for embedding, storage and ranking failures."""

from __future__ import annotations


class SemanticReaderError(RuntimeError):
    """Base class for errors raised by this package."""


class ProviderError(SemanticReaderError):
    """Raised when the embedding provider cannot produce a vector.

    ``reason`` is one of ``"missing-credential"``, ``"upstream"`` or
    ``"transport"``; ``detail`` carries the provider's message when known.
    """

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class ConfigError(ProviderError):
    """Raised when no API key is configured."""

    def __init__(self, detail: str = "OpenAI API key not configured") -> None:
        super().__init__("missing-credential", detail)


class TransportError(ProviderError):
    """Raised when the provider is unreachable (connection refused, timeout)."""

    def __init__(self, detail: str = "") -> None:
        super().__init__("transport", detail)


class StoreError(SemanticReaderError):
    """Raised when the vector store is used before :meth:`VectorStore.open`."""

    def __init__(self, reason: str = "not-initialized") -> None:
        self.reason = reason
        super().__init__(f"Vector store error: {reason}")


class DimensionMismatch(ValueError):
    """Raised when two vectors of different length are compared."""


class NoSourceEmbedding(LookupError):
    """Raised by strict ``find_similar`` calls when the source item has no vector."""
