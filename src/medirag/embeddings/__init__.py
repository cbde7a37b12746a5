"""Embedding backends, the cached embedding gateway and the vector index."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    EmbeddingGateway,
    EmbeddingResult,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
)
from .store import ChromaVectorIndex, VectorIndex

__all__ = [
    "ChromaVectorIndex",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingGateway",
    "EmbeddingResult",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "VectorIndex",
]
