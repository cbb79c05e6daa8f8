from .base import (
    EmbeddingModelType,
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingResult,
    EmbeddingReturnOptions,
)

__all__ = [
    "EmbeddingModelType",
    "EmbeddingOptions",
    "EmbeddingResponse",
    "EmbeddingResult",
    "EmbeddingReturnOptions",
]
