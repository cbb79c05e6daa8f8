# src/watsonx_kit/embeddings/base.py

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingModelType(str, Enum):
    """Commonly used embedding model ids. Any other id string is accepted too."""

    SLATE_125M_ENGLISH_RTRVR = "ibm/slate-125m-english-rtrvr"
    SLATE_30M_ENGLISH_RTRVR = "ibm/slate-30m-english-rtrvr"
    GRANITE_EMBEDDING_278M_MULTILINGUAL = "ibm/granite-embedding-278m-multilingual"
    ALL_MINILM_L12_V2 = "sentence-transformers/all-minilm-l12-v2"
    MULTILINGUAL_E5_LARGE = "intfloat/multilingual-e5-large"


class EmbeddingReturnOptions(BaseModel):
    input_text: bool = False


class EmbeddingOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    truncate_input_tokens: int | None = Field(default=None, ge=1)
    return_options: EmbeddingReturnOptions | None = None

    @classmethod
    def returning_input(cls, **kwargs: Any) -> "EmbeddingOptions":
        """Options that echo each input text back next to its vector."""
        return cls(return_options=EmbeddingReturnOptions(input_text=True), **kwargs)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class EmbeddingResult(BaseModel):
    embedding: list[float]
    input: str | None = None


class EmbeddingResponse(BaseModel):
    model_id: str = ""
    results: list[EmbeddingResult] = Field(default_factory=list)
    created_at: datetime | None = None
    input_token_count: int = 0

    @property
    def vectors(self) -> list[list[float]]:
        return [r.embedding for r in self.results]
