# src/watsonx_kit/llms/generation.py

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModelType(str, Enum):
    """Commonly used foundation model ids. Any other id string is accepted too."""

    GRANITE_13B_INSTRUCT_V2 = "ibm/granite-13b-instruct-v2"
    GRANITE_3_8B_INSTRUCT = "ibm/granite-3-8b-instruct"
    GRANITE_3_2B_INSTRUCT = "ibm/granite-3-2b-instruct"
    FLAN_UL2 = "google/flan-ul2"
    FLAN_T5_XXL = "google/flan-t5-xxl"
    LLAMA_3_3_70B_INSTRUCT = "meta-llama/llama-3-3-70b-instruct"
    LLAMA_3_1_8B_INSTRUCT = "meta-llama/llama-3-1-8b-instruct"
    MISTRAL_LARGE = "mistralai/mistral-large"
    MIXTRAL_8X7B_INSTRUCT = "mistralai/mixtral-8x7b-instruct-v01"


class DecodingMethod(str, Enum):
    SAMPLE = "sample"
    GREEDY = "greedy"


class StopReason(str, Enum):
    """Why generation stopped. Values the service adds later pass through as str."""

    NOT_FINISHED = "not_finished"  # more tokens may follow in a stream
    MAX_TOKENS = "max_tokens"
    EOS_TOKEN = "eos_token"
    CANCELLED = "cancelled"
    TIME_LIMIT = "time_limit"
    STOP_SEQUENCE = "stop_sequence"
    TOKEN_LIMIT = "token_limit"
    ERROR = "error"


def parse_stop_reason(value: object) -> StopReason | str:
    if value is None or value == "":
        return StopReason.NOT_FINISHED
    try:
        return StopReason(value)
    except ValueError:
        return str(value)


def is_finished(reason: StopReason | str) -> bool:
    """True when no further tokens will be generated for this result."""
    return reason != StopReason.NOT_FINISHED


class LengthPenalty(BaseModel):
    decay_factor: float = Field(ge=1.0)
    start_index: int = Field(ge=0)


class ReturnOptions(BaseModel):
    input_text: bool = False
    generated_tokens: bool = False
    input_tokens: bool = False
    token_logprobs: bool = False
    token_ranks: bool = False
    top_n_tokens: int = Field(default=0, ge=0, le=5)


class GenerateOptions(BaseModel):
    """Sampling and stopping parameters for text generation.

    Unset fields are left out of the request so the service defaults apply.
    """

    model_config = ConfigDict(extra="forbid")

    decoding_method: DecodingMethod | None = None
    length_penalty: LengthPenalty | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, gt=0.0, le=1.0)
    top_k: int | None = Field(default=None, ge=1, le=100)
    random_seed: int | None = Field(default=None, ge=1)
    repetition_penalty: float | None = Field(default=None, ge=1.0, le=2.0)
    min_new_tokens: int | None = Field(default=None, ge=0)
    max_new_tokens: int | None = Field(default=None, ge=0)
    stop_sequences: list[str] | None = None
    time_limit: int | None = Field(default=None, gt=0)  # milliseconds
    truncate_input_tokens: int | None = Field(default=None, ge=1)
    return_options: ReturnOptions | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class GenerateTextResult(BaseModel):
    """One generation result; in a stream, one incremental partial result.

    Token counts are cumulative for the request.
    """

    generated_text: str = ""
    generated_token_count: int = 0
    input_token_count: int = 0
    stop_reason: StopReason | str = StopReason.NOT_FINISHED

    @field_validator("stop_reason", mode="plain")
    @classmethod
    def _known_stop_reason(cls, value: object) -> StopReason | str:
        return parse_stop_reason(value)

    @property
    def text(self) -> str:
        return self.generated_text

    @property
    def finished(self) -> bool:
        return is_finished(self.stop_reason)


PartialResult = GenerateTextResult


class GenerateTextResponse(BaseModel):
    """Envelope for both the synchronous response and each stream frame."""

    model_id: str = ""
    created_at: str | None = None
    status: str | None = None
    status_code: int | None = None
    results: list[GenerateTextResult] = Field(default_factory=list)
