# Client
from .client import WatsonxClient

# Configuration
from .config import ClientConfig, Region

# Credentials
from .auth import BearerCredential, CredentialCache, TokenIssuer

# Embeddings
from .embeddings import (
    EmbeddingModelType,
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingResult,
)

# Errors
from .errors import (
    APIResponseError,
    ConfigurationError,
    DeadlineExceededError,
    DecodeError,
    EmptyResultError,
    OperationCancelledError,
    StatusError,
    TokenIssueError,
    WatsonxError,
)

# Generation and chat
from .llms import (
    ChatMessage,
    ChatOptions,
    ChatResponse,
    GenerateOptions,
    GenerateTextResult,
    ModelType,
    PartialResult,
    StopReason,
    assistant_message,
    function_tool,
    system_message,
    tool_message,
    user_message,
)

# Observability
from .observability import LoggingMetricsHook, MetricsHook, NoOpMetricsHook

# Streaming
from .streaming import StreamState, TextStream

# Transport
from .transport import (
    AttemptResult,
    CancellationToken,
    ErrorClassification,
    RetryPolicy,
    Transport,
    retry_on_error,
    retry_on_error_or_status,
    retry_on_status,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "WatsonxClient",
    # Configuration
    "ClientConfig",
    "Region",
    # Credentials
    "BearerCredential",
    "CredentialCache",
    "TokenIssuer",
    # Embeddings
    "EmbeddingModelType",
    "EmbeddingOptions",
    "EmbeddingResponse",
    "EmbeddingResult",
    # Errors
    "APIResponseError",
    "ConfigurationError",
    "DeadlineExceededError",
    "DecodeError",
    "EmptyResultError",
    "OperationCancelledError",
    "StatusError",
    "TokenIssueError",
    "WatsonxError",
    # Generation and chat
    "ChatMessage",
    "ChatOptions",
    "ChatResponse",
    "GenerateOptions",
    "GenerateTextResult",
    "ModelType",
    "PartialResult",
    "StopReason",
    "assistant_message",
    "function_tool",
    "system_message",
    "tool_message",
    "user_message",
    # Observability
    "LoggingMetricsHook",
    "MetricsHook",
    "NoOpMetricsHook",
    # Streaming
    "StreamState",
    "TextStream",
    # Transport
    "AttemptResult",
    "CancellationToken",
    "ErrorClassification",
    "RetryPolicy",
    "Transport",
    "retry_on_error",
    "retry_on_error_or_status",
    "retry_on_status",
]
