# src/watsonx_kit/llms/__init__.py

"""Payload and result types for text generation and chat.

Pure data. Nothing here talks to the network; ``WatsonxClient`` turns these
into requests and decodes responses back into them.

Example:
    >>> from watsonx_kit.llms import GenerateOptions, user_message
    >>>
    >>> options = GenerateOptions(max_new_tokens=50, temperature=0.2)
    >>> messages = [user_message("What is the capital of France?")]
"""

from .chat import (
    ChatChoice,
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ChatTool,
    ChatUsage,
    ContentBlock,
    ImageURL,
    ResponseFormat,
    Role,
    ToolCall,
    ToolCallFunction,
    ToolChoice,
    ToolFunction,
    assistant_message,
    function_tool,
    system_message,
    tool_message,
    user_message,
)
from .generation import (
    DecodingMethod,
    GenerateOptions,
    GenerateTextResponse,
    GenerateTextResult,
    LengthPenalty,
    ModelType,
    PartialResult,
    ReturnOptions,
    StopReason,
    is_finished,
    parse_stop_reason,
)

__all__ = [
    # Generation
    "DecodingMethod",
    "GenerateOptions",
    "GenerateTextResponse",
    "GenerateTextResult",
    "LengthPenalty",
    "ModelType",
    "PartialResult",
    "ReturnOptions",
    "StopReason",
    "is_finished",
    "parse_stop_reason",
    # Chat
    "ChatChoice",
    "ChatMessage",
    "ChatOptions",
    "ChatResponse",
    "ChatTool",
    "ChatUsage",
    "ContentBlock",
    "ImageURL",
    "ResponseFormat",
    "Role",
    "ToolCall",
    "ToolCallFunction",
    "ToolChoice",
    "ToolFunction",
    # Message helpers
    "assistant_message",
    "function_tool",
    "system_message",
    "tool_message",
    "user_message",
]
