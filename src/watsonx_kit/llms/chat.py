# src/watsonx_kit/llms/chat.py

import json
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ._tool_schema import function_tool_schema

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ImageURL(BaseModel):
    url: str
    detail: str | None = None  # "low", "high" or "auto"


class ContentBlock(BaseModel):
    """One typed block of message content ("text", "image_url", ...)."""

    type: str = "text"
    text: str | None = None
    image_url: ImageURL | None = None


class ToolCallFunction(BaseModel):
    name: str
    arguments: str = "{}"  # JSON-encoded by the model

    def parsed_arguments(self) -> dict[str, Any]:
        """Decoded arguments; malformed model output yields an empty dict."""
        try:
            arguments = json.loads(self.arguments)
        except json.JSONDecodeError:
            logger.warning("Failed to parse tool call arguments: %s", self.arguments)
            return {}
        return arguments if isinstance(arguments, dict) else {}


class ToolCall(BaseModel):
    id: str
    type: str = "function"
    function: ToolCallFunction


class ChatMessage(BaseModel):
    """A chat message. ``content`` is either a plain string or typed blocks."""

    role: str
    content: str | list[ContentBlock] | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    @property
    def text(self) -> str:
        """Text of the message regardless of the content format."""
        if isinstance(self.content, str):
            return self.content
        if self.content and self.content[0].text is not None:
            return self.content[0].text
        return ""

    def content_blocks(self) -> list[ContentBlock]:
        if isinstance(self.content, str):
            return [ContentBlock(type="text", text=self.content)]
        return list(self.content or [])

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ToolFunction(BaseModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None  # JSON schema


class ChatTool(BaseModel):
    type: str = "function"
    function: ToolFunction


class ToolChoiceFunction(BaseModel):
    name: str


class ToolChoice(BaseModel):
    type: str = "function"
    function: ToolChoiceFunction | None = None

    @classmethod
    def for_function(cls, name: str) -> "ToolChoice":
        """Force the model to call the named function."""
        return cls(function=ToolChoiceFunction(name=name))


class ResponseFormat(BaseModel):
    type: str  # "text", "json_object" or "json_schema"
    json_schema: dict[str, Any] | None = None

    @classmethod
    def json_object(cls) -> "ResponseFormat":
        return cls(type="json_object")

    @classmethod
    def from_schema(cls, schema: dict[str, Any]) -> "ResponseFormat":
        return cls(type="json_schema", json_schema=schema)


class ChatOptions(BaseModel):
    """Optional chat parameters. Unset fields are left out of the request."""

    model_config = ConfigDict(extra="forbid")

    tools: list[ChatTool] | None = None
    tool_choice_option: str | None = None  # "auto", "none" or "required"
    tool_choice: ToolChoice | None = None
    context: str | None = None
    max_tokens: int | None = Field(default=None, ge=0)
    max_completion_tokens: int | None = Field(default=None, ge=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, gt=0.0, le=1.0)
    frequency_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)
    stop: list[str] | None = None
    n: int | None = Field(default=None, ge=1)
    response_format: ResponseFormat | None = None
    seed: int | None = None
    time_limit: int | None = Field(default=None, gt=0)  # milliseconds
    logit_bias: dict[str, float] | None = None
    logprobs: bool | None = None
    top_logprobs: int | None = Field(default=None, ge=0)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class TopLogProb(BaseModel):
    token: str
    logprob: float
    bytes: list[int] | None = None


class TokenLogProb(TopLogProb):
    top_logprobs: list[TopLogProb] | None = None


class ChatLogProbs(BaseModel):
    content: list[TokenLogProb] | None = None
    refusal: list[TokenLogProb] | None = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage | None = None
    delta: ChatMessage | None = None
    finish_reason: str | None = None
    logprobs: ChatLogProbs | None = None


class ChatUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    id: str = ""
    model_id: str = ""
    created: int = 0
    created_at: str | None = None
    choices: list[ChatChoice] = Field(default_factory=list)
    usage: ChatUsage | None = None
    model_version: str | None = None
    system: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        """Text of the first choice, or "" when there is none."""
        if not self.choices or self.choices[0].message is None:
            return ""
        return self.choices[0].message.text


def _text_blocks(content: str) -> list[ContentBlock]:
    return [ContentBlock(type="text", text=content)]


def system_message(content: str) -> ChatMessage:
    return ChatMessage(role=Role.SYSTEM.value, content=content)


def user_message(content: str | list[ContentBlock]) -> ChatMessage:
    blocks = _text_blocks(content) if isinstance(content, str) else content
    return ChatMessage(role=Role.USER.value, content=blocks)


def assistant_message(
    content: str, tool_calls: list[ToolCall] | None = None
) -> ChatMessage:
    return ChatMessage(
        role=Role.ASSISTANT.value, content=_text_blocks(content), tool_calls=tool_calls
    )


def tool_message(tool_call_id: str, content: str) -> ChatMessage:
    return ChatMessage(
        role=Role.TOOL.value, content=_text_blocks(content), tool_call_id=tool_call_id
    )


def function_tool(
    name: str,
    description: str | None = None,
    input_schema: type[BaseModel] | dict[str, Any] | None = None,
) -> ChatTool:
    """Define a callable function for the model.

    Example:
        >>> class WeatherInput(BaseModel):
        ...     city: str
        >>> tool = function_tool("get_weather", "Current weather", WeatherInput)
    """
    return ChatTool.model_validate(function_tool_schema(name, description, input_schema))
