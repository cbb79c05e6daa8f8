# src/watsonx_kit/errors.py

"""Exception hierarchy for watsonx-kit.

Transport failures (DNS, connect, timeouts) are not wrapped: they surface as
the ``httpx.TransportError`` family so callers can tell "the network failed"
apart from "the service rejected the request".
"""

from dataclasses import dataclass
from typing import Any


class WatsonxError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(WatsonxError, ValueError):
    """Invalid client configuration or call arguments.

    Raised before any network call is made. Never retried.
    """


class TokenIssueError(WatsonxError):
    """The identity endpoint refused the API key or returned a malformed body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StatusError(WatsonxError):
    """HTTP status converted to an error (legacy classification).

    The message is the status line, e.g. ``"429 Too Many Requests"``.
    """

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"{status_code} {reason}".strip())


@dataclass(frozen=True)
class APIErrorDetail:
    code: str = ""
    message: str = ""
    more_info: str = ""


class APIResponseError(WatsonxError):
    """A non-success response preserved with its parsed error body."""

    def __init__(
        self,
        status_code: int,
        errors: list[APIErrorDetail] | None = None,
        trace: str = "",
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.errors = errors or []
        self.trace = trace
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.errors:
            detail = "; ".join(
                f"{e.code}: {e.message}" if e.code else e.message for e in self.errors
            )
            return f"request failed with status code {self.status_code}: {detail}"
        if self.body:
            return (
                f"request failed with status code {self.status_code} "
                f"and error {self.body}"
            )
        return f"request failed with status code {self.status_code}"

    @property
    def codes(self) -> list[str]:
        return [e.code for e in self.errors]

    @classmethod
    def from_body(cls, status_code: int, body: str, payload: Any) -> "APIResponseError":
        """Build from a decoded error body; tolerates bodies that are not JSON objects."""
        if not isinstance(payload, dict):
            return cls(status_code=status_code, body=body)

        errors = [
            APIErrorDetail(
                code=str(item.get("code", "")),
                message=str(item.get("message", "")),
                more_info=str(item.get("more_info", "")),
            )
            for item in payload.get("errors") or []
            if isinstance(item, dict)
        ]
        return cls(
            status_code=status_code,
            errors=errors,
            trace=str(payload.get("trace", "")),
            body=body,
        )


class DecodeError(WatsonxError):
    """A response body or stream frame could not be decoded. Never retried."""


class EmptyResultError(WatsonxError):
    """A successful response carried no results or choices."""


class OperationCancelledError(WatsonxError):
    """The cancellation signal fired before the operation completed."""


class DeadlineExceededError(OperationCancelledError):
    """The cancellation deadline passed before the operation completed."""
