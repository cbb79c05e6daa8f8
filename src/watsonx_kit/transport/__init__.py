"""HTTP transport with configurable retry, backoff, jitter and cancellation."""

from .cancellation import CancellationToken, Clock, SystemClock, sleep_or_cancel
from .http import Transport, read_error_response
from .retry import (
    AttemptResult,
    ErrorClassification,
    OnRetry,
    RetryPolicy,
    RetryPredicate,
    retry,
    retry_on_error,
    retry_on_error_or_status,
    retry_on_status,
)

__all__ = [
    # Transport
    "Transport",
    "read_error_response",
    # Retry
    "AttemptResult",
    "ErrorClassification",
    "OnRetry",
    "RetryPolicy",
    "RetryPredicate",
    "retry",
    "retry_on_error",
    "retry_on_error_or_status",
    "retry_on_status",
    # Cancellation
    "CancellationToken",
    "Clock",
    "SystemClock",
    "sleep_or_cancel",
]
