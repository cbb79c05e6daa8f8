# src/watsonx_kit/transport/retry.py

"""Retry engine for HTTP attempts.

Thin policy layer over ``tenacity.AsyncRetrying``. Attempts never raise for
HTTP-level outcomes: every attempt yields an ``AttemptResult`` carrying the
response, the error, or (modern classification) both, and the retry predicate
decides on that pair.

Two classification variants exist:

- ``STATUS_AS_ERROR`` (legacy, default): any non-200 response is converted into
  a ``StatusError`` built from its status line and the response is closed.
- ``PRESERVE_RESPONSE``: only transport errors count as errors; a 4xx/5xx
  response is handed back untouched so the caller can read its error body.

Exhaustion returns the last observed result. No "retries exhausted" wrapper
is ever raised.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import partial

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
    wait_random,
)

from watsonx_kit.errors import ConfigurationError, EmptyResultError, StatusError
from watsonx_kit.observability import names
from watsonx_kit.observability.base import MetricsHook, NoOpMetricsHook

from .cancellation import CancellationToken, Clock, SystemClock, sleep_or_cancel

logger = logging.getLogger(__name__)

RetryPredicate = Callable[[httpx.Response | None, BaseException | None], bool]
OnRetry = Callable[[int, httpx.Response | None, BaseException | None], None]


class ErrorClassification(str, Enum):
    """How a completed HTTP response with a non-success status is reported."""

    STATUS_AS_ERROR = "status_as_error"
    PRESERVE_RESPONSE = "preserve_response"


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one attempt: a response, an error, or both."""

    response: httpx.Response | None = None
    error: BaseException | None = None

    @property
    def is_success(self) -> bool:
        return (
            self.error is None
            and self.response is not None
            and self.response.status_code == httpx.codes.OK
        )

    def unwrap(self) -> httpx.Response:
        """Return the response, raising the error if one was recorded."""
        if self.error is not None:
            raise self.error
        if self.response is None:
            raise EmptyResultError("no attempt was made")
        return self.response


def retry_on_error(
    response: httpx.Response | None, error: BaseException | None
) -> bool:
    """Retry whenever an error is present. Default for legacy classification."""
    return error is not None


def retry_on_error_or_status(
    response: httpx.Response | None, error: BaseException | None
) -> bool:
    """Retry on transport errors and any 4xx/5xx response."""
    return error is not None or (
        response is not None and response.status_code >= httpx.codes.BAD_REQUEST
    )


def retry_on_status(*status_codes: int) -> RetryPredicate:
    """Retry on transport errors and on the given status codes only.

    Example:
        >>> policy = RetryPolicy(
        ...     classification=ErrorClassification.PRESERVE_RESPONSE,
        ...     should_retry=retry_on_status(429, 503, 504, 520),
        ... )
    """
    codes = frozenset(status_codes)

    def predicate(
        response: httpx.Response | None, error: BaseException | None
    ) -> bool:
        if error is not None:
            return True
        return response is not None and response.status_code in codes

    return predicate


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration. Immutable; shared by value across calls.

    ``max_attempts`` counts every attempt including the first. Durations are
    seconds. ``max_jitter`` of 0 disables jitter.
    """

    max_attempts: int = 3
    backoff: float = 1.0
    max_jitter: float = 1.0
    classification: ErrorClassification = ErrorClassification.STATUS_AS_ERROR
    should_retry: RetryPredicate | None = None
    on_retry: OnRetry | None = None
    cancellation: CancellationToken | None = None
    clock: Clock = field(default_factory=SystemClock)

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ConfigurationError("max_attempts must be >= 0")
        if self.backoff < 0:
            raise ConfigurationError("backoff must be >= 0")
        if self.max_jitter < 0:
            raise ConfigurationError("max_jitter must be >= 0")

    @classmethod
    def preserving_responses(cls, **kwargs: object) -> "RetryPolicy":
        """Policy that keeps non-success responses instead of raising for them."""
        return cls(classification=ErrorClassification.PRESERVE_RESPONSE, **kwargs)  # type: ignore[arg-type]

    @property
    def predicate(self) -> RetryPredicate:
        if self.should_retry is not None:
            return self.should_retry
        if self.classification is ErrorClassification.STATUS_AS_ERROR:
            return retry_on_error
        return retry_on_error_or_status

    def with_cancellation(self, cancellation: CancellationToken | None) -> "RetryPolicy":
        return replace(self, cancellation=cancellation)


async def _classify(
    result: AttemptResult, classification: ErrorClassification
) -> AttemptResult:
    if result.error is not None or result.response is None:
        return result

    if classification is ErrorClassification.STATUS_AS_ERROR:
        response = result.response
        await response.aclose()
        return AttemptResult(
            error=StatusError(response.status_code, response.reason_phrase)
        )

    return result


def _describe(result: AttemptResult) -> str:
    if result.error is not None:
        return f"{type(result.error).__name__}: {result.error}"
    if result.response is not None:
        return f"status {result.response.status_code}"
    return "no response"


async def retry(
    action: Callable[[int], Awaitable[AttemptResult]],
    policy: RetryPolicy,
    metrics_hook: MetricsHook = NoOpMetricsHook(),
) -> AttemptResult:
    """Run ``action`` under ``policy``.

    ``action`` receives the 1-based attempt number and performs exactly one
    attempt. A 200 response short-circuits the predicate. Cancellation is
    checked before each attempt and during each backoff sleep and raises
    ``OperationCancelledError`` (or ``DeadlineExceededError``).

    Returns:
        The first successful result, the first result the predicate declines
        to retry, or the last result once attempts are exhausted.
    """
    if policy.max_attempts == 0:
        logger.debug("Retry policy allows zero attempts, nothing to do")
        return AttemptResult()

    predicate = policy.predicate
    last: AttemptResult | None = None
    attempt_number = 0

    async def attempt() -> AttemptResult:
        nonlocal last, attempt_number
        attempt_number += 1

        # A retry supersedes the previous response
        if last is not None and last.response is not None:
            await last.response.aclose()
            last = None

        if policy.cancellation is not None:
            policy.cancellation.raise_if_cancelled()

        result = await action(attempt_number)
        if not result.is_success:
            result = await _classify(result, policy.classification)
        last = result
        return result

    def should_retry(result: AttemptResult) -> bool:
        if result.is_success:
            return False
        return predicate(result.response, result.error)

    def before_sleep(state: RetryCallState) -> None:
        result: AttemptResult = state.outcome.result()  # type: ignore[union-attr]
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            "Attempt %d/%d failed (%s), retrying in %.2fs",
            state.attempt_number,
            policy.max_attempts,
            _describe(result),
            delay,
        )
        metrics_hook.increment(names.RETRY_ATTEMPTS_TOTAL)
        if policy.on_retry is not None:
            policy.on_retry(state.attempt_number, result.response, result.error)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.backoff) + wait_random(0, policy.max_jitter),
        retry=retry_if_result(should_retry),
        before_sleep=before_sleep,
        sleep=partial(sleep_or_cancel, cancellation=policy.cancellation, clock=policy.clock),
        retry_error_callback=lambda state: state.outcome.result(),  # type: ignore[union-attr]
    )

    try:
        return await retrying(attempt)
    except BaseException:
        if last is not None and last.response is not None:
            await last.response.aclose()
        raise
