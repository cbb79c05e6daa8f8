# tests/unit/transport/test_retry.py

from time import monotonic
from unittest.mock import MagicMock

import httpx
import pytest

from watsonx_kit.errors import (
    ConfigurationError,
    DeadlineExceededError,
    EmptyResultError,
    OperationCancelledError,
    StatusError,
)
from watsonx_kit.observability import names
from watsonx_kit.transport.cancellation import CancellationToken, SystemClock
from watsonx_kit.transport.retry import (
    AttemptResult,
    ErrorClassification,
    RetryPolicy,
    retry,
    retry_on_error,
    retry_on_error_or_status,
    retry_on_status,
)


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, body: bytes = b"") -> None:
        self.body = body
        self.closed = False

    async def __aiter__(self):
        yield self.body

    async def aclose(self) -> None:
        self.closed = True


class ScriptedAction:
    """Attempt callable that replays a fixed sequence of outcomes."""

    def __init__(self, *outcomes: int | BaseException) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[int] = []
        self.responses: list[httpx.Response] = []

    async def __call__(self, attempt_number: int) -> AttemptResult:
        self.calls.append(attempt_number)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            return AttemptResult(error=outcome)
        response = httpx.Response(outcome, stream=TrackingStream())
        self.responses.append(response)
        return AttemptResult(response=response)


def policy(fake_clock, **kwargs) -> RetryPolicy:
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("backoff", 1.0)
    kwargs.setdefault("max_jitter", 0.0)
    return RetryPolicy(clock=fake_clock, **kwargs)


class TestRetryPolicy:
    def test_defaults(self) -> None:
        p = RetryPolicy()
        assert p.max_attempts == 3
        assert p.backoff == 1.0
        assert p.max_jitter == 1.0
        assert p.classification is ErrorClassification.STATUS_AS_ERROR
        assert p.predicate is retry_on_error

    def test_preserving_responses_uses_status_predicate(self) -> None:
        p = RetryPolicy.preserving_responses(max_attempts=5)
        assert p.classification is ErrorClassification.PRESERVE_RESPONSE
        assert p.max_attempts == 5
        assert p.predicate is retry_on_error_or_status

    def test_custom_predicate_wins(self) -> None:
        def never(response, error) -> bool:
            return False

        assert RetryPolicy(should_retry=never).predicate is never

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": -1}, {"backoff": -0.1}, {"max_jitter": -1.0}],
    )
    def test_rejects_negative_values(self, kwargs: dict) -> None:
        with pytest.raises(ConfigurationError):
            RetryPolicy(**kwargs)


class TestPredicates:
    def test_retry_on_status(self) -> None:
        predicate = retry_on_status(429, 503)
        assert predicate(httpx.Response(429), None)
        assert predicate(httpx.Response(503), None)
        assert not predicate(httpx.Response(400), None)
        assert predicate(None, httpx.ConnectError("refused"))

    def test_retry_on_error_or_status(self) -> None:
        assert retry_on_error_or_status(httpx.Response(500), None)
        assert retry_on_error_or_status(httpx.Response(404), None)
        assert not retry_on_error_or_status(httpx.Response(302), None)
        assert retry_on_error_or_status(None, httpx.ReadTimeout("slow"))


class TestAttemptResult:
    def test_unwrap_raises_error(self) -> None:
        err = StatusError(503, "Service Unavailable")
        with pytest.raises(StatusError):
            AttemptResult(error=err).unwrap()

    def test_unwrap_empty(self) -> None:
        with pytest.raises(EmptyResultError):
            AttemptResult().unwrap()

    def test_success_requires_200(self) -> None:
        assert AttemptResult(response=httpx.Response(200)).is_success
        assert not AttemptResult(response=httpx.Response(201)).is_success


class TestRetryLegacy:
    @pytest.mark.asyncio
    async def test_success_short_circuits(self, fake_clock) -> None:
        """A 200 on the first attempt returns without sleeping."""
        action = ScriptedAction(200)
        result = await retry(action, policy(fake_clock))

        assert result.is_success
        assert action.calls == [1]
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausts_attempts_with_status_error(self, fake_clock) -> None:
        """Three 429s yield three attempts, two retry callbacks, and a synthesized error."""
        on_retry = MagicMock()
        action = ScriptedAction(429)

        result = await retry(action, policy(fake_clock, on_retry=on_retry))

        assert action.calls == [1, 2, 3]
        assert on_retry.call_count == 2
        assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]
        assert isinstance(result.error, StatusError)
        assert str(result.error) == "429 Too Many Requests"
        assert result.error.status_code == 429
        assert result.response is None
        assert fake_clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_closes_every_non_success_body(self, fake_clock) -> None:
        action = ScriptedAction(429)
        await retry(action, policy(fake_clock))

        assert len(action.responses) == 3
        assert all(r.stream.closed for r in action.responses)

    @pytest.mark.asyncio
    async def test_recovers_after_failure(self, fake_clock) -> None:
        action = ScriptedAction(503, 200)
        result = await retry(action, policy(fake_clock))

        assert result.is_success
        assert result.response is action.responses[1]
        assert action.responses[0].stream.closed
        assert not action.responses[1].stream.closed

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, fake_clock) -> None:
        action = ScriptedAction(httpx.ConnectError("refused"), 200)
        result = await retry(action, policy(fake_clock))

        assert result.is_success
        assert action.calls == [1, 2]

    @pytest.mark.asyncio
    async def test_transport_error_kept_after_exhaustion(self, fake_clock) -> None:
        action = ScriptedAction(httpx.ConnectError("refused"))
        result = await retry(action, policy(fake_clock, max_attempts=2))

        assert isinstance(result.error, httpx.ConnectError)
        with pytest.raises(httpx.ConnectError):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_zero_attempts(self, fake_clock) -> None:
        action = ScriptedAction(200)
        result = await retry(action, policy(fake_clock, max_attempts=0))

        assert result == AttemptResult()
        assert action.calls == []

    @pytest.mark.asyncio
    async def test_jitter_is_bounded(self, fake_clock) -> None:
        action = ScriptedAction(500)
        await retry(
            action, policy(fake_clock, max_attempts=4, backoff=0.5, max_jitter=0.25)
        )

        assert len(fake_clock.sleeps) == 3
        assert all(0.5 <= s <= 0.75 for s in fake_clock.sleeps)

    @pytest.mark.asyncio
    async def test_records_retry_metric(self, fake_clock) -> None:
        hook = MagicMock()
        await retry(ScriptedAction(500), policy(fake_clock), hook)

        hook.increment.assert_called_with(names.RETRY_ATTEMPTS_TOTAL)
        assert hook.increment.call_count == 2

    @pytest.mark.asyncio
    async def test_real_backoff_elapsed(self) -> None:
        """With the system clock, N attempts take at least (N-1) * backoff."""
        action = ScriptedAction(503)
        p = RetryPolicy(
            max_attempts=3, backoff=0.05, max_jitter=0.0, clock=SystemClock()
        )

        start = monotonic()
        await retry(action, p)
        elapsed = monotonic() - start

        assert action.calls == [1, 2, 3]
        assert elapsed >= 0.1


class TestRetryPreservingResponses:
    @pytest.mark.asyncio
    async def test_returns_last_response_untouched(self, fake_clock) -> None:
        action = ScriptedAction(500)
        p = policy(fake_clock, classification=ErrorClassification.PRESERVE_RESPONSE)

        result = await retry(action, p)

        assert result.error is None
        assert result.response is action.responses[-1]
        assert result.response.status_code == 500
        assert not action.responses[-1].stream.closed
        # Superseded responses are released
        assert action.responses[0].stream.closed
        assert action.responses[1].stream.closed

    @pytest.mark.asyncio
    async def test_predicate_declines_status(self, fake_clock) -> None:
        """A 429 outside the retryable set is handed back after one attempt."""
        action = ScriptedAction(429)
        p = policy(
            fake_clock,
            classification=ErrorClassification.PRESERVE_RESPONSE,
            should_retry=retry_on_status(503),
        )

        result = await retry(action, p)

        assert action.calls == [1]
        assert result.response is not None
        assert result.response.status_code == 429
        assert result.error is None
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_legacy_never_sees_status_in_predicate(self, fake_clock) -> None:
        """Legacy mode hands the predicate a synthesized error and no response."""
        seen: list[tuple] = []

        def record(response, error) -> bool:
            seen.append((response, error))
            return False

        await retry(ScriptedAction(404), policy(fake_clock, should_retry=record))

        assert len(seen) == 1
        response, error = seen[0]
        assert response is None
        assert isinstance(error, StatusError)


class TestRetryCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self, fake_clock) -> None:
        token = CancellationToken(clock=fake_clock)
        token.cancel()
        action = ScriptedAction(200)

        with pytest.raises(OperationCancelledError):
            await retry(action, policy(fake_clock, cancellation=token))

        assert action.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(self, fake_clock) -> None:
        """Cancelling from the retry callback stops before the next attempt."""
        token = CancellationToken(clock=fake_clock)
        action = ScriptedAction(503)

        def cancel_on_retry(attempt, response, error) -> None:
            token.cancel("stop now")

        p = policy(fake_clock, max_attempts=5, on_retry=cancel_on_retry, cancellation=token)
        with pytest.raises(OperationCancelledError, match="stop now"):
            await retry(action, p)

        assert action.calls == [1]

    @pytest.mark.asyncio
    async def test_deadline_interrupts_long_backoff(self) -> None:
        """A real deadline shorter than the backoff ends the wait early."""
        token = CancellationToken(timeout=0.05)
        action = ScriptedAction(503)
        p = RetryPolicy(max_attempts=3, backoff=5.0, max_jitter=0.0, cancellation=token)

        start = monotonic()
        with pytest.raises(DeadlineExceededError):
            await retry(action, p)

        assert monotonic() - start < 2.0
        assert action.calls == [1]

    @pytest.mark.asyncio
    async def test_deadline_on_virtual_clock(self, fake_clock) -> None:
        token = CancellationToken(timeout=2.5, clock=fake_clock)
        action = ScriptedAction(503)
        p = policy(fake_clock, max_attempts=10, cancellation=token)

        with pytest.raises(DeadlineExceededError):
            await retry(action, p)

        assert action.calls == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_closes_pending_response_when_cancelled(self, fake_clock) -> None:
        token = CancellationToken(clock=fake_clock)
        action = ScriptedAction(500)

        def cancel_on_retry(attempt, response, error) -> None:
            token.cancel()

        p = policy(
            fake_clock,
            classification=ErrorClassification.PRESERVE_RESPONSE,
            on_retry=cancel_on_retry,
            cancellation=token,
        )
        with pytest.raises(OperationCancelledError):
            await retry(action, p)

        assert action.responses[0].stream.closed
