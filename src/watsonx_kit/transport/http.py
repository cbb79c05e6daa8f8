# src/watsonx_kit/transport/http.py

import logging

import httpx

from watsonx_kit.errors import APIResponseError
from watsonx_kit.observability.base import MetricsHook, NoOpMetricsHook

from .cancellation import CancellationToken
from .retry import AttemptResult, RetryPolicy, retry

logger = logging.getLogger(__name__)


async def read_error_response(response: httpx.Response) -> APIResponseError:
    """Read a non-success response body into an ``APIResponseError``."""
    body = (await response.aread()).decode(errors="replace")
    try:
        payload = response.json()
    except ValueError:
        payload = None
    return APIResponseError.from_body(response.status_code, body, payload)


class Transport:
    """Executes prepared ``httpx.Request`` objects.

    Owns no protocol logic: headers (authorization, content type, accept)
    are set by whoever builds the request and are sent unmodified.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self._client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.metrics_hook = metrics_hook

    async def execute(
        self, request: httpx.Request, *, stream: bool = False
    ) -> httpx.Response:
        """Send once. Whatever httpx returns or raises is passed through."""
        logger.debug("Sending %s %s", request.method, request.url.path)
        return await self._client.send(request, stream=stream)

    async def execute_with_retry(
        self,
        request: httpx.Request,
        *,
        stream: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> httpx.Response:
        """Send under the transport's retry policy.

        Returns the final response; with ``PRESERVE_RESPONSE`` classification
        that response may carry a non-success status. Raises the final error
        otherwise (``StatusError`` in legacy mode, httpx transport errors,
        or the cancellation error).
        """
        result = await self.attempt_with_retry(
            request, stream=stream, cancellation=cancellation
        )
        return result.unwrap()

    async def attempt_with_retry(
        self,
        request: httpx.Request,
        *,
        stream: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> AttemptResult:
        """Like ``execute_with_retry`` but returns the raw (response, error) pair."""
        policy = self.retry_policy
        if cancellation is not None:
            policy = policy.with_cancellation(cancellation)

        async def send(attempt_number: int) -> AttemptResult:
            if attempt_number > 1:
                logger.debug(
                    "Replaying request body for attempt %d of %s",
                    attempt_number,
                    request.url.path,
                )
            # Buffers generator bodies on first use so later attempts replay them
            await request.aread()
            try:
                response = await self.execute(request, stream=stream)
            except httpx.TransportError as e:
                return AttemptResult(error=e)
            return AttemptResult(response=response)

        return await retry(send, policy, self.metrics_hook)
