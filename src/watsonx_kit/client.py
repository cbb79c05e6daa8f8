# src/watsonx_kit/client.py

import logging
import time
from collections.abc import Callable
from time import monotonic
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from watsonx_kit.auth.cache import CredentialCache
from watsonx_kit.auth.credential import BearerCredential
from watsonx_kit.auth.issuer import TokenIssuer
from watsonx_kit.config import ClientConfig
from watsonx_kit.embeddings.base import EmbeddingOptions, EmbeddingResponse
from watsonx_kit.errors import ConfigurationError, DecodeError, EmptyResultError
from watsonx_kit.llms.chat import ChatMessage, ChatOptions, ChatResponse, user_message
from watsonx_kit.llms.generation import (
    GenerateOptions,
    GenerateTextResponse,
    GenerateTextResult,
)
from watsonx_kit.observability import names
from watsonx_kit.observability.base import MetricsHook, NoOpMetricsHook
from watsonx_kit.streaming import TextStream
from watsonx_kit.transport.cancellation import CancellationToken
from watsonx_kit.transport.http import Transport, read_error_response

logger = logging.getLogger(__name__)

GENERATE_PATH = "/ml/v1/text/generation"
GENERATE_STREAM_PATH = "/ml/v1/text/generation_stream"
CHAT_PATH = "/ml/v1/text/chat"
EMBEDDINGS_PATH = "/ml/v1/text/embeddings"

JSON_CONTENT_TYPE = "application/json"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class WatsonxClient:
    """Async client for watsonx.ai text generation, chat and embeddings.

    Holds one HTTP connection pool, one bearer credential and one retry
    policy. The credential is issued lazily on the first call and refreshed
    whenever it has expired.

    Example:
        >>> config = ClientConfig.from_env()
        >>> async with WatsonxClient(config) as client:
        ...     result = await client.generate_text(
        ...         ModelType.GRANITE_3_8B_INSTRUCT, "Say hello"
        ...     )
        ...     print(result.text)
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.metrics_hook = metrics_hook
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._transport = Transport(self._http, config.retry_policy, metrics_hook)
        self._credentials = CredentialCache(
            TokenIssuer(self._http, config.api_key, config.iam_host, metrics_hook),
            clock=clock,
        )
        logger.info(
            "Initialized WatsonxClient with url=%s, api_version=%s",
            config.base_url,
            config.api_version,
        )

    async def __aenter__(self) -> "WatsonxClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the connection pool unless it was supplied by the caller."""
        if self._owns_http_client:
            await self._http.aclose()

    @property
    def credentials(self) -> CredentialCache:
        return self._credentials

    async def refresh_token(self) -> BearerCredential:
        """Issue a new bearer token regardless of the cached one's expiry."""
        return await self._credentials.refresh()

    # ------------------------------------------------------------------
    # Text generation
    # ------------------------------------------------------------------

    async def generate_text(
        self,
        model_id: str,
        prompt: str,
        options: GenerateOptions | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> GenerateTextResult:
        """Generate text and return the first result.

        Raises:
            ConfigurationError: empty model id or prompt (no request is sent).
            EmptyResultError: the response carried no results.
        """
        payload = self._generation_payload(model_id, prompt, options)
        response = await self._post(
            "generate",
            GENERATE_PATH,
            payload,
            GenerateTextResponse,
            model_id=model_id,
            cancellation=cancellation,
        )
        if not response.results:
            raise EmptyResultError("no result received")

        result = response.results[0]
        self._record_tokens(
            "generate", result.input_token_count, result.generated_token_count
        )
        return result

    async def generate_text_stream(
        self,
        model_id: str,
        prompt: str,
        options: GenerateOptions | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> TextStream:
        """Start a streaming generation and return its running ``TextStream``.

        Arguments are validated before anything is started. Connection,
        status and decode failures are reported through ``TextStream.error``
        once iteration ends.
        """
        payload = self._generation_payload(model_id, prompt, options)
        labels = {"operation": "generate_stream", "model": model_id}

        async def open_response() -> httpx.Response:
            credential = await self._credentials.ensure_valid()
            request = self._build_request(
                GENERATE_STREAM_PATH,
                payload,
                credential,
                accept=EVENT_STREAM_CONTENT_TYPE,
            )
            self.metrics_hook.increment(names.REQUESTS_TOTAL, labels=labels)
            return await self._transport.execute(request, stream=True)

        logger.debug("Starting generation stream: model=%s", model_id)
        stream = TextStream(
            open_response,
            cancellation=cancellation,
            buffer_size=self.config.stream_buffer_size,
            metrics_hook=self.metrics_hook,
        )
        return stream.start()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        model_id: str,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> ChatResponse:
        """Send a conversation and return the full chat response.

        Raises:
            ConfigurationError: empty model id or message list.
            EmptyResultError: the response carried no choices.
        """
        if not model_id:
            raise ConfigurationError("model_id cannot be empty")
        if not messages:
            raise ConfigurationError("messages cannot be empty")

        payload: dict[str, Any] = {
            "model_id": model_id,
            "messages": [m.to_payload() for m in messages],
            **self.config.scope,
        }
        if options is not None:
            payload.update(options.to_payload())

        logger.debug("Calling chat: model=%s, messages=%d", model_id, len(messages))
        response = await self._post(
            "chat",
            CHAT_PATH,
            payload,
            ChatResponse,
            model_id=model_id,
            cancellation=cancellation,
        )
        if not response.choices:
            raise EmptyResultError("no choices received in response")

        if response.usage is not None:
            self._record_tokens(
                "chat", response.usage.prompt_tokens, response.usage.completion_tokens
            )
        return response

    async def simple_chat(
        self,
        model_id: str,
        prompt: str,
        options: ChatOptions | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> str:
        """Single user turn in, text of the first choice out."""
        response = await self.chat(
            model_id, [user_message(prompt)], options, cancellation=cancellation
        )
        message = response.choices[0].message
        if message is None:
            raise EmptyResultError("no message in response")
        if not message.text:
            raise EmptyResultError("no text content in response")
        return message.text

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def embed_documents(
        self,
        model_id: str,
        texts: list[str],
        options: EmbeddingOptions | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> EmbeddingResponse:
        """Embed a batch of texts. Results come back in input order."""
        if not model_id:
            raise ConfigurationError("model_id cannot be empty")
        if not texts:
            raise ConfigurationError("texts cannot be empty")

        payload: dict[str, Any] = {
            "model_id": model_id,
            "inputs": texts,
            **self.config.scope,
        }
        if options is not None:
            payload["parameters"] = options.to_payload()

        self.metrics_hook.record_gauge(
            names.EMBEDDINGS_BATCH_SIZE, len(texts), labels={"model": model_id}
        )
        response = await self._post(
            "embed",
            EMBEDDINGS_PATH,
            payload,
            EmbeddingResponse,
            model_id=model_id,
            cancellation=cancellation,
        )
        if not response.results:
            raise EmptyResultError("no result received")

        self._record_tokens("embed", response.input_token_count, 0)
        logger.info("Embedded %d texts with %s", len(response.results), model_id)
        return response

    async def embed_query(
        self,
        model_id: str,
        text: str,
        options: EmbeddingOptions | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> list[float]:
        response = await self.embed_documents(
            model_id, [text], options, cancellation=cancellation
        )
        return response.results[0].embedding

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _generation_payload(
        self, model_id: str, prompt: str, options: GenerateOptions | None
    ) -> dict[str, Any]:
        if not model_id:
            raise ConfigurationError("model_id cannot be empty")
        if not prompt:
            raise ConfigurationError("prompt cannot be empty")

        payload: dict[str, Any] = {
            "model_id": model_id,
            "input": prompt,
            **self.config.scope,
        }
        if options is not None:
            payload["parameters"] = options.to_payload()
        return payload

    def _build_request(
        self,
        path: str,
        payload: dict[str, Any],
        credential: BearerCredential,
        *,
        accept: str = JSON_CONTENT_TYPE,
    ) -> httpx.Request:
        return self._http.build_request(
            "POST",
            self.config.base_url + path,
            params={"version": self.config.api_version},
            json=payload,
            headers={
                "Content-Type": JSON_CONTENT_TYPE,
                "Accept": accept,
                "Authorization": credential.authorization,
            },
        )

    async def _post(
        self,
        operation: str,
        path: str,
        payload: dict[str, Any],
        response_model: type[ResponseT],
        *,
        model_id: str,
        cancellation: CancellationToken | None,
    ) -> ResponseT:
        start = monotonic()
        labels = {"operation": operation, "model": model_id}

        try:
            credential = await self._credentials.ensure_valid()
            request = self._build_request(path, payload, credential)
            response = await self._transport.execute_with_retry(
                request, cancellation=cancellation
            )
            try:
                if response.status_code != httpx.codes.OK:
                    raise await read_error_response(response)
                body = await response.aread()
            finally:
                await response.aclose()

            try:
                decoded = response_model.model_validate_json(body)
            except ValidationError as e:
                raise DecodeError(f"failed to decode {operation} response: {e}") from e
        except Exception as e:
            self.metrics_hook.increment(names.REQUEST_ERRORS_TOTAL, labels=labels)
            logger.debug("%s request failed: %s", operation, e)
            raise

        elapsed_ms = 1000 * (monotonic() - start)
        self.metrics_hook.record_latency(names.REQUEST_DURATION, elapsed_ms, labels=labels)
        self.metrics_hook.increment(names.REQUESTS_TOTAL, labels=labels)
        logger.info("watsonx %s: model=%s, latency=%.0fms", operation, model_id, elapsed_ms)
        return decoded

    def _record_tokens(self, operation: str, input_tokens: int, generated: int) -> None:
        labels = {"operation": operation}
        self.metrics_hook.increment(names.TOKENS_INPUT, input_tokens, labels=labels)
        if generated:
            self.metrics_hook.increment(names.TOKENS_GENERATED, generated, labels=labels)
