# src/watsonx_kit/streaming.py

"""Incremental decoding of event-stream generation responses.

A ``TextStream`` owns one background task that opens the streaming request,
reads the body line by line and pushes each partial result onto a bounded
channel that the caller drains with ``async for``. The channel is closed
(iteration stops) when the body is exhausted, on the first error, or when
the stream is cancelled.

States::

    IDLE -> CONNECTING -> STREAMING -> DRAINING -> CLOSED
                 \\             \\
                  +-> ERRORED <-+
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

import httpx
from pydantic import ValidationError

from watsonx_kit.errors import DecodeError, OperationCancelledError
from watsonx_kit.llms.generation import GenerateTextResponse, GenerateTextResult
from watsonx_kit.observability import names
from watsonx_kit.observability.base import MetricsHook, NoOpMetricsHook
from watsonx_kit.transport.cancellation import CancellationToken
from watsonx_kit.transport.http import read_error_response

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"

_END_OF_STREAM = object()


class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"
    ERRORED = "errored"


def decode_event_line(line: str) -> GenerateTextResponse | None:
    """Decode one event-stream line.

    Returns None for lines without the ``data:`` prefix (comments, ids,
    event names, keep-alives).

    Raises:
        DecodeError: the data payload is not a valid generation envelope.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :]
    if payload.startswith(" "):
        payload = payload[1:]
    try:
        return GenerateTextResponse.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(f"malformed stream frame: {payload[:200]!r}") from e


class TextStream:
    """Async iterator of ``GenerateTextResult`` from a streaming generation.

    Results arrive in server emission order. Use as an async context manager
    (or call ``aclose()``) to stop early; leaving the context cancels the
    decode task and releases the connection. After iteration ends, ``error``
    holds the reason if the stream did not finish cleanly.

    Example:
        >>> async with await client.generate_text_stream(model, prompt) as stream:
        ...     async for result in stream:
        ...         print(result.generated_text, end="")
    """

    def __init__(
        self,
        open_response: Callable[[], Awaitable[httpx.Response]],
        *,
        cancellation: CancellationToken | None = None,
        buffer_size: int = 16,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self._open_response = open_response
        self._cancellation = cancellation
        self.metrics_hook = metrics_hook
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        # Bounds the results waiting in the queue; the end marker is exempt
        self._slots = asyncio.Semaphore(buffer_size)
        self._state = StreamState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._delivered = 0
        self._channel_closed = False
        self.error: BaseException | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state in (StreamState.CLOSED, StreamState.ERRORED)

    def start(self) -> "TextStream":
        if self._task is not None:
            raise RuntimeError("stream already started")
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._on_task_done)
        if self._cancellation is not None:
            self._watcher = asyncio.create_task(
                self._watch_cancellation(self._cancellation)
            )
        return self

    def __aiter__(self) -> "TextStream":
        return self

    async def __anext__(self) -> GenerateTextResult:
        item = await self._queue.get()
        if item is _END_OF_STREAM:
            # Keep the channel closed for any later reads
            self._queue.put_nowait(_END_OF_STREAM)
            raise StopAsyncIteration
        self._slots.release()
        return item  # type: ignore[return-value]

    async def __aenter__(self) -> "TextStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def collect(self) -> list[GenerateTextResult]:
        """Drain the stream into a list."""
        return [result async for result in self]

    async def aclose(self) -> None:
        """Stop decoding and release the connection. Safe to call repeatedly."""
        for task in (self._task, self._watcher):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._task, self._watcher):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    async def _watch_cancellation(self, cancellation: CancellationToken) -> None:
        await cancellation.wait()
        if self._task is not None and not self._task.done():
            logger.debug("Cancellation fired, stopping stream")
            self._task.cancel()

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        # A task cancelled before its first step never runs its own cleanup
        if self._channel_closed:
            return
        if self.error is None:
            self.error = self._cancelled_error()
        self._transition(StreamState.CLOSED)
        self._close_channel()
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()

    def _cancelled_error(self) -> OperationCancelledError:
        if self._cancellation is not None:
            err = self._cancellation.error()
            if err is not None:
                return err
        return OperationCancelledError("stream closed by consumer")

    def _close_channel(self) -> None:
        self._channel_closed = True
        self._queue.put_nowait(_END_OF_STREAM)

    def _transition(self, state: StreamState) -> None:
        logger.debug("Stream %s -> %s", self._state.value, state.value)
        self._state = state

    async def _run(self) -> None:
        response: httpx.Response | None = None
        try:
            self._transition(StreamState.CONNECTING)
            if self._cancellation is not None:
                self._cancellation.raise_if_cancelled()
            response = await self._open_response()
            if response.status_code != httpx.codes.OK:
                raise await read_error_response(response)

            self._transition(StreamState.STREAMING)
            async for line in response.aiter_lines():
                envelope = decode_event_line(line)
                if envelope is None:
                    continue
                for result in envelope.results:
                    await self._slots.acquire()
                    self._queue.put_nowait(result)
                    self._delivered += 1

            self._transition(StreamState.DRAINING)
        except asyncio.CancelledError:
            self.error = self._cancelled_error()
            raise
        except OperationCancelledError as e:
            self.error = e
        except Exception as e:
            self.error = e
            self._transition(StreamState.ERRORED)
            self.metrics_hook.increment(names.STREAM_ERRORS_TOTAL)
            logger.error("Generation stream failed: %s", e)
        finally:
            if response is not None:
                await response.aclose()
            if self._state is not StreamState.ERRORED:
                self._transition(StreamState.CLOSED)
            self.metrics_hook.increment(names.STREAM_RESULTS_TOTAL, self._delivered)
            self._close_channel()
            if self._watcher is not None and not self._watcher.done():
                self._watcher.cancel()
