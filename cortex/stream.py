"""Streaming run consumption.

A streamed run is one HTTP response whose body is an SSE stream of run
events. ``consume`` wraps such a response into a ``StreamedRun`` exposing two
views over the same byte stream:

- ``events``: an async generator of RunEvents, pulled by a single consumer
- ``run_id``: a RunIdHandle settled by the first payload carrying a run id

Usage:
    res = await consume(response)
    if res.is_ok():
        async with res.value as run:
            async for event in run.events:
                ...
            run_id = await run.run_id
"""

import asyncio
from typing import AsyncIterator, Optional

import httpx

from .events import ErrorEvent, RunEvent, classify_payload, extract_run_id, load_payload
from .result import ApiError, Err, Ok, Result
from .sse import SSEDecoder


class RunIdHandle:
    """One-shot cell holding the run id of a streamed run.

    The handle is settled exactly once: either with ``Ok(run_id)`` by the first
    event carrying a run id, or with ``Err`` if the stream is released before
    one arrives. Awaiting the handle returns the settled Result.
    """

    def __init__(self):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    def resolve(self, run_id: str) -> bool:
        """Settle with a run id. Returns False if already settled."""
        if self._future.done():
            return False
        self._future.set_result(Ok(run_id))
        return True

    def fail(self, error: ApiError) -> bool:
        """Settle with an error. Returns False if already settled."""
        if self._future.done():
            return False
        self._future.set_result(Err(error))
        return True

    def done(self) -> bool:
        return self._future.done()

    def result(self) -> Optional[Result[str, ApiError]]:
        """The settled Result, or None while pending."""
        if not self._future.done():
            return None
        return self._future.result()

    def __await__(self):
        # Cancelling one waiter must not cancel the shared future
        return asyncio.shield(self._future).__await__()


class StreamedRun:
    """Event sequence and run id of one streamed run.

    The underlying response is released exactly once, when the event
    sequence is exhausted, fails, or is closed by the consumer. Use it as an
    async context manager (or call ``aclose``) to release it when stopping
    early.
    """

    def __init__(self, response: httpx.Response):
        self.run_id = RunIdHandle()
        self._response = response
        self._decoder = SSEDecoder()
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._released = False
        self.events = self._stream_events()

    async def __aenter__(self) -> "StreamedRun":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def __aiter__(self):
        return self.events

    async def aclose(self):
        """Stop the event sequence and release the response."""
        await self.events.aclose()
        # The generator's own cleanup doesn't run if it was never started
        await self._release()

    async def _stream_events(self) -> AsyncIterator[RunEvent]:
        self._chunks = self._response.aiter_bytes()
        try:
            while True:
                try:
                    chunk = await anext(self._chunks)
                except StopAsyncIteration:
                    break
                except Exception as e:
                    yield ErrorEvent(
                        code="stream_error",
                        message=f"Error streaming chunks: {e}",
                    )
                    break

                for event in self._decode(chunk):
                    yield event
        finally:
            await self._release()

    def _decode(self, chunk: bytes) -> list[RunEvent]:
        """Decode one network chunk into the events it completes."""
        pending = []
        for frame in self._decoder.feed(chunk):
            payload = load_payload(frame.data)
            if payload is None:
                continue

            event = classify_payload(payload)
            if event is not None:
                pending.append(event)

            if run_id := extract_run_id(payload):
                self.run_id.resolve(run_id)
        return pending

    async def _release(self):
        if self._released:
            return
        self._released = True
        try:
            if self._chunks is not None:
                await self._chunks.aclose()
            await self._response.aclose()
        finally:
            self.run_id.fail(
                ApiError(
                    type="runner_api_error",
                    code="no_run_id",
                    message="Stream ended before a run id was received",
                )
            )


async def consume(response: httpx.Response) -> Result[StreamedRun, ApiError]:
    """Wrap a streaming run response into a StreamedRun.

    Args:
        response: Response opened with ``stream=True``

    Returns:
        Ok(StreamedRun), or Err with code ``streamed_run_error`` when the
        status is not a success or the body is no longer readable. In the
        error case the response is closed and no events are decoded.
    """
    if not response.is_success or response.is_stream_consumed or response.is_closed:
        await response.aclose()
        return Err(
            ApiError(
                type="runner_api_error",
                code="streamed_run_error",
                message=f"Error running streamed app: status_code={response.status_code}",
            )
        )
    return Ok(StreamedRun(response))
