"""Cortex HTTP/SSE client package.

This package provides the client-side interface for the Cortex SDK API:
knowledge base documents, callables, and chat copilots streamed over
Server-Sent Events (SSE).

Quick Start:
    >>> from cortex import CortexClient
    >>>
    >>> async with CortexClient(api_key="sk-...", user_id="u-1") as client:
    ...     res = await client.run_chat_completion(
    ...         "1", [], "What is in my notes?", "proj-1", "notes", "cop-1"
    ...     )
    ...     if res.is_ok():
    ...         print(res.value.response.content)

Classes:
    CortexClient: Async HTTP client for the Cortex SDK API
    ChatRunner: High-level interface for running chat turns
    StreamedRun: Event sequence and run id of one streamed run
    Ok, Err, ApiError: Explicit results returned by every call
"""

from .config import CortexConfig, get_config
from .events import (
    BlockExecutionEvent,
    BlockStatusEvent,
    ErrorEvent,
    FinalEvent,
    RunEvent,
    RunStatusEvent,
    TokensEvent,
    parse_run_event,
)
from .http import CortexClient
from .models import (
    CallableParams,
    ChatCompletion,
    ChatParams,
    CreateDocument,
    Document,
    DocumentUpload,
    Knowledge,
    Message,
    RetrievedDocument,
    Run,
)
from .result import ApiError, Err, Ok, Result
from .runner import ChatRunner, reduce_chat_events
from .sse import SSEDecoder, SSEFrame
from .stream import RunIdHandle, StreamedRun, consume

__all__ = [
    "CortexClient",
    "ChatRunner",
    "CortexConfig",
    "get_config",
    "StreamedRun",
    "RunIdHandle",
    "consume",
    "reduce_chat_events",
    "SSEDecoder",
    "SSEFrame",
    "RunEvent",
    "ErrorEvent",
    "RunStatusEvent",
    "BlockStatusEvent",
    "BlockExecutionEvent",
    "TokensEvent",
    "FinalEvent",
    "parse_run_event",
    "Message",
    "RetrievedDocument",
    "ChatCompletion",
    "Document",
    "CreateDocument",
    "DocumentUpload",
    "Knowledge",
    "Run",
    "CallableParams",
    "ChatParams",
    "Ok",
    "Err",
    "ApiError",
    "Result",
]
