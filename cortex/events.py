"""Run events streamed by the Cortex runner.

Each SSE ``data:`` line of a streamed run carries a JSON object of the form
``{"type": ..., "content": {...}}``. This module turns those payloads into
one of six immutable event types:

- ErrorEvent: the runner reported an error
- RunStatusEvent: overall run status, carries the run id
- BlockStatusEvent: progress of one block
- BlockExecutionEvent: results of one block
- TokensEvent: incremental model output
- FinalEvent: the run is over

Example:
    >>> event = parse_run_event('{"type": "tokens", "content": {...}}')
    >>> event.type
    'tokens'
"""

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

RUN_STATUSES = ("running", "succeeded", "errored")


def _str(content: dict, key: str) -> str:
    value = content[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _int(content: dict, key: str) -> int:
    value = content.get(key, 0)
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{key} must be an integer, got {type(value).__name__}")
    return value


def _tuple(content: dict, key: str) -> Optional[tuple]:
    value = content.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise TypeError(f"{key} must be a list, got {type(value).__name__}")
    return tuple(value)


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"

    code: str
    message: str

    @classmethod
    def from_content(cls, content: dict) -> "ErrorEvent":
        return cls(code=str(content.get("code", "")), message=str(content.get("message", "")))


@dataclass(frozen=True)
class RunStatusEvent:
    type: ClassVar[str] = "run_status"

    status: str
    run_id: str

    @classmethod
    def from_content(cls, content: dict) -> "RunStatusEvent":
        status = _str(content, "status")
        if status not in RUN_STATUSES:
            raise ValueError(f"Unknown run status: {status}")
        return cls(status=status, run_id=_str(content, "run_id"))


@dataclass(frozen=True)
class BlockStatusEvent:
    type: ClassVar[str] = "block_status"

    block_type: str
    name: str
    status: str
    success_count: int = 0
    error_count: int = 0

    @classmethod
    def from_content(cls, content: dict) -> "BlockStatusEvent":
        return cls(
            block_type=_str(content, "block_type"),
            name=_str(content, "name"),
            status=_str(content, "status"),
            success_count=_int(content, "success_count"),
            error_count=_int(content, "error_count"),
        )


@dataclass(frozen=True)
class ExecutionTrace:
    """Value or error produced by one block execution."""

    value: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BlockExecutionEvent:
    type: ClassVar[str] = "block_execution"

    block_type: str
    block_name: str
    execution: tuple[tuple[ExecutionTrace, ...], ...]

    @classmethod
    def from_content(cls, content: dict) -> "BlockExecutionEvent":
        execution = content.get("execution") or []
        if not isinstance(execution, list):
            raise TypeError("execution must be a list")
        rows = []
        for row in execution:
            if not isinstance(row, list):
                raise TypeError("execution rows must be lists")
            rows.append(
                tuple(
                    ExecutionTrace(value=trace.get("value"), error=trace.get("error"))
                    for trace in row
                )
            )
        return cls(
            block_type=_str(content, "block_type"),
            block_name=_str(content, "block_name"),
            execution=tuple(rows),
        )

    @property
    def first(self) -> Optional[ExecutionTrace]:
        """The first trace of the first input, if any."""
        if self.execution and self.execution[0]:
            return self.execution[0][0]
        return None


@dataclass(frozen=True)
class BlockMap:
    name: str
    iteration: int


@dataclass(frozen=True)
class Tokens:
    text: str
    tokens: Optional[tuple[str, ...]] = None
    logprobs: Optional[tuple[float, ...]] = None


@dataclass(frozen=True)
class TokensEvent:
    type: ClassVar[str] = "tokens"

    block_type: str
    block_name: str
    input_index: int
    tokens: Tokens
    map: Optional[BlockMap] = None

    @classmethod
    def from_content(cls, content: dict) -> "TokensEvent":
        tokens = content["tokens"]
        block_map = content.get("map")
        return cls(
            block_type=_str(content, "block_type"),
            block_name=_str(content, "block_name"),
            input_index=_int(content, "input_index"),
            tokens=Tokens(
                text=_str(tokens, "text"),
                tokens=_tuple(tokens, "tokens"),
                logprobs=_tuple(tokens, "logprobs"),
            ),
            map=(
                BlockMap(name=_str(block_map, "name"), iteration=_int(block_map, "iteration"))
                if block_map
                else None
            ),
        )


@dataclass(frozen=True)
class FinalEvent:
    type: ClassVar[str] = "final"

    @classmethod
    def from_content(cls, content: dict) -> "FinalEvent":
        return cls()


RunEvent = Union[
    ErrorEvent,
    RunStatusEvent,
    BlockStatusEvent,
    BlockExecutionEvent,
    TokensEvent,
    FinalEvent,
]

EVENT_TYPES: dict[str, type] = {
    cls.type: cls
    for cls in (
        ErrorEvent,
        RunStatusEvent,
        BlockStatusEvent,
        BlockExecutionEvent,
        TokensEvent,
        FinalEvent,
    )
}


def load_payload(data: str) -> Optional[dict]:
    """Parse an SSE data string into a JSON object, or None if it is not one."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, TypeError):
        return None
    return payload if isinstance(payload, dict) else None


def extract_run_id(payload: dict) -> Optional[str]:
    """Get ``content.run_id`` from any payload that carries a non-empty one."""
    content = payload.get("content")
    if isinstance(content, dict):
        run_id = content.get("run_id")
        if run_id and isinstance(run_id, str):
            return run_id
    return None


def classify_payload(payload: dict) -> Optional[RunEvent]:
    """Build a RunEvent from a decoded payload.

    Unknown ``type`` values and payloads whose fields don't match the event
    shape return None. An ``error`` payload always yields an ErrorEvent.
    """
    kind = payload.get("type")
    event_cls = EVENT_TYPES.get(kind) if isinstance(kind, str) else None
    if event_cls is None:
        return None
    content = payload.get("content")
    if content is None and event_cls is FinalEvent:
        content = {}
    elif event_cls is ErrorEvent and not isinstance(content, dict):
        # An upstream error is never dropped, whatever its shape
        content = {"message": content} if isinstance(content, str) else {}
    if not isinstance(content, dict):
        return None
    try:
        return event_cls.from_content(content)
    except (KeyError, TypeError, ValueError, AttributeError):
        return None


def parse_run_event(data: str) -> Optional[RunEvent]:
    """Parse one SSE data string into a RunEvent.

    Args:
        data: The frame's data field

    Returns:
        The event, or None for non-JSON data, unknown types and malformed
        payloads.
    """
    payload = load_payload(data)
    if payload is None:
        return None
    return classify_payload(payload)
