"""Explicit success/failure values for the Cortex client.

Every network-facing call returns either ``Ok`` or ``Err`` instead of raising,
so callers branch on the outcome:

    >>> res = await client.get_document("notes", "doc-1")
    >>> if res.is_err():
    ...     print(res.error.code)
    ... else:
    ...     print(res.value.document_id)
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass
class ApiError:
    """Error payload shared by every Cortex API surface.

    Attributes:
        type: Error family (api_error, runner_api_error, runChatCompletion, ...)
        code: Machine-readable code (streamed_run_error, eventStream_error, ...)
        message: Human-readable description
        event: The run event that triggered the error, if any
    """

    type: str
    code: str
    message: str
    event: Optional[Any] = None


@dataclass
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False


@dataclass
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True


Result = Union[Ok[T], Err[E]]
