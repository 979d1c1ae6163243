"""Chat completion over a streamed copilot run.

``reduce_chat_events`` folds the run events of one copilot turn into the
assistant's reply; ``ChatRunner`` wraps a CortexClient to run whole turns.

Example:
    >>> from cortex import ChatRunner
    >>> runner = ChatRunner(client, copilot_id="cop-1")
    >>> res = await runner.run("1", [], "What is in my notes?", "proj-1", "notes")
    >>> print(res.value.response.content)
"""

from contextlib import aclosing
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Optional

from .events import RunEvent
from .models import ChatCompletion, Message, RetrievedDocument
from .result import ApiError, Err, Ok, Result

RETRIEVALS_BLOCK = "RETRIEVALS"
OUTPUT_STREAM_BLOCK = "OUTPUT_STREAM"
OUTPUT_BLOCK = "OUTPUT"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_user_message(user_input: str) -> Message:
    return Message(role="user", content=user_input, retrievals=[], updated_at=_now())


def _retrievals(value) -> Optional[list[RetrievedDocument]]:
    if not isinstance(value, list):
        return None
    return [RetrievedDocument.from_dict(d) for d in value if isinstance(d, dict)]


def _output_message(value) -> Message:
    if isinstance(value, Message):
        return value
    if isinstance(value, dict):
        return Message.from_dict(value)
    return Message(role="assistant", content=str(value), updated_at=_now())


def _event_error(message: str, event: RunEvent) -> Err[ApiError]:
    return Err(
        ApiError(
            type="runChatCompletion",
            code="eventStream_error",
            message=message,
            event=event,
        )
    )


async def reduce_chat_events(
    events: AsyncGenerator[RunEvent, None],
    messages: list[Message],
    user_input: Optional[str] = None,
    on_event: Optional[Callable[[RunEvent], None]] = None,
) -> Result[ChatCompletion, ApiError]:
    """Fold the events of one copilot run into a chat completion.

    - tokens: appended to the assistant content, across all blocks
    - error: aborts with an eventStream_error; the turn is discarded
    - run_status "errored": stops reading, keeps what was accumulated
    - block_execution: RETRIEVALS sets the retrievals, an OUTPUT_STREAM
      error aborts, OUTPUT appends its value to the transcript

    Args:
        events: Event sequence of the run; closed before returning
        messages: Transcript before this turn (not modified)
        user_input: If given, appended to the new transcript as a user message
        on_event: Observer called with every event, including ignored ones

    Returns:
        Ok(ChatCompletion) or Err(ApiError)
    """
    transcript = list(messages)
    if user_input is not None:
        transcript.append(new_user_message(user_input))

    response = Message(role="assistant", content="", retrievals=None, updated_at=_now())

    async with aclosing(events):
        async for event in events:
            if on_event is not None:
                on_event(event)

            if event.type == "tokens":
                response.content += event.tokens.text

            elif event.type == "error":
                return _event_error(
                    f"Error running event: {event.code}: {event.message}", event
                )

            elif event.type == "run_status":
                # Partial output is kept on a failed run
                if event.status == "errored":
                    break

            elif event.type == "block_execution":
                trace = event.first
                if trace is None:
                    continue
                if event.block_name == RETRIEVALS_BLOCK and not trace.error:
                    response.retrievals = _retrievals(trace.value)
                elif event.block_name == OUTPUT_STREAM_BLOCK and trace.error:
                    return _event_error(
                        f"Model block {event.block_name} failed: {trace.error}", event
                    )
                elif event.block_name == OUTPUT_BLOCK and not trace.error:
                    transcript.append(_output_message(trace.value))

    response.updated_at = _now()
    return Ok(ChatCompletion(messages=transcript, response=response))


class ChatRunner:
    """Runner for chat turns against a copilot.

    Attributes:
        client: CortexClient used to start the copilot runs
        copilot_id: Copilot to chat with
        verbose: Whether to print debug output
    """

    def __init__(self, client, copilot_id: str, verbose: bool = False):
        self.client = client
        self.copilot_id = copilot_id
        self.verbose = verbose

    def _log(self, *args, **kwargs):
        """Print if verbose mode is enabled."""
        if self.verbose:
            print(*args, **kwargs)

    def _log_event(self, event: RunEvent):
        if event.type == "tokens":
            return
        if event.type == "block_status":
            self._log(f"  BLOCK: {event.name} {event.status}")
        elif event.type == "run_status":
            self._log(f"  RUN: {event.run_id} {event.status}")
        else:
            self._log(f"  EVENT: {event.type}")

    async def run(
        self,
        version: str,
        messages: list[Message],
        user_input: str,
        project_id: str,
        knowledge_name: str,
    ) -> Result[ChatCompletion, ApiError]:
        """Run one chat turn.

        Args:
            version: Copilot version to run
            messages: Conversation so far (not modified)
            user_input: New user message
            project_id: Project owning the knowledge base
            knowledge_name: Knowledge base used for retrievals

        Returns:
            Ok(ChatCompletion) with the new transcript and assistant reply,
            or Err(ApiError)
        """
        self._log(f"\n>>> USER: {user_input}")

        params = self.client.create_chat_param(
            version, messages, user_input, project_id, knowledge_name
        )
        res = await self.client.run_chat_copilot(self.copilot_id, params)
        if res.is_err():
            self._log(f"ERROR: {res.error.code}: {res.error.message}")
            return res

        result = await reduce_chat_events(
            res.value.events,
            messages,
            user_input=user_input,
            on_event=self._log_event,
        )

        if result.is_err():
            self._log(f"ERROR: {result.error.code}: {result.error.message}")
        else:
            content = result.value.response.content
            if len(content) > 100:
                self._log(f"<<< ASSISTANT: {content[:100]}...")
            else:
                self._log(f"<<< ASSISTANT: {content}")

        return result
