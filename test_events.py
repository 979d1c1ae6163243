"""Tests for run event classification.

Run:
    pytest test_events.py -v
"""

import json

import pytest

from conftest import FINAL, block_execution, block_status, error, run_status, tokens
from cortex.events import (
    BlockExecutionEvent,
    BlockMap,
    BlockStatusEvent,
    ErrorEvent,
    ExecutionTrace,
    FinalEvent,
    RunStatusEvent,
    Tokens,
    TokensEvent,
    extract_run_id,
    parse_run_event,
)


def parse(payload: dict):
    return parse_run_event(json.dumps(payload))


class TestClassification:
    """Each known payload type maps to its event."""

    def test_error(self):
        assert parse(error("bad_input", "nope")) == ErrorEvent(code="bad_input", message="nope")

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"type": "error"}, ErrorEvent(code="", message="")),
            ({"type": "error", "content": None}, ErrorEvent(code="", message="")),
            ({"type": "error", "content": [1]}, ErrorEvent(code="", message="")),
            (
                {"type": "error", "content": "rate limited"},
                ErrorEvent(code="", message="rate limited"),
            ),
            ({"type": "error", "content": {"code": "x"}}, ErrorEvent(code="x", message="")),
        ],
    )
    def test_error_of_any_shape_is_kept(self, payload, expected):
        assert parse(payload) == expected

    def test_run_status(self):
        event = parse(run_status("running", "r1"))
        assert event == RunStatusEvent(status="running", run_id="r1")
        assert event.type == "run_status"

    def test_block_status(self):
        event = parse(block_status("RETRIEVALS", "errored"))
        assert event == BlockStatusEvent(
            block_type="chat",
            name="RETRIEVALS",
            status="errored",
            success_count=0,
            error_count=1,
        )

    def test_block_execution(self):
        event = parse(block_execution("OUTPUT", value={"role": "assistant"}))
        assert isinstance(event, BlockExecutionEvent)
        assert event.block_name == "OUTPUT"
        assert event.first == ExecutionTrace(value={"role": "assistant"}, error=None)

    def test_block_execution_without_results(self):
        payload = block_execution("OUTPUT")
        payload["content"]["execution"] = []
        assert parse(payload).first is None

    def test_tokens(self):
        payload = tokens("Hel")
        payload["content"]["map"] = {"name": "LOOP", "iteration": 2}
        payload["content"]["tokens"]["logprobs"] = [-0.5]
        assert parse(payload) == TokensEvent(
            block_type="chat",
            block_name="MODEL",
            input_index=0,
            tokens=Tokens(text="Hel", tokens=None, logprobs=(-0.5,)),
            map=BlockMap(name="LOOP", iteration=2),
        )

    def test_final_has_no_content(self):
        assert parse(FINAL) == FinalEvent()
        assert parse({"type": "final", "content": {"run_id": "r1"}}) == FinalEvent()

    def test_events_are_immutable(self):
        event = parse(tokens("x"))
        with pytest.raises(AttributeError):
            event.block_name = "OTHER"


class TestDroppedPayloads:
    """Anything that is not a well-formed known event yields None."""

    @pytest.mark.parametrize(
        "data",
        [
            "not-json",
            "",
            "[DONE]",
            "[1, 2]",
            '"just a string"',
            '{"type": "unknown", "content": {}}',
            '{"content": {"run_id": "r1"}}',
            '{"type": ["tokens"]}',
        ],
    )
    def test_non_events(self, data):
        assert parse_run_event(data) is None

    def test_missing_content(self):
        assert parse({"type": "tokens"}) is None
        assert parse({"type": "run_status", "content": "running"}) is None

    def test_wrong_field_types(self):
        payload = tokens("x")
        payload["content"]["tokens"]["text"] = 42
        assert parse(payload) is None

    @pytest.mark.parametrize("key", ["tokens", "logprobs"])
    def test_token_lists_must_be_lists(self, key):
        payload = tokens("x")
        payload["content"]["tokens"][key] = "abc"
        assert parse(payload) is None

    def test_unknown_run_status(self):
        assert parse(run_status("paused")) is None

    def test_malformed_execution(self):
        payload = block_execution("OUTPUT")
        payload["content"]["execution"] = ["not a row"]
        assert parse(payload) is None


class TestRunIdExtraction:
    """The run id may ride on any payload type."""

    def test_run_status_carries_run_id(self):
        assert extract_run_id(run_status("running", "r1")) == "r1"

    def test_any_type_can_carry_run_id(self):
        payload = tokens("x")
        payload["content"]["run_id"] = "r2"
        assert extract_run_id(payload) == "r2"
        assert extract_run_id({"type": "mystery", "content": {"run_id": "r3"}}) == "r3"

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "final"},
            {"type": "run_status", "content": {"run_id": ""}},
            {"type": "run_status", "content": "r1"},
            tokens("x"),
        ],
    )
    def test_no_run_id(self, payload):
        assert extract_run_id(payload) is None
