import logging

import pytest

from chat_core.domain.exceptions import ValidationError
from chat_core.errors.classifier import ErrorClassifier
from chat_core.tools.definitions import ToolCall, ToolDeclaration, ToolParam
from chat_core.tools.mood import SET_MOOD_TOOL, MoodState, default_registry
from chat_core.tools.registry import ToolRegistry


def test_set_mood_dispatch_updates_state():
    state = MoodState()
    seen = []
    registry = default_registry(state, on_change=seen.append)
    ack = registry.dispatch(ToolCall(id="call-1", name="set_mood", args={"mood": "light"}))
    assert ack.call_id == "call-1"
    assert ack.name == "set_mood"
    assert ack.response == {"result": "success"}
    assert state.mood == "light"
    assert seen == ["light"]


def test_repeated_dispatch_is_harmless():
    state = MoodState()
    registry = default_registry(state)
    for _ in range(3):
        registry.dispatch(ToolCall(id="c", name="set_mood", args={"mood": "dark"}))
    assert state.mood == "dark"


def test_unknown_tool_still_acknowledged():
    failures = []
    registry = ToolRegistry(on_failure=failures.append)
    ack = registry.dispatch(ToolCall(id="x1", name="launch_rockets", args={}))
    assert ack.call_id == "x1"
    assert ack.response == {"result": "success"}
    assert failures == []


def test_invalid_enum_value_skips_handler_and_reports():
    state = MoodState()
    failures = []
    registry = default_registry(state, on_failure=failures.append)
    ack = registry.dispatch(ToolCall(id="c2", name="set_mood", args={"mood": "purple"}))
    assert ack.response == {"result": "success"}
    assert state.mood == "dark"
    assert len(failures) == 1
    assert failures[0].tool_name == "set_mood"
    assert failures[0].call_id == "c2"


def test_failing_handler_is_absorbed():
    failures = []
    registry = ToolRegistry(on_failure=failures.append)
    decl = ToolDeclaration(name="explode", description="always fails", params={})

    def _boom(args):
        raise RuntimeError("kaboom")

    registry.register(decl, _boom)
    ack = registry.dispatch(ToolCall(id="e1", name="explode", args={}))
    assert ack.response == {"result": "success"}
    assert failures[0].message == "kaboom"
    assert failures[0].extra["error_type"] == "RuntimeError"


def test_register_twice_rejected():
    registry = ToolRegistry()
    registry.register(SET_MOOD_TOOL, lambda args: None)
    assert "set_mood" in registry
    with pytest.raises(ValidationError):
        registry.register(SET_MOOD_TOOL, lambda args: None)


def test_optional_params_are_validated_by_type():
    decl = ToolDeclaration(
        name="count",
        description="count things",
        params={
            "n": ToolParam(name="n", description="how many", required=False, schema={"type": "integer"}),
        },
    )
    assert decl.validate_args({}) == {}
    assert decl.validate_args({"n": 3}) == {"n": 3}


def test_tool_failure_logged_once(caplog):
    classifier = ErrorClassifier()
    registry = default_registry(MoodState(), on_failure=classifier.report_diagnostic)
    with caplog.at_level(logging.INFO, logger="chat_core"):
        registry.dispatch(ToolCall(id="c9", name="set_mood", args={"mood": "purple"}))
    records = [r for r in caplog.records if r.name == "chat_core"]
    assert [r.getMessage() for r in records] == ["Tool dispatch failed"]
    assert classifier.diagnostics[0].call_id == "c9"
