import asyncio
import dataclasses
import json
from datetime import datetime

import pytest

from llmtoolbox.core.errors import (
    DispatchError,
    ForeignFunctionCall,
    FunctionNotFound,
    InvalidJson,
    MissingParameters,
    ParameterDeserialization,
    SchemaMismatch,
)
from llmtoolbox.mcp.envelope import FunctionCall
from llmtoolbox.mcp.function_tool import FunctionTool
from llmtoolbox.mcp.tool_types import FunctionSpec
from llmtoolbox.mcp.toolbox import ToolBox

pytestmark = pytest.mark.asyncio


async def test_greet_scenario(greet_box, greeting_tool):
    outcome = await greet_box.call_from_value({"name": "greet", "parameters": {"greeting": "hi"}})
    assert outcome.ok
    assert outcome.value == "This is the greeting `hi`"
    assert greeting_tool.calls == [{"greeting": "hi"}]


async def test_call_from_str(greet_box):
    outcome = await greet_box.call_from_str('{"name":"greet","parameters":{"greeting":"hi"}}')
    assert outcome.unwrap() == "This is the greeting `hi`"


async def test_missing_required_parameter_is_schema_mismatch(greet_box, greeting_tool):
    with pytest.raises(SchemaMismatch) as exc:
        await greet_box.call_from_value({"name": "greet", "parameters": {}})

    err = exc.value
    assert err.function_name == "greet"
    assert err.violation_path == "$"
    assert "'greeting' is a required property" in err.violation_detail
    assert "`required`" in err.violation_detail
    assert err.schema["required"] == ["greeting"]
    assert greeting_tool.calls == []


async def test_wrong_type_reports_field_path(greet_box, greeting_tool):
    with pytest.raises(SchemaMismatch) as exc:
        await greet_box.call_from_value({"name": "greet", "parameters": {"greeting": 5}})

    assert exc.value.violation_path == "$.greeting"
    assert "`type`" in exc.value.violation_detail
    assert "Expected parameters schema" in str(exc.value)
    assert greeting_tool.calls == []


async def test_unknown_function(greet_box, greeting_tool):
    with pytest.raises(FunctionNotFound) as exc:
        await greet_box.call_from_value({"name": "bye", "parameters": {}})

    assert exc.value.function_name == "bye"
    assert exc.value.known_names == ("greet",)
    assert "`greet`" in str(exc.value)
    assert greeting_tool.calls == []


async def test_unknown_function_checked_before_schema(greet_box):
    # parameters would fail any schema, but there is no schema for `bye`
    with pytest.raises(FunctionNotFound):
        await greet_box.call_from_value({"name": "bye", "parameters": {"greeting": 5}})


async def test_not_json(greet_box):
    with pytest.raises(InvalidJson):
        await greet_box.call_from_str("not json")


async def test_envelope_errors_are_dispatch_errors(greet_box):
    with pytest.raises(MissingParameters) as exc:
        await greet_box.call_from_value({"name": "greet"})
    assert isinstance(exc.value, DispatchError)


async def test_malformed_calls_leave_box_usable(greet_box):
    for bad in ("{", "[]", '{"name": 1, "parameters": {}}', '{"name": "x", "parameters": {}}'):
        with pytest.raises(DispatchError):
            await greet_box.call_from_str(bad)
    outcome = await greet_box.call_from_str('{"name":"greet","parameters":{"greeting":"ok"}}')
    assert outcome.ok


async def test_round_trip(greet_box):
    call = greet_box.parse_value({"name": "greet", "parameters": {"greeting": "hi"}})
    again = greet_box.parse_str(call.to_json())
    assert (again.name, again.parameters) == ("greet", {"greeting": "hi"})
    assert again == call


async def test_parse_dispatches_on_input_type(greet_box):
    from_text = greet_box.parse('{"name":"greet","parameters":{"greeting":"a"}}')
    from_value = greet_box.parse({"name": "greet", "parameters": {"greeting": "a"}})
    assert from_text == from_value


async def test_function_name_key(greeting_tool, make_tool):
    box = ToolBox(name_key="function_name")
    box.add_tool(make_tool(greeting_tool.greet))
    outcome = await box.call_from_value({"function_name": "greet", "parameters": {"greeting": "yo"}})
    assert outcome.value == "This is the greeting `yo`"


async def test_call_parsed_by_other_box_is_refused(greeting_tool, make_tool):
    box_a = ToolBox()
    box_a.add_tool(make_tool(greeting_tool.greet))
    box_b = ToolBox()
    box_b.add_tool(make_tool(greeting_tool.greet))

    call = box_a.parse_value({"name": "greet", "parameters": {"greeting": "hi"}})
    with pytest.raises(ForeignFunctionCall) as exc:
        await box_b.call(call)
    assert isinstance(exc.value, FunctionNotFound)
    assert greeting_tool.calls == []


async def test_hand_built_call_is_refused(greet_box, greeting_tool):
    with pytest.raises(ForeignFunctionCall):
        await greet_box.call(FunctionCall("greet", {"greeting": "hi"}))
    assert greeting_tool.calls == []


async def test_renamed_call_is_function_not_found(greet_box, greeting_tool):
    call = greet_box.parse_value({"name": "greet", "parameters": {"greeting": "hi"}})
    with pytest.raises(FunctionNotFound) as exc:
        await greet_box.call(dataclasses.replace(call, name="nope"))
    assert type(exc.value) is FunctionNotFound
    assert exc.value.function_name == "nope"
    assert greeting_tool.calls == []


async def test_editing_envelope_after_parse_does_not_reach_tool(greet_box, greeting_tool):
    envelope = {"name": "greet", "parameters": {"greeting": "hi"}}
    call = greet_box.parse_value(envelope)
    envelope["parameters"]["greeting"] = 12345

    outcome = await greet_box.call(call)
    assert outcome.value == "This is the greeting `hi`"
    assert greeting_tool.calls == [{"greeting": "hi"}]


async def test_default_parameters_filled_in(greeting_tool, make_tool):
    box = ToolBox()
    box.add_tool(make_tool(greeting_tool.farewell))
    outcome = await box.call_from_value({"name": "farewell", "parameters": {"name": "Ana"}})
    assert outcome.value == "Bye Ana!"
    outcome = await box.call_from_value({"name": "farewell", "parameters": {"name": "Ana", "times": 2}})
    assert outcome.value == "Bye Ana! Bye Ana!"


async def test_async_handler_is_awaited(make_tool):
    async def slow_upper(text: str) -> str:
        """Upper-cases text after yielding to the loop.

        `text` - Text to upper-case
        """
        await asyncio.sleep(0)
        return text.upper()

    box = ToolBox()
    box.add_tool(make_tool(slow_upper))
    outcome = await box.call_from_value({"name": "slow_upper", "parameters": {"text": "abc"}})
    assert outcome.value == "ABC"


async def test_concurrent_dispatch(make_tool):
    async def wait(ms: int) -> int:
        """Waits.

        `ms` - Milliseconds
        """
        await asyncio.sleep(ms / 1000)
        return ms

    box = ToolBox()
    box.add_tool(make_tool(wait))
    results = await asyncio.gather(*(
        box.call_from_value({"name": "wait", "parameters": {"ms": ms}}) for ms in (30, 10, 20)
    ))
    assert [r.value for r in results] == [30, 10, 20]


async def test_deserialization_failure_stops_before_handler(make_tool):
    seen = []

    def schedule(when: datetime) -> str:
        """Schedules something.

        `when` - When to run it
        """
        seen.append(when)
        return when.isoformat()

    box = ToolBox()
    box.add_tool(make_tool(schedule))

    # "format": "date-time" is not enforced by the schema validator
    with pytest.raises(ParameterDeserialization) as exc:
        await box.call_from_value({"name": "schedule", "parameters": {"when": "next tuesday"}})
    assert exc.value.function_name == "schedule"
    assert seen == []

    outcome = await box.call_from_value({"name": "schedule", "parameters": {"when": "2024-05-01T10:00:00"}})
    assert outcome.value == "2024-05-01T10:00:00"
    assert isinstance(seen[0], datetime)


async def test_spec_without_deserializer_passes_parameters_through():
    raw = FunctionSpec(
        name="raw_echo",
        description="echo",
        parameters={"type": "object", "properties": {"x": {}}, "required": ["x"]},
        handler=lambda x: {"x": x},
    )
    box = ToolBox()
    box.add_tool(FunctionTool(raw))
    outcome = await box.call_from_str(json.dumps({"name": "raw_echo", "parameters": {"x": [1, 2]}}))
    assert outcome.value == {"x": [1, 2]}
