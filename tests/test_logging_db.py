import logging

import pytest

from llmtoolbox.core.errors import FunctionNotFound
from llmtoolbox.core.logging_db import CallJournal
from llmtoolbox.mcp.toolbox import ToolBox


@pytest.fixture
def journal(tmp_path):
    return CallJournal(f"sqlite:///{tmp_path / 'journal.db'}")


def test_record_and_read_back(journal):
    first = journal.record("tool_result", {"result": "ok"}, function_name="greet")
    second = journal.record("call_rejected", {"error": "bad"})
    assert second > first

    events = journal.recent_events()
    assert [e["event_type"] for e in events] == ["call_rejected", "tool_result"]
    assert events[1]["payload"] == {"result": "ok"}
    assert events[1]["function_name"] == "greet"


def test_filter_by_function_name(journal):
    journal.record("tool_result", {}, function_name="greet")
    journal.record("tool_result", {}, function_name="echo")
    journal.record("tool_error", {}, function_name="greet")

    events = journal.recent_events(function_name="greet")
    assert [e["event_type"] for e in events] == ["tool_error", "tool_result"]
    assert len(journal.recent_events(limit=1)) == 1


def test_unserializable_payload_is_stored_as_repr(journal):
    journal.record("tool_result", {"result": object()})
    assert journal.recent_events()[0]["payload"]["result"].startswith("<object object")


class BrokenJournal:
    def record(self, *args, **kwargs):
        raise RuntimeError("database is gone")


@pytest.mark.asyncio
async def test_journal_failure_does_not_change_results(greeting_tool, caplog, make_tool):
    box = ToolBox(journal=BrokenJournal())
    box.add_tool(make_tool(greeting_tool.greet))

    with caplog.at_level(logging.ERROR):
        outcome = await box.call_from_value({"name": "greet", "parameters": {"greeting": "hi"}})
        with pytest.raises(FunctionNotFound):
            await box.call_from_value({"name": "bye", "parameters": {}})

    assert outcome.value == "This is the greeting `hi`"
    assert "Call journal failure" in caplog.text
