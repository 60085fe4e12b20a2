from typing import Any, Dict, List

import pytest

from llmtoolbox.codegen.signature import describe_function
from llmtoolbox.mcp.function_tool import FunctionTool
from llmtoolbox.mcp.toolbox import ToolBox


class GreetingTool:
    """Counts invocations so tests can prove a handler never ran."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def greet(self, greeting: str) -> str:
        """Greets with the given text.

        `greeting` - The text to greet with
        """
        self.calls.append({"greeting": greeting})
        return f"This is the greeting `{greeting}`"

    def farewell(self, name: str, times: int = 1) -> str:
        """Says goodbye.

        `name` - Who to say goodbye to
        `times` - How many times to say it
        """
        self.calls.append({"name": name, "times": times})
        return " ".join([f"Bye {name}!"] * times)


def _make_tool(*fns, label=None) -> FunctionTool:
    return FunctionTool(*(describe_function(fn) for fn in fns), label=label)


@pytest.fixture
def make_tool():
    """Build a FunctionTool from documented functions."""
    return _make_tool


@pytest.fixture
def greeting_tool():
    return GreetingTool()


@pytest.fixture
def greet_box(greeting_tool):
    box = ToolBox()
    box.add_tool(_make_tool(greeting_tool.greet, label="greeting"))
    return box
