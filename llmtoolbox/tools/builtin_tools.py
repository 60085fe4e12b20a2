from __future__ import annotations
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List

from llmtoolbox.codegen.signature import tool_function


def ping() -> Dict[str, Any]:
    """Health check; returns the current UTC timestamp."""
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}

def greet(greeting: str) -> str:
    """Greets with the given text.

    `greeting` - The text to greet with
    """
    return f"This is the greeting `{greeting}`"

def echo(text: str) -> Dict[str, Any]:
    """Echo the text back.

    `text` - Text to echo
    """
    return {"echo": text}


class Calculator:
    """Arithmetic tool; both functions may fail and report it as a tool error."""

    @tool_function
    def add(self, a: float, b: float) -> Dict[str, Any]:
        """Add two numbers.

        `a` - First addend
        `b` - Second addend
        """
        return {"a": a, "b": b, "sum": a + b}

    @tool_function
    def divide(self, dividend: float, divisor: float) -> Dict[str, Any]:
        """Divide one number by another.

        `dividend` - Number to divide
        `divisor` - Number to divide by, must not be zero
        """
        if divisor == 0:
            raise ValueError("cannot divide by zero")
        return {"quotient": dividend / divisor}


async def wait_then_echo(text: str, delay_ms: int = 0) -> Dict[str, Any]:
    """Echo the text after an optional delay.

    `text` - Text to echo
    `delay_ms` - Milliseconds to wait first
    """
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)
    return {"echo": text, "delayed_ms": delay_ms}


def list_capabilities() -> Dict[str, List[str]]:
    """List what this tool server can do."""
    return {
        "capabilities": [
            "Schema-validated tool calling via a JSON envelope",
            "HTTP MCP-style tool registry (/mcp/tools, /mcp/call)",
            "Database journal of rejected calls, tool results and tool errors",
            "Sync and async tool functions",
        ]
    }
