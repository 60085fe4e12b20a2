"""
Error taxonomy for the tool box.

DispatchError and its subclasses mean "the request could not be dispatched";
a tool that ran and failed is reported through ToolOutcome instead, never
through these classes. Messages are phrased so a language model can read them
and retry with a corrected call.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional, Sequence


def _render(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


class ToolBoxError(Exception):
    """Base class for every error raised by this package."""


class DispatchError(ToolBoxError):
    """The call was rejected before, or around, running the tool."""


# ------------------------------------------------------------
# Envelope
# ------------------------------------------------------------

class EnvelopeError(DispatchError):
    """The call envelope itself is malformed."""

    def __init__(self, message: str, offending_input: Any = None):
        super().__init__(message)
        self.offending_input = offending_input


class InvalidJson(EnvelopeError):
    def __init__(self, offending_input: str, reason: str = ""):
        message = "input is not valid JSON"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, offending_input)
        self.reason = reason


class EnvelopeNotAnObject(EnvelopeError):
    def __init__(self, offending_input: Any):
        super().__init__(
            f"The tool call must be a JSON object, got:\n{_render(offending_input)}",
            offending_input,
        )


class MissingName(EnvelopeError):
    def __init__(self, offending_input: Any, name_key: str = "name"):
        super().__init__(
            f"The tool call is missing the `{name_key}` field in:\n{_render(offending_input)}",
            offending_input,
        )
        self.name_key = name_key


class NameNotAString(EnvelopeError):
    def __init__(self, offending_input: Any, name_key: str = "name"):
        super().__init__(
            f"The tool call `{name_key}` field is not a string in:\n{_render(offending_input)}",
            offending_input,
        )
        self.name_key = name_key


class MissingParameters(EnvelopeError):
    def __init__(self, offending_input: Any):
        super().__init__(
            f"The tool call is missing the `parameters` field in:\n{_render(offending_input)}",
            offending_input,
        )


class ParametersNotAnObject(EnvelopeError):
    def __init__(self, offending_input: Any):
        super().__init__(
            f"The tool call `parameters` field is not an object in:\n{_render(offending_input)}",
            offending_input,
        )


# ------------------------------------------------------------
# Resolution / validation
# ------------------------------------------------------------

class FunctionNotFound(DispatchError):
    def __init__(self, function_name: str, known_names: Sequence[str] = (), message: Optional[str] = None):
        self.function_name = function_name
        self.known_names = tuple(known_names)
        if message is None:
            message = f"The function with name `{function_name}` was not found in the toolbox"
        if self.known_names:
            message += ". Available functions: " + ", ".join(f"`{n}`" for n in self.known_names)
        super().__init__(message)


class ForeignFunctionCall(FunctionNotFound):
    """A FunctionCall parsed by one ToolBox was handed to another."""

    def __init__(self, function_name: str, known_names: Sequence[str] = ()):
        super().__init__(
            function_name,
            known_names,
            message=(
                f"The call to `{function_name}` was parsed by a different toolbox and "
                "cannot be dispatched here"
            ),
        )


class SchemaMismatch(DispatchError):
    def __init__(
            self,
            function_name: str,
            violation_path: str,
            violation_detail: str,
            schema: Dict[str, Any],
            *,
            other_violations: Iterable[str] = (),
    ):
        self.function_name = function_name
        self.violation_path = violation_path
        self.violation_detail = violation_detail
        self.schema = schema
        self.other_violations: List[str] = list(other_violations)

        lines = [
            f"The parameters for `{function_name}` do not match its schema.",
            f"At `{violation_path}`: {violation_detail}",
        ]
        if self.other_violations:
            lines.append("Other problems:")
            lines.extend(f"- {v}" for v in self.other_violations)
        lines.append(f"Expected parameters schema:\n{_render(schema)}")
        super().__init__("\n".join(lines))


class ParameterDeserialization(DispatchError):
    """Schema validation passed but conversion to native types did not."""

    def __init__(self, function_name: str, detail: str):
        self.function_name = function_name
        self.detail = detail
        super().__init__(
            f"The parameters for `{function_name}` passed schema validation but could not "
            f"be converted:\n{detail}"
        )


class ReturnTypeMismatch(DispatchError):
    """A tool produced a value outside the toolbox's declared result types."""

    def __init__(self, function_name: str, expected: type, actual: Any, *, side: str = "output"):
        self.function_name = function_name
        self.expected = expected
        self.actual = actual
        self.side = side
        super().__init__(
            f"`{function_name}` produced {side} of type `{type(actual).__name__}`, "
            f"but this toolbox only accepts `{expected.__name__}`"
        )


# ------------------------------------------------------------
# Registration / description
# ------------------------------------------------------------

class RegistrationConflict(ToolBoxError):
    """add_tool refused a tool; the tool is handed back untouched."""

    def __init__(self, tool: Any, conflicting_names: Sequence[str], reason: Optional[str] = None):
        self.tool = tool
        self.conflicting_names = tuple(conflicting_names)
        if reason is None:
            reason = "function names already registered: " + ", ".join(
                f"`{n}`" for n in self.conflicting_names
            )
        super().__init__(f"Cannot register {tool!r}: {reason}")


class FunctionDescriptionError(ToolBoxError):
    """A Python function could not be described as a tool function."""
