"""
Describe plain Python functions as tool functions.

Given a function with a docstring like::

    def greet(greeting: str) -> str:
        \"\"\"Greets the user.

        `greeting` - The text to greet with
        \"\"\"

``describe_function`` produces a FunctionSpec: the function name, a JSON
Schema for its parameters built from the annotations, and a deserializer that
converts validated JSON into the native argument types. The ToolBox only ever
sees the resulting spec.
"""
from __future__ import annotations

import inspect
import re
import typing
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, create_model

from llmtoolbox.core.errors import FunctionDescriptionError
from llmtoolbox.mcp.tool_types import FunctionSpec

_MARKER = "__llmtoolbox_function__"

_PARAM_LINE = re.compile(r"^\s*`(?P<name>[^`]+)`\s*-\s*(?P<description>.+?)\s*$")


def clean_up_schema(schema: Any) -> Any:
    """Drop ``$schema`` at the root and every ``title`` keyword, in place."""
    if isinstance(schema, dict):
        schema.pop("$schema", None)
        _strip_titles(schema)
    return schema


def _strip_titles(schema: Any) -> None:
    if isinstance(schema, list):
        for item in schema:
            _strip_titles(item)
        return
    if not isinstance(schema, dict):
        return

    schema.pop("title", None)
    for key, value in schema.items():
        if key in ("properties", "$defs", "definitions", "patternProperties") and isinstance(value, dict):
            # keys here are property names, not keywords
            for sub in value.values():
                _strip_titles(sub)
        else:
            _strip_titles(value)


def parse_docstring(doc: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """Split a docstring into the function description and per-parameter descriptions."""
    description_lines: List[str] = []
    params: Dict[str, str] = {}
    for line in inspect.cleandoc(doc or "").splitlines():
        m = _PARAM_LINE.match(line)
        if m:
            params[m.group("name")] = m.group("description")
        elif line.strip():
            description_lines.append(line.strip())
    return "\n".join(description_lines), params


def tool_function(fn: Optional[Callable[..., Any]] = None, *, name: Optional[str] = None,
                  description: Optional[str] = None):
    """Mark a method so ``FunctionTool.from_object`` picks it up."""
    def mark(f: Callable[..., Any]) -> Callable[..., Any]:
        setattr(f, _MARKER, (name, description))
        return f

    if fn is not None:
        return mark(fn)
    return mark


def marked_functions(obj: Any) -> List[Tuple[Optional[str], Optional[str], Callable[..., Any]]]:
    seen: Dict[str, None] = {}
    for klass in reversed(type(obj).__mro__):
        for attr in vars(klass):
            if not attr.startswith("__"):
                seen[attr] = None

    out = []
    for attr in seen:
        member = getattr(obj, attr, None)
        marker = getattr(member, _MARKER, None)
        if marker is not None and callable(member):
            name, description = marker
            out.append((name or attr, description, member))
    return out


def _parameters_model(fn: Callable[..., Any], fn_name: str, param_docs: Dict[str, str]) -> type[BaseModel]:
    try:
        hints = typing.get_type_hints(fn, include_extras=True)
    except Exception as e:
        raise FunctionDescriptionError(f"cannot resolve annotations of `{fn_name}`: {e}") from e

    fields: Dict[str, Any] = {}
    for param in inspect.signature(fn).parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise FunctionDescriptionError(
                f"`{fn_name}` takes `{param}`; tool functions need named parameters only"
            )
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            raise FunctionDescriptionError(
                f"`{fn_name}` parameter `{param.name}` is positional-only and cannot be passed by name"
            )
        if param.name not in param_docs:
            raise FunctionDescriptionError(
                f"missing description for parameter `{param.name}` of `{fn_name}`. Descriptions are "
                "docstring lines of the form:\n`parameter_name` - This is the description for the parameter."
            )
        default = ... if param.default is inspect.Parameter.empty else param.default
        annotation = hints.get(param.name, Any)
        fields[param.name] = (annotation, Field(default, description=param_docs[param.name]))

    unknown = set(param_docs) - set(fields)
    if unknown:
        raise FunctionDescriptionError(
            f"parameter `{sorted(unknown)[0]}` not found in the definition of `{fn_name}`"
        )
    return create_model(f"{fn_name}_parameters", **fields)


def describe_function(fn: Callable[..., Any], *, name: Optional[str] = None,
                      description: Optional[str] = None) -> FunctionSpec:
    """
    Build the FunctionSpec for ``fn``.

    :param fn: sync or async function, or bound method
    :param name: override for ``fn.__name__``
    :param description: override for the docstring's free text
    :raises FunctionDescriptionError: a description is missing or the signature
        cannot be expressed as a JSON object of named parameters
    """
    fn_name = name or getattr(fn, "__name__", None)
    if not fn_name:
        raise FunctionDescriptionError(f"cannot determine a name for {fn!r}")

    doc_description, param_docs = parse_docstring(inspect.getdoc(fn))
    description = description or doc_description
    if not description:
        raise FunctionDescriptionError(f"missing description for function `{fn_name}`")

    model = _parameters_model(fn, fn_name, param_docs)
    schema = clean_up_schema(model.model_json_schema())
    schema.setdefault("required", [])
    field_names = list(model.model_fields)

    def deserialize(parameters: Dict[str, Any]) -> Dict[str, Any]:
        parsed = model.model_validate(parameters)
        return {n: getattr(parsed, n) for n in field_names}

    return FunctionSpec(
        name=fn_name,
        description=description,
        parameters=schema,
        handler=fn,
        deserializer=deserialize,
    )
