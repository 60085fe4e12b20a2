from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from jsonschema.protocols import Validator

from llmtoolbox.codegen.signature import describe_function, marked_functions
from llmtoolbox.core.errors import ParameterDeserialization
from llmtoolbox.mcp.outcome import ResultPolicy, ToolOutcome
from llmtoolbox.mcp.tool_types import FunctionSpec, Tool, schema_view

logger = logging.getLogger(__name__)


class FunctionTool(Tool):
    """
    Tool made of plain functions (sync or async), each described by a FunctionSpec.

    :param specs: one spec per provided function, names unique
    :param label: optional name used in logs and reprs
    """

    def __init__(self, *specs: FunctionSpec, label: Optional[str] = None):
        if not specs:
            raise ValueError("a tool must provide at least one function")
        self._specs: Dict[str, FunctionSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ValueError(f"duplicate function name `{spec.name}` within one tool")
            self._specs[spec.name] = spec
        self._names = tuple(self._specs)
        self._schema = schema_view(specs)
        self.label = label or "+".join(self._names)

    @classmethod
    def from_functions(cls, *fns: Callable[..., Any], label: Optional[str] = None) -> "FunctionTool":
        return cls(*(describe_function(fn) for fn in fns), label=label)

    @classmethod
    def from_object(cls, obj: Any, label: Optional[str] = None) -> "FunctionTool":
        """Collect every method of ``obj`` marked with ``@tool_function``."""
        specs = [
            describe_function(fn, name=name, description=description)
            for name, description, fn in marked_functions(obj)
        ]
        if not specs:
            raise ValueError(f"{type(obj).__name__} has no methods marked with @tool_function")
        return cls(*specs, label=label or type(obj).__name__)

    def __repr__(self) -> str:
        return f"FunctionTool({self.label})"

    @property
    def function_names(self) -> Tuple[str, ...]:
        return self._names

    @property
    def schema(self) -> Mapping[str, Dict[str, Any]]:
        return self._schema

    def validator(self, name: str) -> Validator:
        return self._specs[name].validator

    def spec(self, name: str) -> FunctionSpec:
        return self._specs[name]

    async def invoke(self, name: str, parameters: Dict[str, Any], policy: ResultPolicy) -> ToolOutcome:
        spec = self._specs[name]

        kwargs = dict(parameters)
        if spec.deserializer is not None:
            try:
                kwargs = spec.deserializer(parameters)
            except (TypeError, ValueError) as e:
                logger.warning(f"Schema-valid parameters for `{name}` failed conversion: {e}")
                raise ParameterDeserialization(name, str(e)) from e

        try:
            result = spec.handler(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            if not policy.captures(exc):
                raise
            logger.info(f"Tool function `{name}` failed: {exc!r}")
            return policy.check(name, ToolOutcome.failure(exc))

        return policy.wrap(name, result)
