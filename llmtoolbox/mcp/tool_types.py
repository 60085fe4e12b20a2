from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from jsonschema.protocols import Validator
from jsonschema.validators import validator_for

from llmtoolbox.mcp.outcome import ResultPolicy, ToolOutcome


def compile_validator(schema: Dict[str, Any]) -> Validator:
    """Build a validator for the schema's declared draft (latest draft when absent)."""
    cls = validator_for(schema)
    cls.check_schema(schema)
    return cls(schema)


@dataclass(frozen=True)
class FunctionSpec:
    """
    One callable function as handed over by the description step.

    ``deserializer`` turns already-validated JSON parameters into the keyword
    arguments ``handler`` expects; it raises when the JSON cannot be converted.
    """
    name: str
    description: str
    parameters: Dict[str, Any]   # JSON schema for args
    handler: Callable[..., Any]
    deserializer: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
    validator: Validator = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("function name must be non-empty")
        object.__setattr__(self, "validator", compile_validator(self.parameters))

    def schema_entry(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class Tool(ABC):
    """
    A capability providing one or more named functions.

    Implementations are only ever invoked by the ToolBox that owns them, with a
    function name they provide and parameters that already passed
    ``validator(name)``.
    """

    @property
    @abstractmethod
    def function_names(self) -> Tuple[str, ...]:
        ...

    @property
    @abstractmethod
    def schema(self) -> Mapping[str, Dict[str, Any]]:
        """function name -> {"type": "function", "function": {...}}"""

    @abstractmethod
    def validator(self, name: str) -> Validator:
        ...

    def parameters_schema(self, name: str) -> Dict[str, Any]:
        return self.schema[name]["function"]["parameters"]

    @abstractmethod
    async def invoke(self, name: str, parameters: Dict[str, Any], policy: ResultPolicy) -> ToolOutcome:
        """
        Run ``name``.

        :param name: one of ``function_names``
        :param parameters: schema-valid parameters
        :param policy: the owning toolbox's result unification
        :return: the tool's own outcome
        :raises ParameterDeserialization: native conversion failed
        """


def schema_view(specs: Sequence[FunctionSpec]) -> Mapping[str, Dict[str, Any]]:
    return MappingProxyType({s.name: s.schema_entry() for s in specs})
