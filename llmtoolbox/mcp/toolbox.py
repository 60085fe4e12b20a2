from __future__ import annotations

import copy
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from jsonschema.exceptions import best_match

from llmtoolbox.core.config import Settings
from llmtoolbox.core.errors import (
    DispatchError,
    ForeignFunctionCall,
    FunctionNotFound,
    RegistrationConflict,
    SchemaMismatch,
)
from llmtoolbox.core.logging_db import CallJournal
from llmtoolbox.mcp.envelope import NAME_KEYS, FunctionCall, load_json, split_envelope
from llmtoolbox.mcp.outcome import ResultPolicy, ToolOutcome, Unification
from llmtoolbox.mcp.schema_format import SchemaFormat, render_schema
from llmtoolbox.mcp.tool_types import Tool

logger = logging.getLogger(__name__)


class ToolBox:
    """
    Registry and single dispatch entry point for a set of tools.

    Function names are unique across every registered tool. Tools are only
    added, never removed, so once built the box can serve concurrent calls
    without locking.

    :param output_type: success type every function returns, or None to erase it
    :param error_type: failure type, None to erase it, or NEVER when nothing can fail
    :param name_key: envelope key carrying the function name
    :param schema_format: shape of ``schema()``
    :param journal: optional CallJournal recording dispatch events
    """

    def __init__(
            self,
            output_type: Optional[type] = None,
            error_type: Any = None,
            *,
            name_key: str = "name",
            schema_format: Union[SchemaFormat, str] = SchemaFormat.OPENAI,
            journal: Optional[CallJournal] = None,
    ):
        if name_key not in NAME_KEYS:
            raise ValueError(f"name_key must be one of {NAME_KEYS}, got {name_key!r}")
        self.policy = ResultPolicy(output_type, error_type)
        self.name_key = name_key
        self.schema_format = SchemaFormat(schema_format)
        self.journal = journal

        self._tools: List[Tool] = []
        self._owners: Dict[str, int] = {}   # function name -> index into _tools
        self._function_schemas: Dict[str, Dict[str, Any]] = {}
        self._schema = render_schema(self._function_schemas, self.schema_format, name_key=name_key)

    @classmethod
    def from_settings(
            cls,
            settings: Settings,
            output_type: Optional[type] = None,
            error_type: Any = None,
            *,
            journal: Optional[CallJournal] = None,
    ) -> "ToolBox":
        return cls(
            output_type,
            error_type,
            name_key=settings.name_key,
            schema_format=settings.schema_format,
            journal=journal,
        )

    # ------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------

    @property
    def tools(self) -> Tuple[Tool, ...]:
        return tuple(self._tools)

    @property
    def function_names(self) -> Tuple[str, ...]:
        return tuple(self._owners)

    @property
    def unification(self) -> Unification:
        return self.policy.strategy

    @property
    def function_schemas(self) -> Mapping[str, Dict[str, Any]]:
        return MappingProxyType(self._function_schemas)

    def schema(self) -> Dict[str, Any]:
        """Merged schema document, ready to send as the LLM's tool list.

        Each call returns a fresh copy; changing it does not touch the box.
        """
        return copy.deepcopy(self._schema)

    def __contains__(self, name: object) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._tools)

    def add_tool(self, tool: Tool) -> None:
        """
        Register ``tool``, or raise RegistrationConflict carrying it back unchanged.

        Either every function of the tool is registered or none is.
        """
        names = tuple(tool.function_names)
        if not names:
            raise RegistrationConflict(tool, (), reason="the tool provides no functions")

        repeated = sorted({n for n in names if names.count(n) > 1})
        if repeated:
            raise RegistrationConflict(tool, repeated, reason="the tool lists a function name twice")

        tool_schema = tool.schema
        undescribed = [n for n in names if n not in tool_schema]
        if undescribed:
            raise RegistrationConflict(tool, undescribed, reason="the tool has no schema for some of its functions")

        taken = [n for n in names if n in self._owners]
        if taken:
            logger.warning(f"Rejected {tool!r}: function names already registered: {taken}")
            raise RegistrationConflict(tool, taken)

        index = len(self._tools)
        self._tools.append(tool)
        for name in names:
            self._owners[name] = index
            self._function_schemas[name] = tool_schema[name]
        self._schema = render_schema(self._function_schemas, self.schema_format, name_key=self.name_key)
        logger.info(f"Registered {tool!r} providing {list(names)}")

    # ------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------

    def _owner_of(self, name: str) -> Tool:
        index = self._owners.get(name)
        if index is None:
            raise FunctionNotFound(name, self.function_names)
        return self._tools[index]

    def _validated(self, name: str, parameters: Dict[str, Any]) -> FunctionCall:
        tool = self._owner_of(name)
        errors = list(tool.validator(name).iter_errors(parameters))
        if errors:
            best = best_match(errors)
            others = [f"at `{e.json_path}`: {e.message}" for e in errors if e is not best]
            raise SchemaMismatch(
                name,
                best.json_path,
                f"{best.message} (violates `{best.validator}`)",
                tool.parameters_schema(name),
                other_violations=others,
            )
        # the call owns its parameters; later edits to the envelope must not reach the tool
        return FunctionCall(name, copy.deepcopy(parameters), _origin=self, _name_key=self.name_key)

    def parse_value(self, value: Any) -> FunctionCall:
        name, parameters = split_envelope(value, name_key=self.name_key)
        return self._validated(name, parameters)

    def parse_str(self, text: str) -> FunctionCall:
        return self.parse_value(load_json(text))

    def parse(self, raw: Any) -> FunctionCall:
        if isinstance(raw, (str, bytes, bytearray)):
            return self.parse_str(raw)
        return self.parse_value(raw)

    # ------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------

    def _record(self, event_type: str, payload: Dict[str, Any], function_name: Optional[str]) -> None:
        if self.journal is None:
            return
        try:
            self.journal.record(event_type, payload, function_name=function_name)
        except Exception as e:
            logger.exception(f"Call journal failure (ignored): {e}")

    def _rejected(self, error: DispatchError, function_name: Optional[str] = None) -> None:
        logger.info(f"Rejected tool call ({type(error).__name__}): {error}")
        self._record(
            "call_rejected",
            {"error_type": type(error).__name__, "error": str(error)},
            function_name or getattr(error, "function_name", None),
        )

    async def call(self, function_call: FunctionCall) -> ToolOutcome:
        """
        Run an already parsed call.

        :return: the tool's own outcome (success or failure)
        :raises DispatchError: the call could not be run as requested
        """
        name = function_call.name
        if function_call._origin is not self:
            error = ForeignFunctionCall(name)
            self._rejected(error)
            raise error

        try:
            tool = self._owner_of(name)
        except FunctionNotFound as e:
            self._rejected(e)
            raise

        try:
            outcome = await tool.invoke(name, function_call.parameters, self.policy)
        except DispatchError as e:
            self._rejected(e, name)
            raise

        if outcome.ok:
            self._record("tool_result", {"parameters": function_call.parameters, "result": outcome.value}, name)
        else:
            self._record("tool_error", {"parameters": function_call.parameters, "error": repr(outcome.error)}, name)
        return outcome

    async def call_from_value(self, value: Any) -> ToolOutcome:
        try:
            function_call = self.parse_value(value)
        except DispatchError as e:
            self._rejected(e)
            raise
        return await self.call(function_call)

    async def call_from_str(self, text: str) -> ToolOutcome:
        try:
            value = load_json(text)
        except DispatchError as e:
            self._rejected(e)
            raise
        return await self.call_from_value(value)
