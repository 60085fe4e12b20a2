from __future__ import annotations
from fastapi import APIRouter, Body
from typing import Any, Dict

from llmtoolbox.core.errors import DispatchError
from llmtoolbox.core.models import FunctionSummary, ToolCallResponse, ToolListResponse
from .toolbox import ToolBox


def mount_toolbox_routes(toolbox: ToolBox) -> APIRouter:
    r = APIRouter(prefix="/mcp", tags=["mcp"])

    @r.get("/tools")
    def list_tools() -> Dict[str, Any]:
        """The merged schema document, as it would be sent to an LLM."""
        return toolbox.schema()

    @r.get("/functions", response_model=ToolListResponse)
    def list_functions() -> ToolListResponse:
        return ToolListResponse(
            schema_format=toolbox.schema_format.value,
            functions=[
                FunctionSummary(**entry["function"])
                for entry in toolbox.function_schemas.values()
            ],
        )

    @r.post("/call", response_model=ToolCallResponse)
    async def call_tool(envelope: Any = Body(...)) -> ToolCallResponse:
        try:
            outcome = await toolbox.call_from_value(envelope)
        except DispatchError as e:
            return ToolCallResponse(dispatched=False, ok=False, error=str(e), error_type=type(e).__name__)

        if outcome.ok:
            return ToolCallResponse(dispatched=True, ok=True, result=outcome.value)
        return ToolCallResponse(
            dispatched=True,
            ok=False,
            error=str(outcome.error),
            error_type=type(outcome.error).__name__,
        )

    return r
