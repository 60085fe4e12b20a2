from __future__ import annotations
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

class ToolCallResponse(BaseModel):
    dispatched: bool
    ok: bool
    result: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class FunctionSummary(BaseModel):
    name: str
    description: str
    parameters: Dict[str, Any]


class ToolListResponse(BaseModel):
    schema_format: str
    functions: List[FunctionSummary]
