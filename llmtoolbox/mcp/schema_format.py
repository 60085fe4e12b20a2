from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping

from llmtoolbox.mcp.envelope import PARAMETERS_KEY


class SchemaFormat(str, Enum):
    OPENAI = "openai"    # {"tools": [{"type": "function", "function": {...}}, ...]}
    ONE_OF = "one_of"    # one JSON Schema with an alternative per function


def render_schema(
        function_schemas: Mapping[str, Dict[str, Any]],
        schema_format: SchemaFormat,
        *,
        name_key: str = "name",
) -> Dict[str, Any]:
    """
    Build the document handed to the LLM from per-function schema entries.

    :param function_schemas: function name -> {"type": "function", "function": {...}}, in order
    :param schema_format: which of the two shapes to emit
    :param name_key: envelope key for the function name (used by ONE_OF)
    """
    if schema_format is SchemaFormat.OPENAI:
        return {"tools": list(function_schemas.values())}

    alternatives = []
    for name, entry in function_schemas.items():
        fn = entry["function"]
        alternatives.append({
            "type": "object",
            "description": fn.get("description", ""),
            "properties": {
                name_key: {"const": name},
                PARAMETERS_KEY: fn["parameters"],
            },
            "required": [name_key, PARAMETERS_KEY],
        })
    return {"oneOf": alternatives}
