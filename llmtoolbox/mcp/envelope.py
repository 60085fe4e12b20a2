"""Call envelope parsing: raw text / JSON value -> (function name, parameters)."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from llmtoolbox.core.errors import (
    EnvelopeNotAnObject,
    InvalidJson,
    MissingName,
    MissingParameters,
    NameNotAString,
    ParametersNotAnObject,
)

NAME_KEYS = ("name", "function_name")
PARAMETERS_KEY = "parameters"


def load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        raise InvalidJson(text, str(e)) from e


def split_envelope(value: Any, *, name_key: str = "name") -> Tuple[str, Dict[str, Any]]:
    """
    Check the envelope shape and pull out its two fields.

    Other keys in the envelope are dropped. Nothing here knows about the
    registered functions or their schemas.

    :param value: decoded JSON value
    :param name_key: key holding the function name
    :return: (function_name, parameters)
    """
    if not isinstance(value, dict):
        raise EnvelopeNotAnObject(value)

    if name_key not in value:
        raise MissingName(value, name_key)
    name = value[name_key]
    if not isinstance(name, str):
        raise NameNotAString(value, name_key)

    if PARAMETERS_KEY not in value:
        raise MissingParameters(value)
    parameters = value[PARAMETERS_KEY]
    if not isinstance(parameters, dict):
        raise ParametersNotAnObject(value)

    return name, parameters


@dataclass(frozen=True)
class FunctionCall:
    """
    A parsed, schema-validated call, valid only for the ToolBox that parsed it.

    Obtain one from ``ToolBox.parse`` / ``parse_value`` / ``parse_str``; a
    FunctionCall built any other way is refused at dispatch.
    """
    name: str
    parameters: Dict[str, Any]
    _origin: Any = field(default=None, repr=False, compare=False)
    _name_key: str = field(default="name", repr=False, compare=False)

    def to_envelope(self) -> Dict[str, Any]:
        return {self._name_key: self.name, PARAMETERS_KEY: self.parameters}

    def to_json(self) -> str:
        return json.dumps(self.to_envelope(), ensure_ascii=False)
