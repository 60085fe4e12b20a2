"""
What a tool produced once it actually ran.

A ToolBox is built with one (output_type, error_type) pair. ``None`` on either
side erases that side: any value is accepted and callers recover the concrete
type with ``value_as`` / ``error_as``. ``NEVER`` as the error type declares that
no registered function can fail.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, Type, TypeVar

from llmtoolbox.core.errors import ReturnTypeMismatch

T = TypeVar("T")


class Never:
    """Marker error type for tool boxes whose functions cannot fail."""

    _instance: Optional["Never"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NEVER"


NEVER = Never()


class Unification(str, Enum):
    CONCRETE = "concrete"
    ERASED_OUTPUT = "erased_output"
    ERASED_ERROR = "erased_error"
    ERASED = "erased"
    INFALLIBLE = "infallible"


def unification_for(output_type: Optional[type], error_type: Any) -> Unification:
    if error_type is NEVER:
        return Unification.INFALLIBLE
    if output_type is None and error_type is None:
        return Unification.ERASED
    if output_type is None:
        return Unification.ERASED_OUTPUT
    if error_type is None:
        return Unification.ERASED_ERROR
    return Unification.CONCRETE


@dataclass(frozen=True)
class ToolOutcome(Generic[T]):
    """Success value or failure of a single tool invocation."""

    ok: bool
    value: Any = None
    error: Any = None

    @classmethod
    def success(cls, value: Any) -> "ToolOutcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Any) -> "ToolOutcome":
        return cls(ok=False, error=error)

    def unwrap(self) -> Any:
        """Return the value, re-raising the failure if it is an exception."""
        if self.ok:
            return self.value
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"tool failed: {self.error!r}")

    def value_as(self, cls: Type[T]) -> T:
        if not self.ok:
            raise TypeError(f"outcome is a failure ({self.error!r}), it carries no value")
        if not isinstance(self.value, cls):
            raise TypeError(f"outcome value is `{type(self.value).__name__}`, not `{cls.__name__}`")
        return self.value

    def error_as(self, cls: Type[T]) -> T:
        if self.ok:
            raise TypeError("outcome is a success, it carries no error")
        if not isinstance(self.error, cls):
            raise TypeError(f"outcome error is `{type(self.error).__name__}`, not `{cls.__name__}`")
        return self.error


class ResultPolicy:
    """
    Applies one unification strategy to the raw result of a handler.

    :param output_type: concrete success type, or None to erase it
    :param error_type: concrete failure type, None to erase it, or NEVER
    """

    def __init__(self, output_type: Optional[type] = None, error_type: Any = None):
        if error_type is Never:
            error_type = NEVER
        if output_type is not None and not isinstance(output_type, type):
            raise TypeError(f"output_type must be a class or None, got {output_type!r}")
        if error_type is not None and error_type is not NEVER and not isinstance(error_type, type):
            raise TypeError(f"error_type must be a class, None or NEVER, got {error_type!r}")
        self.output_type = output_type
        self.error_type = error_type
        self.strategy = unification_for(output_type, error_type)

    def captures(self, exc: BaseException) -> bool:
        """Whether a raised exception is the tool's own failure rather than a bug."""
        if self.strategy is Unification.INFALLIBLE:
            return False
        if self.error_type is None:
            return isinstance(exc, Exception)
        return isinstance(exc, self.error_type)

    def check(self, function_name: str, outcome: ToolOutcome) -> ToolOutcome:
        if outcome.ok:
            if self.output_type is not None and not isinstance(outcome.value, self.output_type):
                raise ReturnTypeMismatch(function_name, self.output_type, outcome.value)
            return outcome

        if self.strategy is Unification.INFALLIBLE:
            raise ReturnTypeMismatch(function_name, Never, outcome.error, side="a failure")
        if self.error_type is not None and not isinstance(outcome.error, self.error_type):
            raise ReturnTypeMismatch(function_name, self.error_type, outcome.error, side="error")
        return outcome

    def wrap(self, function_name: str, result: Any) -> ToolOutcome:
        if not isinstance(result, ToolOutcome):
            result = ToolOutcome.success(result)
        return self.check(function_name, result)
