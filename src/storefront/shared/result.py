"""Typed outcome returned by every user-triggered storefront operation."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class OperationResult:
    """Result of a cart, address or checkout operation.

    Expected failures (validation, stock, gateway) are carried in ``error``
    rather than raised. ``is_stale`` marks a result that resolved after the
    user had already moved on and was therefore discarded.
    """

    success: bool
    value: Any = None
    error: Exception | None = None
    warnings: tuple[Exception, ...] = ()
    is_stale: bool = False

    @classmethod
    def ok(cls, value=None, warnings=()) -> "OperationResult":
        return cls(success=True, value=value, warnings=tuple(warnings))

    @classmethod
    def fail(cls, error: Exception, value=None) -> "OperationResult":
        return cls(success=False, value=value, error=error)

    @classmethod
    def stale(cls) -> "OperationResult":
        return cls(success=False, is_stale=True)

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None
