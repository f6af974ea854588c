"""
Commission engine error taxonomy.

The engine never recovers from these itself; they are raised to the caller
(payment submission flow, preview endpoint, report builder).
"""
from decimal import Decimal
from typing import Any, Optional


class CommissionEngineError(Exception):
    """Base class for every error raised by the commission engine."""


class ConfigurationError(CommissionEngineError):
    """A percentage or input amount is outside its allowed range."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        return {
            "error": "configuration_error",
            "detail": self.message,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
        }


class ReconciliationError(CommissionEngineError):
    """Computed amounts do not add up to the whole they were split from."""

    def __init__(self, invariant: str, expected: Decimal, actual: Decimal, message: Optional[str] = None):
        self.invariant = invariant
        self.expected = expected
        self.actual = actual
        self.delta = actual - expected
        self.message = message or (
            f"Reconciliation failed for {invariant}: expected {expected}, "
            f"got {actual} (delta {self.delta})"
        )
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": "reconciliation_error",
            "detail": self.message,
            "invariant": self.invariant,
            "expected": str(self.expected),
            "actual": str(self.actual),
            "delta": str(self.delta),
        }
