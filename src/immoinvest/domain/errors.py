# src/immoinvest/domain/errors.py
from __future__ import annotations

from typing import Optional


class CalculatorError(ValueError):
    """
    Base class for every error a calculator raises on bad input.

    Messages are French and meant to be shown to the end user as-is.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        out = {"error": self.message}
        if self.field:
            out["field"] = self.field
        return out


class MissingRequiredFieldError(CalculatorError):
    """A required input is absent, zero, non-numeric or has the wrong sign."""


class InvalidRangeError(CalculatorError):
    """A ratio, percentage or option falls outside its valid domain."""


class UnreachableTargetError(CalculatorError):
    """A solver cannot meet the requested target with non-negative financing."""
