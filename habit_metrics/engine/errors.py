"""
Errors raised by the engine itself.

Kept free of the web stack so the engine imports on its own. The HTTP
status is a plain int; `habit_metrics.core.errors` builds the rest of the
hierarchy and the FastAPI handlers on top of this base.
"""
from __future__ import annotations

from typing import Any


class HabitMetricsException(Exception):
    """Base class for all application-level errors."""
    http_status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidDateKeyError(HabitMetricsException):
    http_status = 422
    code = "INVALID_DATE_KEY"

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid date key {value!r}. Expected YYYY-MM-DD.",
            details={"value": str(value)},
        )


class InvalidPeriodTypeError(HabitMetricsException):
    http_status = 422
    code = "INVALID_PERIOD_TYPE"

    def __init__(self, period_type: Any):
        super().__init__(
            message=f"Unknown period type {period_type!r}. Expected daily, weekly or monthly.",
            details={"period_type": str(period_type)},
        )
