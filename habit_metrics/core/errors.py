"""
Custom exception hierarchy for the habit metrics service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

The base class and the calendar errors live in habit_metrics.engine.errors
so the engine imports without the web stack. Engine-level errors share the
same base so a calculation failure surfaced through the API keeps the
`{code, message, details}` envelope.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from habit_metrics.engine.errors import (  # noqa: F401  re-exported
    HabitMetricsException,
    InvalidDateKeyError,
    InvalidPeriodTypeError,
)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class MissingGoalError(HabitMetricsException):
    """Habit has entries but no goal. Completion metrics are skipped."""
    http_status = status.HTTP_409_CONFLICT
    code = "MISSING_GOAL"

    def __init__(self, habit_id: int):
        super().__init__(
            message=f"Habit {habit_id} has no goal configured.",
            details={"habit_id": habit_id},
        )


class StoreWriteConflictError(HabitMetricsException):
    http_status = status.HTTP_409_CONFLICT
    code = "STORE_WRITE_CONFLICT"

    def __init__(self, key: dict[str, Any]):
        super().__init__(
            message="Metric row could not be written after a conflict retry.",
            details={"key": {k: str(v) if v is not None else None for k, v in key.items()}},
        )


class RecalculationFailure(HabitMetricsException):
    code = "RECALCULATION_FAILED"

    def __init__(self, habit_id: int, owner_id: str, reason: str):
        super().__init__(
            message=f"Recalculation failed for habit {habit_id}: {reason}",
            details={"habit_id": habit_id, "owner_id": owner_id},
        )


class HabitNotFoundError(HabitMetricsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "HABIT_NOT_FOUND"

    def __init__(self, habit_id: int):
        super().__init__(
            message=f"Habit {habit_id} not found.",
            details={"habit_id": habit_id},
        )


class EntryNotFoundError(HabitMetricsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int, habit_id: Optional[int] = None):
        details: dict[str, Any] = {"entry_id": entry_id}
        if habit_id is not None:
            details["habit_id"] = habit_id
        super().__init__(message=f"Entry {entry_id} not found.", details=details)


class OwnerRequiredError(HabitMetricsException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "OWNER_REQUIRED"

    def __init__(self):
        super().__init__(message="Missing X-Owner-Id header.")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def habit_metrics_exception_handler(
    request: Request, exc: HabitMetricsException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
