"""
Exception hierarchy for the program engine.

Rule: every error has a machine-readable `code` string so the delivery
layer can branch on it without parsing English messages.

A safety guard trip is NOT an error. Paused programs come back as normal
results with `status="paused"` / `strategy="pause"`.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class ProgramEngineError(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
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


class ValidationError(ProgramEngineError):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class GoalContextMissingError(ValidationError):
    code = "GOAL_CONTEXT_MISSING"

    def __init__(self, user_id: str):
        super().__init__(
            message="No nutrition goals found; a program cannot be generated.",
            details={"user_id": user_id},
        )


class AuthorizationError(ProgramEngineError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "ENTITLEMENT_DENIED"

    def __init__(self, user_id: str, action: str):
        super().__init__(
            message=f"User is not entitled to {action}.",
            details={"user_id": user_id, "action": action},
        )


class NotFoundError(ProgramEngineError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, entity: str, key: Any):
        super().__init__(
            message=f"{entity} {key} not found.",
            details={"entity": entity, "key": str(key)},
        )


class PersistenceError(ProgramEngineError):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(
            message=message,
            details={"operation": operation} if operation else {},
        )


class VersionConflictError(ProgramEngineError):
    http_status = status.HTTP_409_CONFLICT
    code = "VERSION_CONFLICT"

    def __init__(self, program_id: int, expected_version: int):
        super().__init__(
            message=(
                f"Program {program_id} is no longer at version {expected_version}; "
                "another update won the race."
            ),
            details={"program_id": program_id, "expected_version": expected_version},
        )


class InvalidSessionTransitionError(ProgramEngineError):
    http_status = status.HTTP_409_CONFLICT
    code = "INVALID_SESSION_TRANSITION"

    def __init__(self, day: date, current: str, target: str):
        super().__init__(
            message=f"Session on {day} is {current}; cannot move to {target}.",
            details={"day": str(day), "current": current, "target": target},
        )


class ProgramBlockedError(ProgramEngineError):
    http_status = status.HTTP_409_CONFLICT
    code = "PROGRAM_BLOCKED"

    def __init__(self, program_id: int):
        super().__init__(
            message=f"Program {program_id} is blocked and cannot be resumed.",
            details={"program_id": program_id},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def engine_exception_handler(request: Request, exc: ProgramEngineError) -> JSONResponse:
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
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
