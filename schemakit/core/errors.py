from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        next_actions: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}
        self.next_actions = next_actions
        super().__init__(message)


class InvalidInputError(AppError):
    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        next_actions: str | None = "Check the request payload and try again.",
    ) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="INVALID_INPUT",
            message=message,
            details=details,
            next_actions=next_actions,
        )


class ForbiddenError(AppError):
    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        next_actions: str | None = "System tables and protected columns cannot be modified.",
    ) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
            message=message,
            details=details,
            next_actions=next_actions,
        )


class NotFoundError(AppError):
    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        next_actions: str | None = "Check the name, or list tables with GET /api/tables.",
    ) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            message=message,
            details=details,
            next_actions=next_actions,
        )


class DuplicateTableError(AppError):
    def __init__(self, table_name: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="DATABASE_DUPLICATE",
            message=f"Table '{table_name}' already exists.",
            details={"table_name": table_name},
            next_actions="Choose a different table name or update the existing table.",
        )


class SqlExecutionError(AppError):
    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        timed_out: bool = False,
    ) -> None:
        super().__init__(
            status_code=status.HTTP_408_REQUEST_TIMEOUT if timed_out else status.HTTP_400_BAD_REQUEST,
            code="SQL_TIMEOUT" if timed_out else "SQL_EXECUTION_ERROR",
            message=message,
            details=details,
            next_actions=(
                "Simplify the statement or add filters so it finishes within the time limit."
                if timed_out
                else "Check the SQL syntax and the referenced objects."
            ),
        )


class SqlImportError(AppError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="IMPORT_ERROR",
            message=message,
            details=details,
            next_actions="Fix the failing statement in the file; nothing was imported.",
        )


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    next_actions: str | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "code": code,
        "message": message,
        "details": details or {},
    }
    if next_actions:
        content["nextActions"] = next_actions
    return JSONResponse(status_code=status_code, content={"error": content})


def route_error_response(error_code: str, exc: AppError) -> JSONResponse:
    """Flat failure body used by the /database engine routes."""
    content: dict[str, Any] = {
        "error": error_code,
        "message": exc.message,
        "statusCode": exc.status_code,
    }
    if exc.next_actions:
        content["nextActions"] = exc.next_actions
    return JSONResponse(status_code=exc.status_code, content=content)


async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        next_actions=exc.next_actions,
    )


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        code="VALIDATION_ERROR",
        message="Request validation failed.",
        details={"issues": exc.errors()},
    )


async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
    return error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="INTERNAL_SERVER_ERROR",
        message="Unexpected server error.",
        details={"reason": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
