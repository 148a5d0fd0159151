"""
Error handling utilities and recovery mechanisms.
"""

import logging
import asyncio
from typing import Any, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error class."""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class ValidationError(AppError):
    """Client input rejected before any analysis starts."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code, status_code=400)


class NoFilesError(ValidationError):
    def __init__(self, message: str = "No images uploaded. Please select at least one image."):
        super().__init__(message, code="NO_FILES")


class TooManyFilesError(ValidationError):
    def __init__(self, max_files: int):
        super().__init__(
            f"Too many files. Maximum is {max_files} files per request.",
            code="TOO_MANY_FILES"
        )


class FileTooLargeError(ValidationError):
    def __init__(self, max_size: str):
        super().__init__(
            f"File too large. Maximum size is {max_size} per file.",
            code="FILE_TOO_LARGE"
        )


class InvalidFileTypeError(ValidationError):
    def __init__(
        self,
        message: str = "Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed."
    ):
        super().__init__(message, code="INVALID_FILE_TYPE")


class InferenceError(AppError):
    """The inference service could not produce a reply for one file."""

    def __init__(self, message: str):
        super().__init__(message, code="INFERENCE_ERROR", status_code=502)


class AnalysisError(AppError):
    """Failure outside per-file isolation while analysing a batch."""

    def __init__(self, message: str = "Failed to analyze images"):
        super().__init__(message, code="ANALYSIS_ERROR", status_code=500)


def error_response(
    message: str,
    code: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        message: Human readable error message
        code: Stable machine-readable error code
        status_code: HTTP status code

    Returns:
        JSONResponse with ``{success, error, code}``
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "code": code
        }
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return error_response(exc.message, exc.code, exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response("Endpoint not found", "NOT_FOUND", exc.status_code)
    return error_response(str(exc.detail), "HTTP_ERROR", exc.status_code)


async def request_validation_error_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return error_response(
        "Invalid request body",
        "INVALID_REQUEST",
        status.HTTP_400_BAD_REQUEST
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=exc)
    return error_response("Internal server error", "SERVER_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


class ErrorRecovery:
    """Utilities for error recovery and fallback mechanisms."""

    @staticmethod
    async def with_timeout(
        func: Callable[[], Awaitable[Any]],
        timeout: Optional[float],
        timeout_message: str = "Operation timed out"
    ) -> Any:
        """
        Execute async function with timeout.

        Args:
            func: Async function to execute
            timeout: Timeout in seconds, ``None`` or non-positive disables it
            timeout_message: Error message on timeout

        Returns:
            Result of the function

        Raises:
            InferenceError: If timeout occurs
        """
        if not timeout or timeout <= 0:
            return await func()
        try:
            return await asyncio.wait_for(func(), timeout=timeout)
        except asyncio.TimeoutError:
            raise InferenceError(timeout_message)
