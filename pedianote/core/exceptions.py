"""Custom exceptions and error handling for the PediaNote service.

This module defines custom exception types and provides centralized
error handling with proper HTTP status codes and user-friendly messages.
"""

from typing import Optional, Dict, Any
from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger


class PediaNoteException(Exception):
    """Base exception for PediaNote errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class MissingApiKeyError(PediaNoteException):
    """Raised before any AI call when no access credential is configured."""

    def __init__(
        self,
        message: str = "API Key is missing",
        error_code: str = "API_KEY_MISSING",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class NoteGenerationError(PediaNoteException):
    """Raised when clinical note generation fails."""

    def __init__(
        self,
        message: str = "Failed to generate clinical note",
        error_code: str = "NOTE_GENERATION_FAILED",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class LabExtractionError(PediaNoteException):
    """Raised when lab-only extraction fails."""

    def __init__(
        self,
        message: str = "Failed to extract lab results",
        error_code: str = "LAB_EXTRACTION_FAILED",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class ModelError(PediaNoteException):
    """Raised when an AI model interaction fails or returns unusable data."""

    status_code = 503

    def __init__(
        self,
        message: str = "AI model interaction failed",
        error_code: str = "MODEL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class ValidationError(PediaNoteException):
    """Raised when input validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        error_code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class EncounterNotFoundError(PediaNoteException):
    """Raised when an encounter id is unknown."""

    status_code = 404

    def __init__(
        self,
        message: str = "Encounter not found",
        error_code: str = "ENCOUNTER_NOT_FOUND",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class EncounterBusyError(PediaNoteException):
    """Raised when a single-flight operation is already in progress."""

    status_code = 409

    def __init__(
        self,
        message: str = "Operation already in progress",
        error_code: str = "ENCOUNTER_BUSY",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class ResultUnavailableError(PediaNoteException):
    """Raised when an edit or export targets an encounter without a result."""

    status_code = 404

    def __init__(
        self,
        message: str = "No result has been generated for this encounter",
        error_code: str = "RESULT_UNAVAILABLE",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class RowNotFoundError(PediaNoteException):
    """Raised when a lab row or ICD code index does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str = "Row not found",
        error_code: str = "ROW_NOT_FOUND",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


def _error_body(message: str, code: Optional[str], error_type: str) -> Dict[str, Any]:
    return {
        "error": {
            "message": message,
            "code": code,
            "type": error_type
        }
    }


# Exception handlers for FastAPI

async def pedianote_exception_handler(
    request: Request,
    exc: PediaNoteException
) -> JSONResponse:
    """Handle custom PediaNote exceptions.

    Client errors (4xx) are logged as warnings and echo the exception message.
    Server side failures are logged as errors; model failures get a generic
    message so provider details do not leak to the client.

    Args:
        request: FastAPI request object
        exc: PediaNote exception

    Returns:
        JSON error response
    """
    bound = logger.bind(
        error_code=exc.error_code,
        details=exc.details,
        url=str(request.url),
        method=request.method
    )
    log = bound.warning if exc.status_code < 500 else bound.error
    log(f"{type(exc).__name__}: {exc.message}")

    message = exc.message
    if isinstance(exc, ModelError):
        message = "AI service temporarily unavailable. Please try again later."

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, exc.error_code, type(exc).__name__)
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: FastAPI request object
        exc: Generic exception

    Returns:
        JSON error response
    """
    logger.bind(
        error_type=type(exc).__name__,
        url=str(request.url),
        method=request.method
    ).error(f"Unexpected error: {str(exc)}")

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "An unexpected error occurred. Please try again later.",
            "INTERNAL_SERVER_ERROR",
            "InternalServerError"
        )
    )


def get_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get error response schemas for OpenAPI documentation.

    Returns:
        Dictionary of HTTP status codes and their error schemas
    """
    return {
        400: {
            "description": "Validation Error",
            "content": {
                "application/json": {
                    "example": _error_body("Invalid input data", "VALIDATION_ERROR", "ValidationError")
                }
            }
        },
        404: {
            "description": "Not Found",
            "content": {
                "application/json": {
                    "example": _error_body("Encounter not found", "ENCOUNTER_NOT_FOUND", "EncounterNotFoundError")
                }
            }
        },
        409: {
            "description": "Conflict",
            "content": {
                "application/json": {
                    "example": _error_body("Operation already in progress", "ENCOUNTER_BUSY", "EncounterBusyError")
                }
            }
        },
        503: {
            "description": "Service Unavailable",
            "content": {
                "application/json": {
                    "example": _error_body(
                        "AI service temporarily unavailable",
                        "MODEL_ERROR",
                        "ModelError"
                    )
                }
            }
        }
    }
