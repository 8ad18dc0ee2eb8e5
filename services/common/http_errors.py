"""
Shared HTTP error classes and utilities for all Bookwell services.

Provides:
- Base exception class for API errors
- Common subclasses (Validation, NotFound, Conflict, Service, Store, Provider)
- Shared error response model
- Utility to convert exceptions to error responses
- FastAPI exception handler registration

Basic Exception Usage:
>>> from services.common.http_errors import ValidationError, NotFoundError
>>>
>>> error = ValidationError("Invalid email format", field="guest_email", value="x")
>>> error = NotFoundError("Booking", "5f0c...")

FastAPI Integration:
>>> from fastapi import FastAPI
>>> from services.common.http_errors import register_bookwell_exception_handlers
>>>
>>> app = FastAPI()
>>> register_bookwell_exception_handlers(app)

Error Code Taxonomy:
===================
- VALIDATION_FAILED : Input validation errors (400)
- NOT_FOUND : Resource not found (404)
- CONFLICT : Request conflicts with current state (409)
- DATABASE_ERROR : Store/transaction failures (500)
- SERVICE_* : Internal service errors (5xx)
- PROVIDER_* : External provider integration errors (502)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    """
    Standardized error codes for all Bookwell services.

    Codes are ALL_CAPS.
    """

    # General errors (4xx)
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Service errors (5xx)
    SERVICE_ERROR = "SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Provider errors (502)
    PROVIDER_ERROR = "PROVIDER_ERROR"
    MEETING_PROVISIONING_FAILED = "MEETING_PROVISIONING_FAILED"
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"


class ErrorResponse(BaseModel):
    """
    Standardized error response model for all Bookwell services.

    Attributes:
        type: Error type categorization (e.g., "validation_error", "conflict")
        message: Human-readable error message
        details: Optional dictionary containing additional error context
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Identifier for tracing, taken from the request context
    """

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


def _current_request_id() -> str:
    request_id = request_id_var.get()
    if not request_id or request_id == "uninitialized":
        return str(uuid.uuid4())
    return request_id


class BookwellAPIException(Exception):
    """
    Base exception class for all Bookwell API errors.

    Carries everything the HTTP layer needs to build an ErrorResponse, so
    domain code can raise it without knowing about FastAPI.

    Args:
        message: The error message to display to users
        details: Optional dictionary with additional error context
        error_type: Error category string (defaults to "internal_error")
        error_code: Specific error code from ErrorCode enum
        status_code: HTTP status code (defaults to 500)
        request_id: Optional request ID (taken from context if not provided)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or _current_request_id()
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse, folding the error code into details."""
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details if details else None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class ValidationError(BookwellAPIException):
    """
    Exception for malformed or out-of-range input (HTTP 400).

    Args:
        message: Human-readable description of the validation failure
        field: Optional field name that failed validation
        value: Optional invalid value that was provided
        details: Optional additional validation context
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        validation_details = dict(details or {})
        if field:
            validation_details["field"] = field
        if value is not None:
            validation_details["value"] = str(value)

        super().__init__(
            message=message,
            details=validation_details,
            error_type="validation_error",
            error_code=ErrorCode.VALIDATION_FAILED,
            status_code=400,
        )
        self.field = field
        self.value = value


class NotFoundError(BookwellAPIException):
    """
    Exception for resource not found errors (HTTP 404).

    Missing, soft-deleted and not-owned resources all raise this so callers
    cannot probe for records belonging to other owners.

    Examples:
        >>> NotFoundError("Booking", "b-123").message
        'Booking b-123 not found'
        >>> NotFoundError("Event type").message
        'Event type not found'
    """

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if identifier:
            message = f"{resource} {identifier} not found"
        else:
            message = f"{resource} not found"

        notfound_details = {
            **(details or {}),
            "resource": resource,
            "identifier": identifier,
        }

        super().__init__(
            message=message,
            details=notfound_details,
            error_type="not_found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
        )
        self.resource = resource
        self.identifier = identifier


class ConflictError(BookwellAPIException):
    """
    Exception for requests that conflict with current state (HTTP 409).

    Raised for overlapping bookings and for invalid state transitions such
    as cancelling a booking that is already cancelled.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.CONFLICT,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="conflict",
            error_code=code,
            status_code=409,
        )


class ServiceError(BookwellAPIException):
    """
    Exception for internal service errors (HTTP 502 by default).

    Args:
        message: Description of the service failure
        details: Optional additional service context
        code: Specific error code (defaults to SERVICE_ERROR)
        status_code: HTTP status code (defaults to 502)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="service_error",
            error_code=code,
            status_code=status_code,
        )


class StoreError(ServiceError):
    """Transaction or database infrastructure failure (HTTP 500)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            details=details,
            code=ErrorCode.DATABASE_ERROR,
            status_code=500,
        )


class ProviderError(BookwellAPIException):
    """
    Exception for external provider integration errors (HTTP 502).

    Attributes:
        provider: Name of the external provider (google, email, ...)
        response_body: Raw response body from the provider, for debugging
    """

    def __init__(
        self,
        message: str,
        provider: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        status_code: int = 502,
        response_body: Optional[str] = None,
    ):
        provider_details = {**(details or {}), "provider": provider}
        if response_body:
            provider_details["response_body"] = response_body[:500]

        super().__init__(
            message=message,
            details=provider_details,
            error_type="provider_error",
            error_code=code,
            status_code=status_code,
        )
        self.provider = provider
        self.response_body = response_body


class ProvisioningError(ProviderError):
    """Creating, updating or deleting an external meeting failed."""

    def __init__(
        self,
        message: str,
        provider: str = "meeting",
        details: Optional[Dict[str, Any]] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            provider=provider,
            details=details,
            code=ErrorCode.MEETING_PROVISIONING_FAILED,
            response_body=response_body,
        )


class NotificationError(ProviderError):
    """Sending a notification failed."""

    def __init__(
        self,
        message: str,
        provider: str = "email",
        details: Optional[Dict[str, Any]] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            provider=provider,
            details=details,
            code=ErrorCode.NOTIFICATION_FAILED,
            response_body=response_body,
        )


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    Generic exceptions become an "internal_error" response whose message
    does not leak internals. The original exception type is kept in details.
    """
    if isinstance(exc, BookwellAPIException):
        return exc.to_error_response()
    elif isinstance(exc, HTTPException):
        detail = (
            exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
        )
        return ErrorResponse(
            type="http_error",
            message=detail.get("message", "HTTP error"),
            details=detail,
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )
    elif isinstance(exc, RequestValidationError):
        return ErrorResponse(
            type="validation_error",
            message="Request validation failed",
            details={
                "code": ErrorCode.VALIDATION_FAILED.value,
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                    for err in exc.errors()
                ],
            },
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )
    else:
        return ErrorResponse(
            type="internal_error",
            message="An unexpected error occurred",
            details={
                "code": ErrorCode.INTERNAL_ERROR.value,
                "error_type": type(exc).__name__,
            },
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )


def register_bookwell_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers that render every error as an ErrorResponse.

    - BookwellAPIException: the exception's own status code
    - RequestValidationError: 400, same shape as ValidationError
    - HTTPException: the exception's status code, normalized body
    - anything else: 500 internal_error
    """

    @app.exception_handler(BookwellAPIException)
    async def bookwell_api_exception_handler(
        request: Request, exc: BookwellAPIException
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                error_type=exc.error_type,
                message=exc.message,
                path=request.url.path,
            )
        error_response = exc.to_error_response()
        return JSONResponse(
            status_code=exc.status_code, content=error_response.model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error_response = exception_to_response(exc)
        return JSONResponse(status_code=400, content=error_response.model_dump())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        error_response = exception_to_response(exc)
        return JSONResponse(
            status_code=exc.status_code, content=error_response.model_dump()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception("Unhandled exception", path=request.url.path)
        error_response = exception_to_response(exc)
        return JSONResponse(status_code=500, content=error_response.model_dump())
