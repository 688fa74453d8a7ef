"""
Error Handlers
API exception hierarchy and the FastAPI handlers that render it.

Every error response has the shape ``{"error": <message>, "code": ..., "details": ...}``.
"""

import logging
from typing import Dict, Optional, Union
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict = None,
        code: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.code = code or self.__class__.__name__
        self.headers = headers
        super().__init__(self.message)


class InvalidRequestError(APIError):
    """Exception raised for invalid requests."""

    def __init__(self, message: str, details: dict = None, code: Optional[str] = None):
        super().__init__(
            message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details, code=code
        )


class AuthenticationError(APIError):
    """Exception raised when a request carries no valid session."""

    def __init__(self, message: str = "Unauthorized", code: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED, code=code)


class PermissionDeniedError(APIError):
    """Exception raised when the caller may not act on a resource."""

    def __init__(self, message: str = "Forbidden", code: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN, code=code)


class ResourceNotFoundError(APIError):
    """Exception raised when resource is not found."""

    def __init__(
        self,
        resource: str,
        resource_id: Union[int, str, None] = None,
        message: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(
            message=message or f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": str(resource_id) if resource_id else None},
            code=code,
        )


class ConflictError(APIError):
    """Exception raised when a request collides with existing state."""

    def __init__(self, message: str, details: dict = None, code: Optional[str] = None):
        super().__init__(
            message=message, status_code=status.HTTP_409_CONFLICT, details=details, code=code
        )


class RateLimitError(APIError):
    """Exception raised when a caller exceeds a per-resource limit."""

    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None, details: dict = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
            headers=headers,
        )


class UpstreamServiceError(APIError):
    """Exception raised when an outbound provider (SMS, email, storage) fails."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


def setup_error_handlers(app: FastAPI) -> None:
    """
    Set up custom error handlers for the FastAPI app.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        """Handle custom API errors."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"API error: {exc.message}",
            extra={
                "status_code": exc.status_code,
                "code": exc.code,
                "path": request.url.path,
            },
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code, "details": exc.details},
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Render HTTPExceptions raised by dependencies in the common shape."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.warning(f"Validation error: {exc}", extra={"path": request.url.path})

        errors = []
        for error in exc.errors():
            errors.append(
                {
                    "loc": [str(part) for part in error.get("loc", [])],
                    "msg": str(error.get("msg", "")),
                    "type": error.get("type", ""),
                }
            )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Request validation failed",
                "code": "ValidationError",
                "details": errors,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unexpected error: {exc}", exc_info=True, extra={"path": request.url.path})

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An unexpected error occurred",
                "code": "InternalServerError",
            },
        )
