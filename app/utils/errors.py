from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
import traceback
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class PortalError(Exception):
    """
    Base for errors that map onto an error envelope.

    Subclasses fix the HTTP status and the ``error_type`` reported in meta;
    ``error_code`` names the specific failure for clients.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "PORTAL_ERROR"
    default_message = "Request failed"
    default_code = "ERROR"
    log_level = "WARNING"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.error_code = error_code or self.default_code
        self.errors = errors
        self.meta = meta

    def envelope_meta(self) -> Dict[str, Any]:
        return {"error_type": self.error_type, **(self.meta or {})}


class DatabaseError(PortalError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "DATABASE_ERROR"
    default_message = "A database error occurred"
    default_code = "DB_ERROR"
    log_level = "ERROR"


class InputValidationError(PortalError):
    """Malformed field set, disallowed field name or a message without content."""

    error_type = "VALIDATION_ERROR"
    default_message = "Invalid input"
    default_code = "VALIDATION_ERROR"


class AuthenticationError(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"
    default_code = "UNAUTHORIZED"


class AuthorizationError(PortalError):
    """Role or ownership violation. ``meta`` names the blocking party when there is one."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "AUTHORIZATION_ERROR"
    default_message = "Access denied"
    default_code = "AUTHZ_ERROR"


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "NOT_FOUND_ERROR"
    default_message = "Resource not found"
    default_code = "NOT_FOUND"


def _format_errors(errors) -> List[Dict[str, Any]]:
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
            "input": error.get("input"),
        }
        for error in errors
    ]


def setup_error_handlers(app: FastAPI):
    """Setup custom error handlers."""

    @app.exception_handler(PortalError)
    async def portal_exception_handler(request: Request, exc: PortalError):
        logger.log(
            exc.log_level,
            f"{type(exc).__name__} [{exc.error_code}] on {request.url.path}: {exc.message}",
        )

        # Database failures never leak their detail
        message = (
            exc.default_message if isinstance(exc, DatabaseError) else exc.message
        )
        return ResponseBuilder.error(
            request=request,
            message=message,
            errors=exc.errors,
            error_code=exc.error_code,
            status_code=exc.status_code,
            meta=exc.envelope_meta(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.warning(f"Request Validation Error: {exc.errors()}")

        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=_format_errors(exc.errors()),
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    # A pydantic error escaping a handler means our own response data is broken
    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(f"Pydantic Validation Error: {exc.errors()}")

        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy Error: {str(exc)}")

        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled Exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")

        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
