from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from fastapi import status
import logging

logger = logging.getLogger(__name__)


class BaseCustomException(Exception):
    """Base class for custom exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(BaseCustomException):
    """Exception for validation errors.

    ``field_errors`` maps a field name to the list of reasons it was rejected.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        status_code: int = 422
    ):
        self.field_errors = field_errors or {}
        super().__init__(
            message=message,
            status_code=status_code,
            details=details,
            error_code=error_code or "VALIDATION_ERROR"
        )


class ConflictError(ValidationError):
    """A write lost a race on a unique constraint.

    Surfaced to callers like any other validation failure on the offending field.
    """

    def __init__(
        self,
        message: str = "Resource conflict",
        field_errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            field_errors=field_errors,
            details=details,
            error_code=error_code or "CONFLICT_ERROR"
        )


class AuthenticationError(BaseCustomException):
    """Exception for authentication errors"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
            error_code=error_code or "AUTHENTICATION_ERROR"
        )


class AuthorizationError(BaseCustomException):
    """Exception for authorization errors"""

    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
            error_code=error_code or "AUTHORIZATION_ERROR"
        )


class NotFoundError(BaseCustomException):
    """Exception for resource not found errors"""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error_code=error_code or "NOT_FOUND_ERROR"
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# Exception handler functions
def create_error_response(
    exception: BaseCustomException,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create standardized error response"""
    response = {
        "error": exception.__class__.__name__.replace("Error", " Error"),
        "message": exception.message,
        "error_code": exception.error_code,
        "timestamp": _now(),
        "request_id": request_id
    }

    if exception.details:
        response["details"] = exception.details

    return response


def create_validation_error_response(
    exception: ValidationError,
    submitted: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create validation error response.

    ``submitted`` is echoed back as ``input`` so a form can be re-populated;
    the password is never echoed.
    """
    response = {
        "error": "Validation Error",
        "message": exception.message,
        "error_code": exception.error_code,
        "validation_errors": exception.field_errors,
        "timestamp": _now(),
        "request_id": request_id
    }

    if submitted is not None:
        response["input"] = {
            key: value for key, value in submitted.items()
            if "password" not in key.lower()
        }

    if exception.details:
        response["details"] = exception.details

    return response


def create_authentication_error_response(
    exception: AuthenticationError,
    redirect_to: Optional[str] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create authentication error response"""
    response = {
        "error": "Authentication Error",
        "message": exception.message,
        "error_code": exception.error_code,
        "requires_login": True,
        "redirect_to": redirect_to,
        "timestamp": _now(),
        "request_id": request_id
    }

    if exception.details:
        response["details"] = exception.details

    return response


def create_authorization_error_response(
    exception: AuthorizationError,
    redirect_to: Optional[str] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create authorization error response"""
    response = {
        "error": "Authorization Error",
        "message": exception.message,
        "error_code": exception.error_code,
        "redirect_to": redirect_to,
        "timestamp": _now(),
        "request_id": request_id
    }

    required_roles = exception.details.get("required_roles")
    if required_roles:
        response["required_roles"] = required_roles

    return response


def handle_integrity_error(error: Exception, field: str, message: str) -> ConflictError:
    """Turn a unique-constraint violation into a field-level conflict"""
    logger.warning(f"Integrity error on {field}: {error.__class__.__name__}")

    return ConflictError(
        message="Validation failed",
        field_errors={field: [message]},
        details={"constraint": field}
    )
