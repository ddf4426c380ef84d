"""Map the domain exception taxonomy onto HTTP responses.

Error bodies follow the shapes built in ``clinic_admin.core.exceptions``.
Authentication and authorization failures carry a ``redirect_to`` target:
the login page for a missing principal, the referring page for a role the
gate does not allow. Validation failures echo the submitted input (minus
passwords) so the form can be shown again with the user's values.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from clinic_admin.core.config import settings
from clinic_admin.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BaseCustomException,
    ValidationError,
    create_authentication_error_response,
    create_authorization_error_response,
    create_error_response,
    create_validation_error_response
)

logger = logging.getLogger(__name__)


def remember_form_input(request: Request, data: BaseModel) -> None:
    """Keep the submitted fields on the request for a later validation response"""
    request.state.form_input = data.model_dump(mode="json", exclude_unset=True)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _field_errors(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    field_errors: Dict[str, List[str]] = {}
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = location[0] if location else "body"
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        field_errors.setdefault(field, []).append(message)
    return field_errors


async def custom_exception_handler(request: Request, exc: BaseCustomException) -> JSONResponse:
    request_id = _request_id(request)

    if isinstance(exc, ValidationError):
        logger.info(f"Validation failed on {request.url.path}: {sorted(exc.field_errors)}")
        content = create_validation_error_response(
            exc,
            submitted=getattr(request.state, "form_input", None),
            request_id=request_id
        )
        return JSONResponse(status_code=exc.status_code, content=content)

    if isinstance(exc, AuthenticationError):
        content = create_authentication_error_response(
            exc,
            redirect_to=settings.LOGIN_URL,
            request_id=request_id
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers={"WWW-Authenticate": "Bearer"}
        )

    if isinstance(exc, AuthorizationError):
        content = create_authorization_error_response(
            exc,
            redirect_to=request.headers.get("referer") or "/",
            request_id=request_id
        )
        return JSONResponse(status_code=exc.status_code, content=content)

    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc, request_id=request_id)
    )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Render FastAPI's own input validation in the same shape as ours"""
    error = ValidationError(field_errors=_field_errors(exc.errors()))
    submitted = exc.body if isinstance(exc.body, dict) else None
    content = create_validation_error_response(
        error,
        submitted=submitted,
        request_id=_request_id(request)
    )
    return JSONResponse(status_code=422, content=content)


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseCustomException, custom_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
