import pytest
from sqlalchemy.exc import IntegrityError

from clinic_admin.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    create_validation_error_response,
    handle_integrity_error
)


@pytest.mark.unit
class TestExceptionTaxonomy:
    """Test status codes and error bodies"""

    @pytest.mark.parametrize("exc,status_code,error_code", [
        (ValidationError(), 422, "VALIDATION_ERROR"),
        (ConflictError(), 422, "CONFLICT_ERROR"),
        (AuthenticationError(), 401, "AUTHENTICATION_ERROR"),
        (AuthorizationError(), 403, "AUTHORIZATION_ERROR"),
        (NotFoundError(), 404, "NOT_FOUND_ERROR"),
    ])
    def test_defaults(self, exc, status_code: int, error_code: str) -> None:
        """Test each exception's default status and code"""
        assert exc.status_code == status_code
        assert exc.error_code == error_code

    def test_integrity_error_becomes_field_conflict(self) -> None:
        """Test a unique violation maps onto the named field"""
        error = IntegrityError("INSERT INTO users", {}, Exception("UNIQUE constraint failed: users.email"))

        conflict = handle_integrity_error(error, "email", "The email has already been taken.")

        assert isinstance(conflict, ValidationError)
        assert conflict.status_code == 422
        assert conflict.field_errors == {"email": ["The email has already been taken."]}

    def test_validation_body_never_echoes_passwords(self) -> None:
        """Test password-like keys are dropped from the echoed input"""
        body = create_validation_error_response(
            ValidationError(field_errors={"email": ["bad"]}),
            submitted={"email": "a@x.com", "password": "secret1", "password_confirmation": "secret1"}
        )

        assert body["validation_errors"] == {"email": ["bad"]}
        assert body["input"] == {"email": "a@x.com"}
