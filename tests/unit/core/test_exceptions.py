"""Unit tests for the exception hierarchy."""

import pytest

from src.core.exceptions import (
    BusinessRuleError,
    ConfigurationError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    OpticaError,
    OriginNotAllowedError,
    UnauthorizedError,
    ValidationError,
)


@pytest.mark.unit
class TestOpticaError:
    """Base exception behaviour."""

    def test_accepts_enum_or_string_code(self) -> None:
        """Test error codes are stored as plain strings."""
        from_enum = OpticaError(ErrorCode.NOT_FOUND, "missing")
        from_string = OpticaError("CUSTOM_CODE", "custom")

        assert from_enum.error_code == "NOT_FOUND"
        assert from_string.error_code == "CUSTOM_CODE"

    def test_defaults_to_server_error(self) -> None:
        """Test errors without an explicit status surface as 500."""
        error = OpticaError(ErrorCode.INTERNAL_ERROR, "boom")

        assert error.status_code == 500
        assert error.is_client_error is False
        assert error.context == {}

    def test_cause_is_chained(self) -> None:
        """Test the original exception becomes ``__cause__``."""
        cause = KeyError("id")

        error = OpticaError(ErrorCode.INTERNAL_ERROR, "boom", cause=cause)

        assert error.cause is cause
        assert error.__cause__ is cause

    def test_string_representations(self) -> None:
        """Test str and repr include the code and context."""
        error = OpticaError(
            ErrorCode.VALIDATION_ERROR, "bad rut", 400, context={"field": "rut"}
        )

        assert str(error) == "[VALIDATION_ERROR] bad rut"
        assert repr(error) == (
            "OpticaError(error_code='VALIDATION_ERROR', message='bad rut', "
            "status_code=400, context={'field': 'rut'})"
        )


@pytest.mark.unit
class TestSpecializedErrors:
    """Status codes and codes carried by the subclasses."""

    @pytest.mark.parametrize(
        ("error_class", "status_code", "error_code"),
        [
            (ValidationError, 400, ErrorCode.VALIDATION_ERROR),
            (UnauthorizedError, 401, ErrorCode.UNAUTHORIZED),
            (ForbiddenError, 403, ErrorCode.FORBIDDEN),
            (NotFoundError, 404, ErrorCode.NOT_FOUND),
            (BusinessRuleError, 422, ErrorCode.REQUEST_ERROR),
        ],
    )
    def test_client_errors(
        self,
        error_class: type[OpticaError],
        status_code: int,
        error_code: ErrorCode,
    ) -> None:
        """Test each subclass carries its HTTP status."""
        error = error_class("message")  # type: ignore[call-arg]

        assert error.status_code == status_code
        assert error.error_code == error_code.value
        assert error.is_client_error is True

    def test_origin_not_allowed(self) -> None:
        """Test origin denials are distinguishable client errors."""
        error = OriginNotAllowedError("https://evil.example.com")

        assert error.status_code == 403
        assert error.error_code == "ORIGIN_NOT_ALLOWED"
        assert error.origin == "https://evil.example.com"
        assert error.message == "Not allowed by CORS: https://evil.example.com"

    def test_configuration_error_keeps_problems(self) -> None:
        """Test configuration errors carry one line per invalid setting."""
        error = ConfigurationError("invalid", problems=["PORT: too large"])

        assert error.problems == ["PORT: too large"]
        assert error.context == {"problems": ["PORT: too large"]}
        assert error.error_code == "CONFIGURATION_ERROR"
