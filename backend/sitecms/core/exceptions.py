"""Application exception hierarchy following RFC 7807 Problem Details."""

from typing import Any
from uuid import UUID

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception following RFC 7807.

    All domain errors inherit from this class so that callers can pass them
    through unchanged and the app shell can render them consistently.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.error_detail = detail or {}

        super().__init__(
            status_code=status_code,
            detail={
                "type": f"https://api.sitecms.local/errors/{error_code}",
                "title": error_code.replace("_", " ").title(),
                "status": status_code,
                "detail": message,
                "instance": None,  # Will be set by exception handler
                **self.error_detail,
            },
        )

    def __str__(self) -> str:
        return self.message


# ============================================================================
# Validation Exceptions (400)
# ============================================================================


class ValidationError(AppException):
    """Malformed identifier, missing required field or malformed bulk input."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.errors = errors or []
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="validation_error",
            message=message,
            detail={"errors": self.errors},
        )


class InvalidIdentifierError(ValidationError):
    """Identifier is not a well-formed UUID."""

    def __init__(self, resource: str, value: Any, field: str = "id") -> None:
        super().__init__(
            message=f"Invalid {resource} ID format: {value}",
            errors=[{"field": field, "value": str(value)}],
        )


# ============================================================================
# Resource Exceptions (404, 409)
# ============================================================================


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(
        self,
        resource: str,
        identifier: str | UUID | None = None,
    ) -> None:
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="not_found",
            message=message,
            detail={"resource": resource},
        )


class ConflictError(AppException):
    """Write would violate a uniqueness rule."""

    def __init__(
        self,
        message: str,
        error_code: str = "conflict",
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            message=message,
            detail=detail,
        )


class DuplicateTranslationError(ConflictError):
    """A translation for this content element and language already exists."""

    def __init__(self, content_element_id: UUID, language_id: UUID) -> None:
        super().__init__(
            message="Translation for this content element and language already exists",
            error_code="duplicate_translation",
            detail={
                "content_element_id": str(content_element_id),
                "language_id": str(language_id),
            },
        )


class LanguageAlreadyExistsError(ConflictError):
    """Language code or name is already used on this website."""

    def __init__(self, website_id: UUID, field: str, value: str) -> None:
        super().__init__(
            message=f"Language with {field}='{value}' already exists for this website",
            error_code="language_already_exists",
            detail={"website_id": str(website_id), "field": field, "value": value},
        )


class TransactionConflictError(ConflictError):
    """Concurrent write collided with this transaction; the caller should retry."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            message="Transaction conflict detected. Please retry the operation.",
            error_code="transaction_conflict",
            detail={"operation": operation},
        )


# ============================================================================
# Infrastructure Exceptions (503)
# ============================================================================


class DatabaseError(AppException):
    """Database connection or query error.

    Keeps the driver's message and error code for diagnostics.
    """

    def __init__(
        self,
        message: str = "Database error occurred",
        original_error: str | None = None,
        error_code: str | None = None,
    ) -> None:
        self.original_error = original_error
        self.original_code = error_code

        detail: dict[str, Any] = {}
        if original_error:
            detail["original_error"] = original_error
        if error_code:
            detail["original_code"] = error_code

        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="database_error",
            message=message,
            detail=detail,
        )
