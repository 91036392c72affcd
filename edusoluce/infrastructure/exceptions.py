"""
Custom exception classes for the EduSoluce assessment engine.

Provides structured error handling with user-friendly messages and proper
error categorization for catalog, session and persistence failures.
"""

from __future__ import annotations

from typing import Any


class EduSoluceError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(EduSoluceError):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class MultipleValidationError(EduSoluceError):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.message, "value": e.value} for e in errors
                ]
            },
            user_message="Please correct the following errors and try again.",
        )


class InvalidResponseError(ValidationError):
    """Raised when a selected option index falls outside the item's options."""

    def __init__(self, item_id: str, value: Any, option_count: int):
        self.item_id = item_id
        self.option_count = option_count
        super().__init__(
            field="response",
            message=f"Answer {value!r} for '{item_id}' must be between 0 and {option_count - 1}",
            value=value,
            details={"item_id": item_id, "value": value, "option_count": option_count},
        )

    def _get_default_user_message(self) -> str:
        return "Please select one of the available options."


class CatalogIntegrityError(EduSoluceError):
    """Raised when the static assessment catalog violates its invariants."""

    def __init__(
        self, message: str, source: str | None = None, details: dict[str, Any] | None = None
    ):
        self.source = source
        super().__init__(
            message=message,
            details=details or {"source": source},
            user_message="Assessment content is unavailable. Please contact support.",
        )


class AssessmentNotFoundError(EduSoluceError):
    """Raised when an assessment id is not present in the catalog."""

    def __init__(self, assessment_id: str, role: str | None = None):
        self.assessment_id = assessment_id
        self.role = role
        super().__init__(
            message=f"Assessment '{assessment_id}' not found",
            details={"assessment_id": assessment_id, "role": role},
        )

    def _get_default_user_message(self) -> str:
        return (
            "The requested assessment could not be found. "
            "It may have been moved or is no longer available."
        )


class AreaNotFoundError(EduSoluceError):
    """Raised when an area id is not part of the assessment being taken."""

    def __init__(self, area_id: str):
        self.area_id = area_id
        super().__init__(message=f"Area '{area_id}' not found", details={"area_id": area_id})

    def _get_default_user_message(self) -> str:
        return "The selected assessment area could not be found. Please refresh and try again."


class SessionError(EduSoluceError):
    """Raised when assessment session operations fail."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.session_id = session_id
        super().__init__(
            message=message,
            details=details or {"session_id": session_id},
            user_message="Session error occurred. Please restart the assessment and try again.",
        )


class SessionNotFoundError(SessionError):
    """Raised when a session is not found."""

    def __init__(self, session_id: str):
        super().__init__(message=f"Session with ID {session_id} not found", session_id=session_id)

    def _get_default_user_message(self) -> str:
        return "Your assessment session has expired. Please start the assessment again."


class SessionStateError(SessionError):
    """Raised when an action is not allowed in the session's current state."""

    def __init__(self, action: str, state: str, session_id: str | None = None):
        self.action = action
        self.state = state
        super().__init__(
            message=f"Cannot {action} while session is in state {state}",
            session_id=session_id,
            details={"action": action, "state": state, "session_id": session_id},
        )


class PersistenceError(EduSoluceError):
    """Raised when assessment results could not be stored. Always retryable."""

    def __init__(
        self,
        message: str,
        area_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.area_id = area_id
        self.retryable = True
        super().__init__(
            message=message,
            details=details or {"area_id": area_id},
            user_message=(
                "There was a problem saving your assessment results. Please try again."
            ),
        )


class DatabaseError(EduSoluceError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message="A database error occurred. Please try again in a moment.",
        )

    def _get_default_user_message(self) -> str:
        return "Unable to save your changes. Please try again."


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, operation="connection", details=details)

    def _get_default_user_message(self) -> str:
        return "Unable to connect to the database. Please check your connection and try again."


class IntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""

    def __init__(
        self,
        message: str,
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message=message,
            operation="integrity_check",
            details=details or {"constraint": constraint},
        )
        self.user_message = self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        if self.constraint:
            if "unique" in self.constraint.lower():
                return "This result already exists. Please refresh and try again."
            elif "check" in self.constraint.lower():
                return "Result values are out of range. Please check the constraint and retry."
        return "Data integrity error. Please check your input and try again."


class ConfigurationError(EduSoluceError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


class ExportError(EduSoluceError):
    """Raised when data export fails."""

    def __init__(
        self,
        message: str,
        export_format: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.export_format = export_format
        super().__init__(
            message=message,
            details=details or {"export_format": export_format},
            user_message="Export failed. Please try again or choose a different format.",
        )


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Convert generic database exceptions to appropriate custom exceptions.

    Args:
        e: The original exception
        operation: Description of the operation that failed

    Returns:
        Appropriate DatabaseError subclass

    Example:
        >>> try:
        ...     session.commit()
        >>> except Exception as e:
        ...     raise handle_database_error(e, "commit transaction")
    """
    error_msg = str(e).lower()

    if "connection" in error_msg or "timeout" in error_msg:
        return ConnectionError(str(e))
    elif "unique constraint" in error_msg or "duplicate" in error_msg:
        return IntegrityError(str(e), constraint="unique")
    elif "check constraint" in error_msg:
        return IntegrityError(str(e), constraint="check")
    else:
        return DatabaseError(str(e), operation)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Args:
        error: The exception to convert

    Returns:
        User-friendly error message

    Example:
        >>> error = ValidationError("user_id", "cannot be empty")
        >>> message = create_user_friendly_error_message(error)
        >>> print(message)  # "Invalid user id: cannot be empty"
    """
    if isinstance(error, EduSoluceError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Args:
        error: The exception to log
        context: Additional context information

    Returns:
        Dictionary with structured error details
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, EduSoluceError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
