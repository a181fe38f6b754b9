"""
Custom Exceptions for Mira Oracle

Hierarchical exception classes for proper error handling across layers.
Each class carries the HTTP status the API layer answers with.
"""

from typing import Optional, Dict, Any, List


class MiraOracleError(Exception):
    """Base exception for all Mira Oracle errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {"message": self.message}


class ValidationError(MiraOracleError):
    """Raised when input validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input data",
        errors: Optional[List[Dict[str, str]]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, {"errors": errors or []}, original_error)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class AuthenticationError(MiraOracleError):
    """Raised when a request carries no valid session."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class AuthorizationError(MiraOracleError):
    """Raised when an authenticated user lacks the required privilege."""

    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class DatabaseError(MiraOracleError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""

    status_code = 404


class ConflictError(DatabaseError):
    """Raised when attempting to create a duplicate resource."""

    status_code = 400


class UpstreamError(MiraOracleError):
    """Raised when an external service (payments, AI, email) fails."""

    status_code = 502

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if service:
            details["service"] = service
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class PaymentServiceError(UpstreamError):
    """Raised when Stripe operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, "stripe", operation, original_error)


class AIServiceError(UpstreamError):
    """Raised when reading generation through Gemini fails."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, "gemini", operation, original_error)
        if model:
            self.details["model"] = model


class ConfigurationError(MiraOracleError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
