"""
Custom exceptions for the Registrar core.
"""

from typing import Optional, Any, Dict


class RegistrarException(Exception):
    """Base exception for all Registrar errors."""

    default_code = "registrar_error"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}


class NotFoundError(RegistrarException):
    """Raised when a requested entity or row is absent."""
    default_code = "not_found"


class ConflictError(RegistrarException):
    """Raised on uniqueness violations, e.g. a duplicate email."""
    default_code = "conflict"


class UnauthenticatedError(RegistrarException):
    """Raised when an operation requires a session and none is active."""
    default_code = "unauthenticated"


class ForbiddenError(RegistrarException):
    """Raised when the session's role or ownership does not allow the operation."""
    default_code = "forbidden"


class ValidationError(RegistrarException):
    """Raised when data validation fails."""
    default_code = "validation_failed"


class InvalidFilterError(RegistrarException):
    """Raised when a filter does not belong to the queried entity kind."""
    default_code = "invalid_filter"


class StorageFailure(RegistrarException):
    """Raised when the backing store fails to execute a read or write."""
    default_code = "storage_failure"


class DecodeError(StorageFailure):
    """Raised when a stored row cannot be coerced into its record type."""
    default_code = "decode_failure"


class AuthenticationError(RegistrarException):
    """Raised when login fails."""
    default_code = "authentication_failed"


class SuspendedError(AuthenticationError):
    """Raised when a suspended user attempts to log in."""
    default_code = "suspended"


class MustChangePasswordError(AuthenticationError):
    """Raised when a user flagged for a password reset attempts to log in."""
    default_code = "must_change_password"


class InvalidCredentialError(AuthenticationError):
    """Raised when the supplied secret does not match the stored hash."""
    default_code = "invalid_credential"


class ConfigurationError(RegistrarException):
    """Raised when configuration is invalid."""
    default_code = "configuration"
