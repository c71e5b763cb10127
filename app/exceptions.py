"""
Custom Exception Classes for Grid Manager

This module defines the error taxonomy shared by the provisioning,
authentication and external identity services. Every exception carries
an HTTP status code and a machine-readable error code so the global
exception handlers can render a consistent response body.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API clients."""

    VALIDATION_FAILED = "VALIDATION_FAILED"

    CONFLICT = "CONFLICT"
    CONFLICT_DUPLICATE_EMAIL = "CONFLICT_DUPLICATE_EMAIL"
    CONFLICT_DUPLICATE_SLUG = "CONFLICT_DUPLICATE_SLUG"
    CONFLICT_DUPLICATE_EXTERNAL_IDENTITY = "CONFLICT_DUPLICATE_EXTERNAL_IDENTITY"

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_NOT_ACTIVE = "AUTH_ACCOUNT_NOT_ACTIVE"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_TOKEN_MALFORMED = "AUTH_TOKEN_MALFORMED"
    AUTH_TOKEN_WRONG_CLASS = "AUTH_TOKEN_WRONG_CLASS"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    UPSTREAM_FAILED = "UPSTREAM_FAILED"
    UPSTREAM_PROVIDER_NOT_CONFIGURED = "UPSTREAM_PROVIDER_NOT_CONFIGURED"
    UPSTREAM_CODE_EXCHANGE_FAILED = "UPSTREAM_CODE_EXCHANGE_FAILED"
    UPSTREAM_PROFILE_FETCH_FAILED = "UPSTREAM_PROFILE_FETCH_FAILED"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GridError(Exception):
    """Base exception class for all Grid Manager exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(GridError):
    """Raised when input is missing or malformed. No storage is touched."""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=error_details,
        )


# ============================================================================
# Conflict Exceptions
# ============================================================================


class ConflictError(GridError):
    """Raised when a unique value is already taken"""

    def __init__(
        self,
        message: str = "Resource already exists",
        error_code: ErrorCode = ErrorCode.CONFLICT,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            details=details or {},
        )


class DuplicateEmailError(ConflictError):
    """Raised when a user or tenant email is already registered"""

    def __init__(self, email: str | None = None, resource_type: str = "User"):
        super().__init__(
            message=f"{resource_type} with this email already exists",
            error_code=ErrorCode.CONFLICT_DUPLICATE_EMAIL,
            details={"resource_type": resource_type, "field": "email", "value": email} if email else {},
        )


class DuplicateSlugError(ConflictError):
    """Raised when the derived tenant slug is already in use"""

    def __init__(self, slug: str | None = None):
        super().__init__(
            message="A tenant with this name already exists. Please choose a different name.",
            error_code=ErrorCode.CONFLICT_DUPLICATE_SLUG,
            details={"resource_type": "Tenant", "field": "slug", "value": slug} if slug else {},
        )


class DuplicateExternalIdentityError(ConflictError):
    """Raised when an external identity is already linked to another user"""

    def __init__(self, external_id: str | None = None):
        super().__init__(
            message="External identity is already linked to another account",
            error_code=ErrorCode.CONFLICT_DUPLICATE_EXTERNAL_IDENTITY,
            details={"resource_type": "User", "field": "external_id"} if external_id else {},
        )


# ============================================================================
# Authentication Exceptions
# ============================================================================


class AuthenticationError(GridError):
    """Raised when authentication fails"""

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: ErrorCode = ErrorCode.AUTH_FAILED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code,
            details=details or {},
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised for unknown email, missing password hash or wrong password alike"""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_INVALID_CREDENTIALS)


class AccountNotActiveError(AuthenticationError):
    """Raised when the account exists but its status is not ACTIVE"""

    def __init__(self, message: str = "Account is not active"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_ACCOUNT_NOT_ACTIVE)


class TokenExpiredError(AuthenticationError):
    """Raised when a token's expiry has passed"""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_TOKEN_EXPIRED)


class MalformedTokenError(AuthenticationError):
    """Raised when a token cannot be decoded or its signature does not match"""

    def __init__(self, message: str = "Invalid or malformed token"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_TOKEN_MALFORMED)


class WrongTokenClassError(AuthenticationError):
    """Raised when a valid token is presented where another class is expected"""

    def __init__(self, expected: str, actual: str | None):
        super().__init__(
            message=f"Expected a {expected} token",
            error_code=ErrorCode.AUTH_TOKEN_WRONG_CLASS,
            details={"expected": expected, "actual": actual},
        )


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class NotFoundError(GridError):
    """Raised when a directory record does not exist"""

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


# ============================================================================
# Upstream (authorization server) Exceptions
# ============================================================================


class UpstreamError(GridError):
    """Raised when the external authorization server cannot complete a step"""

    redirect_code = "external_auth_failed"

    def __init__(
        self,
        message: str = "External identity provider request failed",
        error_code: ErrorCode = ErrorCode.UPSTREAM_FAILED,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        provider: str | None = None,
    ):
        details = {"provider": provider} if provider else {}
        super().__init__(message=message, status_code=status_code, error_code=error_code, details=details)


class ProviderNotConfiguredError(UpstreamError):
    """Raised when client id/secret for the provider are not set"""

    redirect_code = "provider_not_configured"

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider.capitalize()} OAuth not configured on server",
            error_code=ErrorCode.UPSTREAM_PROVIDER_NOT_CONFIGURED,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            provider=provider,
        )


class CodeExchangeError(UpstreamError):
    """Raised when the authorization code cannot be exchanged for a token"""

    redirect_code = "code_exchange_failed"

    def __init__(self, provider: str, message: str = "Authorization code exchange failed"):
        super().__init__(message=message, error_code=ErrorCode.UPSTREAM_CODE_EXCHANGE_FAILED, provider=provider)


class ProfileFetchError(UpstreamError):
    """Raised when the user profile cannot be fetched or is incomplete"""

    redirect_code = "profile_fetch_failed"

    def __init__(self, provider: str, message: str = "Could not fetch external profile"):
        super().__init__(message=message, error_code=ErrorCode.UPSTREAM_PROFILE_FETCH_FAILED, provider=provider)


# ============================================================================
# Storage Exceptions
# ============================================================================


class DirectoryIntegrityError(GridError):
    """Raised on an unexpected storage invariant violation"""

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=ErrorCode.INTERNAL_ERROR,
            details=details,
        )
