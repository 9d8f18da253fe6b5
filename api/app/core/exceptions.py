"""
Custom exception hierarchy for the Code Reveal API.

This module defines a standardized exception hierarchy for consistent
error handling across the application.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAppException(HTTPException):
    """Base exception for all application errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or self.__class__.__name__


# Authentication Exceptions


class AuthenticationError(BaseAppException):
    """Raised when the caller identity is missing."""

    def __init__(
        self, detail: str = "User not authenticated", error_code: Optional[str] = None
    ):
        super().__init__(
            detail, status.HTTP_401_UNAUTHORIZED, error_code=error_code or "AUTH_ERROR"
        )


# Precondition Exceptions


class MissingContextError(BaseAppException):
    """Raised when required request context (post id, user id) is absent."""

    def __init__(self, field: str, detail: Optional[str] = None):
        super().__init__(
            detail or f"{field} is required but missing from context",
            status.HTTP_400_BAD_REQUEST,
            error_code=f"MISSING_{field.upper()}",
        )


class InitializationError(BaseAppException):
    """Raised when the companion view cannot be initialized."""

    def __init__(self, detail: str):
        super().__init__(
            f"Initialization failed: {detail}",
            status.HTTP_400_BAD_REQUEST,
            error_code="INIT_ERROR",
        )


# Storage Exceptions


class StorageError(BaseAppException):
    """Raised when key-value store operations fail."""

    def __init__(self, detail: str, operation: str):
        # Map to controlled vocabulary to prevent high cardinality
        operation_map = {
            "read": "READ",
            "write": "WRITE",
            "delete": "DELETE",
            "create": "CREATE",
        }
        normalized_op = operation_map.get(operation.lower(), "UNKNOWN")
        super().__init__(
            f"Storage {operation} failed: {detail}",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=f"STORAGE_{normalized_op}_ERROR",
        )
        self.operation = normalized_op.lower()


# Service Exceptions


class HostPlatformError(BaseAppException):
    """Raised when calls to the host platform API fail."""

    def __init__(self, operation: str, detail: str):
        super().__init__(
            f"Host platform {operation} failed: {detail}",
            status.HTTP_502_BAD_GATEWAY,
            error_code="HOST_PLATFORM_ERROR",
        )


class HostPlatformNotConfiguredError(HostPlatformError):
    """Raised when an operation needs the host platform but none is configured."""

    def __init__(self, operation: str):
        super().__init__(operation, "HOST_API_URL is not configured")
