"""
Exception taxonomy for the order coordination service.

Every domain failure is a ``BaseCustomException`` carrying its HTTP status,
so request handlers can re-raise them untouched and the global handler in
``main.py`` renders a structured ``{"error": ...}`` body.
"""
from typing import Any, Dict, Optional
from fastapi import status


class BaseCustomException(Exception):
    """Base custom exception class"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class UnauthenticatedError(BaseCustomException):
    """Raised when the request carries no valid session"""

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details
        )


class ForbiddenError(BaseCustomException):
    """Raised when the caller has the wrong role or does not own the order"""

    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class NotFoundError(BaseCustomException):
    """Raised when an order or user id does not resolve"""

    def __init__(self, resource: str, identifier: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details.setdefault("resource", resource)
        details.setdefault("id", identifier)
        super().__init__(
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class ValidationError(BaseCustomException):
    """Raised when a request carries a malformed or disallowed value"""

    def __init__(self, message: str, field: str = None, details: Optional[Dict[str, Any]] = None):
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ConflictError(BaseCustomException):
    """Raised when a conditional write loses against a concurrent change"""

    def __init__(self, message: str = "Order already assigned", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )
