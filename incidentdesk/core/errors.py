"""Domain errors - centralized exception hierarchy.

Every error carries a stable machine-readable ``error_code`` and the HTTP
status it maps to at the API boundary.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(DomainError):
    """Malformed or out-of-range input"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class InvalidTransition(DomainError):
    """Requested status change is not an edge of the incident lifecycle"""
    error_code = "INVALID_TRANSITION"
    http_status = 400


class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AccessDenied(DomainError):
    """Authenticated but not allowed to touch the resource"""
    error_code = "ACCESS_DENIED"
    http_status = 403


class NotFound(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class Unavailable(DomainError):
    """Storage or transport failure"""
    error_code = "UNAVAILABLE"
    http_status = 503
