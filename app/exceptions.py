"""
Application error taxonomy.

Services and dependencies raise these; ``app.main`` owns the single
mapping from error kind to HTTP response.  Only validation errors carry
a body (a per-field message map); every other kind is answered with a
bare status code.
"""
from typing import Dict, Optional


class AppException(Exception):
    """Base class for errors that map onto a specific HTTP status."""

    status_code: int = 500

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(AppException):
    """Invalid or conflicting input, reported field by field."""

    status_code = 422

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(", ".join(f"{k} {v}" for k, v in self.errors.items()))


class AuthenticationError(AppException):
    """Missing, malformed, expired or otherwise unusable credentials."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class AuthorizationError(AppException):
    """Authenticated, but not the owner of the target resource."""

    status_code = 403

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFoundError(AppException):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)
