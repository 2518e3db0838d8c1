"""Custom exceptions for the tour booking system"""

from typing import Any, Dict, Optional


class TourhubError(Exception):
    """Base exception for Tourhub"""
    pass


class AppError(TourhubError):
    """
    Operational error: expected, safe to show to the client verbatim.

    Anything that is not an AppError is treated as a programming error by the
    web layer and its message is hidden in production.
    """

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        super().__init__(message)

    @property
    def status(self) -> str:
        return "fail" if str(self.status_code).startswith("4") else "error"


class ValidationError(AppError):
    """Malformed or missing input"""

    status_code = 400

    def __init__(self, message: str, violations: Optional[Dict[str, str]] = None):
        self.violations = violations or {}
        super().__init__(message)


class ConflictError(ValidationError):
    """Uniqueness violation"""

    def __init__(self, message: str, key_value: Optional[Dict[str, Any]] = None):
        self.key_value = key_value or {}
        super().__init__(message)


class AuthError(AppError):
    """Identity or authorization failure"""

    status_code = 401


class NotFound(AppError):
    """Requested record does not exist"""

    status_code = 404


class UpstreamError(AppError):
    """A collaborator (mailer, payment provider, image host) failed"""

    status_code = 500


class ConfigError(TourhubError):
    """Configuration error"""
    pass
