from typing import Any, Dict, Optional


class AppError(Exception):
    """Expected, user-facing failure mapped to a 4xx response envelope."""

    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class InvalidCredentials(AppError):
    status_code = 401
    default_message = "Invalid email or password"


class AccountDeactivated(AppError):
    status_code = 401
    default_message = "Account is deactivated"


class SessionExpired(AppError):
    status_code = 401
    default_message = "Refresh token expired"


class SessionInvalid(AppError):
    status_code = 401
    default_message = "Invalid refresh token"


class InvalidOrExpiredResetToken(AppError):
    status_code = 400
    default_message = "Invalid or expired reset token"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    default_message = "Insufficient permissions"
