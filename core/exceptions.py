"""Application error taxonomy.

Each error carries the HTTP status it maps to; ``main.py`` installs a single
handler that renders them as ``{"detail": ...}``.
"""
from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal Server Error") -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Any:
        return self.message


class AuthenticationError(AppError):
    """Raised when a bearer token is missing, malformed or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class EntitlementError(AppError):
    """Valid user without the subscription or quota needed for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str,
        limit_type: Optional[str] = None,
        daily_limit: Optional[int] = None,
        used_today: Optional[int] = None,
        reason: str = "subscription_required",
    ) -> None:
        super().__init__(message)
        self.limit_type = limit_type
        self.daily_limit = daily_limit
        self.used_today = used_today
        self.reason = reason

    def to_detail(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "reason": self.reason,
            "limitType": self.limit_type,
            "dailyLimit": self.daily_limit,
            "usedToday": self.used_today,
        }


class InputValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_detail(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message}


class NotFoundError(AppError):
    """Entity missing or owned by someone else; the two are never distinguished."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str = "Resource") -> None:
        super().__init__(f"{entity} not found")


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class ExternalServiceError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service: str, message: str = "External service unavailable") -> None:
        super().__init__(message)
        self.service = service


class WebhookSignatureError(ExternalServiceError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Webhook signature verification failed") -> None:
        super().__init__("stripe", message)
