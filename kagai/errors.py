"""
Service-level errors.

Every error carries an HTTP status and renders to the JSON shape returned by
the API routes: ``{"error": ..., "code": ..., "details": ...}`` with the
optional keys omitted when unset.
"""

from typing import Optional


class ServiceError(Exception):
    """Base error for all service failures surfaced to API callers."""

    status: int = 500

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.code = code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.code:
            payload["code"] = self.code
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ServiceError):
    status = 400


class NotFoundError(ServiceError):
    status = 404


class UnauthorizedError(ServiceError):
    status = 401

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class RecommendationError(ServiceError):
    """Named precondition failures for outfit recommendations."""

    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    PROFILE_INCOMPLETE = "PROFILE_INCOMPLETE"
    WARDROBE_EMPTY = "WARDROBE_EMPTY"

    _MESSAGES = {
        PROFILE_NOT_FOUND: (
            "Please create your profile in the dashboard before getting recommendations",
            404,
        ),
        PROFILE_INCOMPLETE: (
            "Please complete your profile details in the dashboard before getting recommendations",
            400,
        ),
        WARDROBE_EMPTY: (
            "Please add some items to your wardrobe before getting recommendations",
            400,
        ),
    }

    def __init__(self, code: str, details: Optional[str] = None):
        message, status = self._MESSAGES[code]
        super().__init__(message, status=status, code=code, details=details)


class AIResponseError(ServiceError):
    """The model answered, but not with anything usable."""

    status = 500


class AITimeoutError(ServiceError):
    status = 504

    def __init__(self, message: str = "AI request timed out", **kwargs):
        kwargs.setdefault("code", "AI_TIMEOUT")
        super().__init__(message, **kwargs)


class TryOnError(ServiceError):
    status = 500
