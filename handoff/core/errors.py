from __future__ import annotations


class HandoffError(Exception):
    """Base class for every error the service layer raises on purpose."""

    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidToken(HandoffError):
    """Portal token is unknown or expired. Terminal for the portal session."""

    status_code = 404
    default_detail = "Portal unavailable: invalid or expired link"


class PermissionDenied(HandoffError):
    # Never echo the requested identifier back to the caller.
    status_code = 403
    default_detail = "Not permitted"


class NotFound(HandoffError):
    status_code = 404
    default_detail = "Not found"


class TransientIOFailure(HandoffError):
    """A database, storage or network call failed. Recovery is a manual retry."""

    status_code = 503
    default_detail = "Temporarily unavailable"


class ValidationFailure(HandoffError):
    status_code = 422
    default_detail = "Invalid input"


def require_text(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailure(f"{field} is required")
    return cleaned


class SessionNotReady(HandoffError):
    """An action was attempted on a live session that is not in the READY state."""

    status_code = 409
    default_detail = "Session is not ready"
