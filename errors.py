"""Error taxonomy for the voice contact service.

Each error knows the HTTP status it maps to; ``app.py`` renders them as
``{"error": ..., "details": ...}``.
"""
from typing import Any, Optional


class VoiceContactError(Exception):
    """Base exception for the voice contact service."""

    status_code = 500

    def __init__(self, error: str, details: Any = None):
        super().__init__(error)
        self.error = error
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.error, "details": self.details}


class ValidationError(VoiceContactError):
    """Bad or missing input."""

    status_code = 400


class AuthError(VoiceContactError):
    """No session, or the session is invalid or expired."""

    status_code = 401


class PermissionDenied(VoiceContactError):
    """The caller's workspace role does not allow the action."""

    status_code = 403


class NotFoundError(VoiceContactError):
    """Entity does not exist in the caller's workspace."""

    status_code = 404


class ConfigurationError(VoiceContactError):
    """A server-side secret or setting is missing or malformed."""

    pass


class UpstreamError(VoiceContactError):
    """A third-party API call failed."""

    def __init__(self, error: str, details: Any = None, upstream_status: Optional[int] = None):
        super().__init__(error, details)
        self.upstream_status = upstream_status

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.upstream_status is not None:
            body["status"] = self.upstream_status
        return body


class DeliveryError(UpstreamError):
    """Every CRM webhook variant was rejected or unreachable."""

    def __init__(
        self,
        error: str,
        details: Any = None,
        upstream_status: Optional[int] = None,
        variant: Optional[str] = None,
    ):
        super().__init__(error, details, upstream_status)
        self.variant = variant
