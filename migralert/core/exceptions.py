"""
Domain errors

Every error carries the HTTP status the API answers with, a stable code the
client can switch on, and whether retrying the same request can help.
"""
from typing import Any, Optional


class MigrAlertError(Exception):
    status_code = 500
    code = "internal_error"
    retryable = False

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message()
        self.details = details
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        body = {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(MigrAlertError):
    status_code = 400
    code = "validation_error"


class Unauthorized(MigrAlertError):
    status_code = 401
    code = "unauthorized"


class Forbidden(MigrAlertError):
    status_code = 403
    code = "forbidden"


class NotFoundError(MigrAlertError):
    status_code = 404
    code = "not_found"


class CapacityExceeded(MigrAlertError):
    status_code = 409
    code = "capacity_exceeded"


class DuplicateInteraction(MigrAlertError):
    status_code = 409
    code = "duplicate_interaction"

    @classmethod
    def default_message(cls) -> str:
        return "You have already submitted feedback for this report"


class ConcurrentUpdateError(MigrAlertError):
    status_code = 409
    code = "concurrent_update"
    retryable = True


class NoContactsConfigured(MigrAlertError):
    status_code = 400
    code = "no_contacts_configured"

    @classmethod
    def default_message(cls) -> str:
        return "No emergency contacts configured"


class NoPhoneOnAccount(MigrAlertError):
    status_code = 400
    code = "no_phone_on_account"

    @classmethod
    def default_message(cls) -> str:
        return "No phone number on account"


class AllSendsFailed(MigrAlertError):
    status_code = 502
    code = "all_sends_failed"
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "Failed to send alert to any contacts"


class TransportError(MigrAlertError):
    """Single SMS delivery failure; captured per recipient, never surfaced alone."""
    status_code = 502
    code = "transport_error"
    retryable = True
