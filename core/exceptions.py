"""
Business errors raised by services and rendered by the handlers in main.py.
"""

from typing import Any, Dict, Optional


class DriveAssistError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        if code:
            self.code = code
        self.extra = extra or {}
        super().__init__(message)

    def to_content(self) -> Dict[str, Any]:
        content = {"success": False, "message": self.message, "code": self.code}
        content.update(self.extra)
        return content


class QuotaExceededError(DriveAssistError):
    """Raised when a driver or guest device has no diagnoses left."""

    status_code = 403
    code = "QUOTA_EXCEEDED"


class DeviceIdentificationError(DriveAssistError):
    """Raised when a guest request carries no device identifier."""

    status_code = 400
    code = "DEVICE_ID_REQUIRED"

    def __init__(self):
        super().__init__("Device identification required. Please provide X-Device-ID header.")


class NotParticipantError(DriveAssistError):
    status_code = 403
    code = "NOT_PARTICIPANT"

    def __init__(self, message: str = "You are not a participant in this conversation"):
        super().__init__(message)


class InvalidTransitionError(DriveAssistError):
    """Raised when a lead or appointment cannot move to the requested status."""

    status_code = 400
    code = "INVALID_TRANSITION"


class SlotUnavailableError(DriveAssistError):
    """Raised when an expert cannot take a booking at the requested slot."""

    status_code = 400
    code = "SLOT_UNAVAILABLE"
