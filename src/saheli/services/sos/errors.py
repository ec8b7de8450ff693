"""
SOS error taxonomy

Precondition errors abort an activation before any side effect. Collaborator
errors are raised by backend and gateway adapters and translated by the SOS
components into either a precondition error or a per-contact failure.
"""

from typing import Optional


class SOSError(Exception):
    """Base class for SOS workflow errors"""

    user_message = "Failed to activate SOS."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class PreconditionError(SOSError):
    """Activation cannot start; nothing has been sent"""
    pass


class NotAuthenticated(PreconditionError):
    user_message = "You must be logged in to use SOS."


class NoContacts(PreconditionError):
    user_message = "No emergency contacts added. Please add at least one emergency contact."


class PermissionDenied(PreconditionError):
    user_message = "Location permission is required for the SOS feature."


class PositionUnavailable(PreconditionError):
    user_message = "Unable to get your location."


class StoreUnavailable(PreconditionError):
    user_message = "Emergency contacts could not be loaded."


class ActivationError(SOSError):
    """Unexpected failure inside an activation"""
    pass


class ContactValidationError(SOSError):
    user_message = "Please fill in the contact's name and phone number."


class ContactLimitReached(SOSError):
    user_message = "You can add up to 5 emergency contacts."


class LastContactRemoval(SOSError):
    user_message = "You must keep at least one emergency contact."


# Collaborator errors

class RecordStoreError(Exception):
    """Record store I/O failure"""

    def __init__(self, message: str = "Record store unavailable", status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RecordNotFound(RecordStoreError):
    """Requested record does not exist"""
    pass


class GatewayError(Exception):
    """SMS or voice gateway failure"""

    def __init__(self, reason: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.status = status
        self.retryable = retryable


class DialerError(Exception):
    """Dialer could not place a call"""
    pass
