"""
Collaborator interfaces for the SOS workflow

The SOS components depend only on these abstract capabilities. Firebase,
Supabase and the local SQLite store implement the session and record-store
interfaces; Twilio implements the SMS gateway and dialer.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ...models.sos import CallDecision, EmergencyContact, Location, UserProfile


class SessionProvider(ABC):
    """Opaque current-user provider"""

    @abstractmethod
    async def get_current_user_id(self) -> Optional[str]:
        """Return the authenticated user's id, or None without a session"""
        pass


class RecordStore(ABC):
    """Backend-agnostic store of profiles, contacts and live locations"""

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> UserProfile:
        """Raises RecordNotFound or RecordStoreError"""
        pass

    @abstractmethod
    async def list_emergency_contacts(self, user_id: str) -> List[EmergencyContact]:
        """Contacts in store order; raises RecordStoreError"""
        pass

    @abstractmethod
    async def add_emergency_contact(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        pass

    @abstractmethod
    async def delete_emergency_contact(self, contact_id: str) -> None:
        pass

    @abstractmethod
    async def save_live_location(self, user_id: str, location: Location) -> None:
        pass

    async def close(self) -> None:
        """Release any network or database resources"""
        pass


class LocationCapability(ABC):
    """Platform location access"""

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask for foreground location permission; True when granted"""
        pass

    @abstractmethod
    async def get_current_fix(self, high_accuracy: bool = True) -> Location:
        """One-shot position fix; raises on failure"""
        pass


class SMSGateway(ABC):
    """Synchronous send-and-acknowledge SMS gateway"""

    @abstractmethod
    async def send(self, to_phone: str, body: str) -> str:
        """Send one SMS and return the gateway's message id; raises GatewayError"""
        pass

    async def close(self) -> None:
        pass


class DialerCapability(ABC):
    """Voice call initiation"""

    @abstractmethod
    async def can_dial(self) -> bool:
        pass

    @abstractmethod
    async def dial(self, phone: str) -> None:
        """Hand the call off and return without waiting for it to end; raises DialerError"""
        pass

    async def close(self) -> None:
        pass


class DecisionPrompt(ABC):
    """UI collaborator that asks whether to call a contact"""

    @abstractmethod
    async def prompt_call_decision(self, contact: EmergencyContact, position: int, total: int) -> CallDecision:
        """Return ACCEPTED or SKIPPED; the caller bounds the wait"""
        pass
