"""
Mock objects for the external collaborators used by the Saheli SOS core.
"""
import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from saheli.models.sos import CallDecision, EmergencyContact, Location, UserProfile
from saheli.services.sos.errors import (
    DialerError,
    GatewayError,
    RecordNotFound,
    RecordStoreError
)
from saheli.services.sos.interfaces import (
    DecisionPrompt,
    DialerCapability,
    LocationCapability,
    RecordStore,
    SessionProvider,
    SMSGateway
)


class MockSession(SessionProvider):
    """Mock session provider for testing."""

    def __init__(self, user_id: Optional[str] = "user-1", error: Optional[Exception] = None):
        self.user_id = user_id
        self.error = error
        self.calls = 0

    async def get_current_user_id(self) -> Optional[str]:
        self.calls += 1
        if self.error:
            raise self.error
        return self.user_id


class MockRecordStore(RecordStore):
    """In-memory record store for testing."""

    def __init__(self):
        self.profiles: Dict[str, UserProfile] = {}
        self.contacts: Dict[str, List[EmergencyContact]] = {}
        self.locations: Dict[str, Location] = {}
        self.location_writes: List[Location] = []
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self._next_id = 1

    def add_user(self, user_id: str, name: str, contacts: Optional[List[tuple]] = None):
        """Seed a user and their (name, phone) contacts."""
        self.profiles[user_id] = UserProfile(id=user_id, name=name)
        self.contacts[user_id] = []
        for contact_name, phone in contacts or []:
            self._append(user_id, contact_name, phone)

    def _append(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        contact = EmergencyContact(name=name, phone=phone, id=str(self._next_id), user_id=user_id)
        self._next_id += 1
        self.contacts.setdefault(user_id, []).append(contact)
        return contact

    async def _io(self, *call):
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error

    async def get_user_profile(self, user_id: str) -> UserProfile:
        await self._io("get_user_profile", user_id)
        if user_id not in self.profiles:
            raise RecordNotFound(f"User profile {user_id} not found")
        return self.profiles[user_id]

    async def list_emergency_contacts(self, user_id: str) -> List[EmergencyContact]:
        await self._io("list_emergency_contacts", user_id)
        return list(self.contacts.get(user_id, []))

    async def add_emergency_contact(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        await self._io("add_emergency_contact", user_id, name, phone)
        return self._append(user_id, name, phone)

    async def delete_emergency_contact(self, contact_id: str) -> None:
        await self._io("delete_emergency_contact", contact_id)
        for contacts in self.contacts.values():
            for contact in contacts:
                if contact.id == contact_id:
                    contacts.remove(contact)
                    return
        raise RecordNotFound(f"Emergency contact {contact_id} not found")

    async def save_live_location(self, user_id: str, location: Location) -> None:
        await self._io("save_live_location", user_id)
        self.locations[user_id] = location
        self.location_writes.append(location)


class MockLocationCapability(LocationCapability):
    """Mock platform location service for testing."""

    def __init__(self, latitude: float = 40.7128, longitude: float = -74.006,
                 permission: bool = True):
        self.location = Location(latitude=latitude, longitude=longitude, accuracy=5.0)
        self.permission = permission
        self.permission_requests = 0
        self.fix_requests = 0
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.permission

    async def get_current_fix(self, high_accuracy: bool = True) -> Location:
        self.fix_requests += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.location

    @property
    def total_calls(self) -> int:
        return self.permission_requests + self.fix_requests


class MockSMSGateway(SMSGateway):
    """Mock SMS gateway for testing."""

    def __init__(self):
        self.sent_messages: List[tuple] = []
        self.attempts: Dict[str, int] = {}
        # phone -> exceptions raised on the next attempts, then success
        self.failures: Dict[str, List[Exception]] = {}
        # phone -> exception raised on every attempt
        self.broken: Dict[str, Exception] = {}
        # phone -> seconds to wait before answering
        self.delays: Dict[str, float] = {}

    def fail_times(self, phone: str, *errors: Exception):
        self.failures[phone] = list(errors)

    def fail_always(self, phone: str, error: Exception):
        self.broken[phone] = error

    async def send(self, to_phone: str, body: str) -> str:
        self.attempts[to_phone] = self.attempts.get(to_phone, 0) + 1
        if to_phone in self.delays:
            await asyncio.sleep(self.delays[to_phone])
        if self.failures.get(to_phone):
            raise self.failures[to_phone].pop(0)
        if to_phone in self.broken:
            raise self.broken[to_phone]
        self.sent_messages.append((to_phone, body))
        return f"SM{len(self.sent_messages):04d}"

    @property
    def total_attempts(self) -> int:
        return sum(self.attempts.values())

    async def close(self) -> None:
        pass


class MockDialer(DialerCapability):
    """Mock phone dialer for testing."""

    def __init__(self, can_dial: bool = True, error: Optional[str] = None,
                 raises: Optional[Exception] = None):
        self._can_dial = can_dial
        self.error = error
        self.raises = raises
        self.dialed: List[str] = []

    async def can_dial(self) -> bool:
        return self._can_dial

    async def dial(self, phone: str) -> None:
        if self.raises:
            raise self.raises
        if self.error:
            raise DialerError(self.error)
        self.dialed.append(phone)


class MockDecisionPrompt(DecisionPrompt):
    """Scripted call prompt; None in the script means never answer."""

    def __init__(self, decisions: Optional[List[Optional[CallDecision]]] = None,
                 default: Optional[CallDecision] = CallDecision.SKIPPED):
        self.decisions = list(decisions or [])
        self.default = default
        self.prompts: List[tuple] = []
        self.started_at: List[datetime] = []

    async def prompt_call_decision(self, contact: EmergencyContact,
                                   position: int, total: int) -> CallDecision:
        self.prompts.append((contact.name, position, total))
        self.started_at.append(datetime.utcnow())
        decision = self.decisions.pop(0) if self.decisions else self.default
        if decision is None:
            await asyncio.Event().wait()
        return decision


def gateway_error(reason: str = "Service unavailable", status: int = 503) -> GatewayError:
    """Gateway error as raised by the Twilio client for a given HTTP status."""
    return GatewayError(reason, status=status, retryable=status == 429 or status >= 500)


def store_error(message: str = "connection refused") -> RecordStoreError:
    return RecordStoreError(message)


# Pytest fixtures for mock services
@pytest.fixture
def mock_session():
    return MockSession()


@pytest.fixture
def mock_store():
    return MockRecordStore()


@pytest.fixture
def mock_location():
    return MockLocationCapability()


@pytest.fixture
def mock_sms_gateway():
    return MockSMSGateway()


@pytest.fixture
def mock_dialer():
    return MockDialer()


@pytest.fixture
def mock_prompt():
    return MockDecisionPrompt()
