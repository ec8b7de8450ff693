"""
SOS data models for Saheli

Defines the values that flow through one SOS activation: the user's
profile and contacts, the GPS fix, the composed alert, and the
per-contact dispatch and call results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid


class DispatchStatus(Enum):
    """Outcome of one SMS send"""
    SENT = "sent"
    FAILED = "failed"


class CallDecision(Enum):
    """Terminal state of one contact's call prompt"""
    ACCEPTED = "accepted"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


class ActivationState(Enum):
    """SOS activation lifecycle"""
    IDLE = "idle"
    LOCATING_AND_LOADING_CONTACTS = "locating_and_loading_contacts"
    COMPOSING = "composing"
    DISPATCHING = "dispatching"
    ESCALATING = "escalating"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class UserProfile:
    """The subset of a user's profile the SOS core reads"""
    id: str
    name: str
    address: Optional[str] = None
    occupation: Optional[str] = None


@dataclass
class EmergencyContact:
    """A trusted (name, phone) pair belonging to one user"""
    name: str
    phone: str
    id: Optional[str] = None
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'phone': self.phone
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmergencyContact':
        """Create contact from a store record"""
        contact_id = data.get('id')
        return cls(
            name=data.get('name', ''),
            phone=data.get('phone', ''),
            id=str(contact_id) if contact_id is not None else None,
            user_id=data.get('user_id')
        )


@dataclass
class ContactList:
    """A user's display name and their non-empty emergency contact list"""
    user_id: str
    name: str
    contacts: List[EmergencyContact]


@dataclass
class Location:
    """Point-in-time GPS fix"""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy': self.accuracy,
            'timestamp': self.timestamp.isoformat()
        }


@dataclass(frozen=True)
class SOSMessage:
    """Immutable alert composed for one activation"""
    name: str
    location: Location
    map_link: str
    body: str


@dataclass
class DispatchResult:
    """Per-contact SMS send outcome"""
    contact: EmergencyContact
    status: DispatchStatus
    reason: Optional[str] = None
    attempts: int = 1
    message_id: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == DispatchStatus.SENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'contact': self.contact.name,
            'status': self.status.value,
            'reason': self.reason,
            'attempts': self.attempts,
            'message_id': self.message_id
        }


@dataclass
class CallOutcome:
    """Per-contact call escalation outcome"""
    contact: EmergencyContact
    decision: CallDecision
    dialed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'contact': self.contact.name,
            'decision': self.decision.value,
            'dialed': self.dialed,
            'error': self.error
        }


@dataclass
class ActivationReport:
    """Single outcome of one SOS activation"""
    activation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: ActivationState = ActivationState.IDLE
    contacts_notified: int = 0
    total_contacts: int = 0
    dispatch_results: List[DispatchResult] = field(default_factory=list)
    call_outcomes: List[CallOutcome] = field(default_factory=list)
    location: Optional[Location] = None
    error: Optional[Exception] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.state == ActivationState.COMPLETED

    @property
    def call_decisions(self) -> List[CallDecision]:
        return [outcome.decision for outcome in self.call_outcomes]

    def user_message(self) -> str:
        """Human-readable outcome shown to the person who triggered SOS"""
        if self.success:
            return (f"SOS sent to {self.contacts_notified} of {self.total_contacts} "
                    f"emergency contacts.")

        reason = getattr(self.error, 'user_message', None) or "Failed to activate SOS."
        return f"{reason} Please call emergency services directly."

    def to_dict(self) -> Dict[str, Any]:
        return {
            'activation_id': self.activation_id,
            'state': self.state.value,
            'success': self.success,
            'contacts_notified': self.contacts_notified,
            'total_contacts': self.total_contacts,
            'dispatch_results': [r.to_dict() for r in self.dispatch_results],
            'call_outcomes': [c.to_dict() for c in self.call_outcomes],
            'location': self.location.to_dict() if self.location else None,
            'error': type(self.error).__name__ if self.error else None,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None
        }
