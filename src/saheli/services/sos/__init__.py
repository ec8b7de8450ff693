"""
SOS Emergency Activation Module

Provides the emergency-activation workflow:
- Location acquisition and live location sharing
- Emergency contact loading and management
- Alert composition with a map link
- Concurrent SMS dispatch to every contact
- Sequential call escalation with bounded prompts
- Countdown-guarded orchestration with a single activation report
"""

from .alert_composer import AlertComposer
from .call_escalator import CallEscalator
from .contact_directory import ContactDirectory
from .countdown import SOSCountdown, CountdownState
from .dispatcher import NotificationDispatcher
from .location_provider import LocationProvider, LocationTrackingSession
from .orchestrator import SOSOrchestrator

__all__ = [
    'AlertComposer',
    'CallEscalator',
    'ContactDirectory',
    'SOSCountdown',
    'CountdownState',
    'NotificationDispatcher',
    'LocationProvider',
    'LocationTrackingSession',
    'SOSOrchestrator'
]
