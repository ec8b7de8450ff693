"""
Data models for Saheli
"""

from .sos import (
    ActivationReport,
    ActivationState,
    CallDecision,
    CallOutcome,
    ContactList,
    DispatchResult,
    DispatchStatus,
    EmergencyContact,
    Location,
    SOSMessage,
    UserProfile
)

__all__ = [
    'ActivationReport',
    'ActivationState',
    'CallDecision',
    'CallOutcome',
    'ContactList',
    'DispatchResult',
    'DispatchStatus',
    'EmergencyContact',
    'Location',
    'SOSMessage',
    'UserProfile'
]
