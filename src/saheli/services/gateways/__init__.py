"""
External capability adapters: SMS, voice, location and call prompts
"""

from .location import FixedLocationCapability, IPGeolocationCapability
from .prompts import AutoDecisionPrompt, ConsoleDecisionPrompt, FutureDecisionPrompt
from .twilio import TwilioClient, TwilioSMSGateway, TwilioVoiceDialer

__all__ = [
    'FixedLocationCapability',
    'IPGeolocationCapability',
    'AutoDecisionPrompt',
    'ConsoleDecisionPrompt',
    'FutureDecisionPrompt',
    'TwilioClient',
    'TwilioSMSGateway',
    'TwilioVoiceDialer'
]
