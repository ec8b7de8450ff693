"""
Call Escalation

After the SOS text has gone out, offers a voice call to each contact in
directory order, one at a time. Each prompt races a timeout; a contact
whose prompt is not answered in time is marked timed-out and the escalator
moves on.
"""

import asyncio
import logging
from typing import List

from ...core.logging import mask_phone
from ...models.sos import CallDecision, CallOutcome, EmergencyContact
from .errors import DialerError
from .interfaces import DecisionPrompt, DialerCapability


DEFAULT_DECISION_TIMEOUT = 30.0
CANNOT_DIAL = "Cannot make phone calls on this device"


class CallEscalator:
    """Sequential call-now/skip escalation over a contact list"""

    def __init__(self, prompt: DecisionPrompt, dialer: DialerCapability,
                 decision_timeout: float = DEFAULT_DECISION_TIMEOUT):
        self.logger = logging.getLogger(__name__)
        self.prompt = prompt
        self.dialer = dialer
        self.decision_timeout = decision_timeout

    async def escalate(self, contacts: List[EmergencyContact]) -> List[CallOutcome]:
        """
        Run the per-contact prompt state machine.

        Returns exactly one CallOutcome per contact, in input order. The dialer
        is only invoked for ACCEPTED decisions.
        """
        outcomes = []
        total = len(contacts)

        for position, contact in enumerate(contacts, start=1):
            decision = await self._obtain_decision(contact, position, total)
            outcome = CallOutcome(contact=contact, decision=decision)

            if decision == CallDecision.ACCEPTED:
                await self._place_call(outcome)

            self.logger.info(
                f"Call escalation {position}/{total} ({contact.name}): {decision.value}"
            )
            outcomes.append(outcome)

        return outcomes

    async def _obtain_decision(self, contact: EmergencyContact,
                               position: int, total: int) -> CallDecision:
        try:
            decision = await asyncio.wait_for(
                self.prompt.prompt_call_decision(contact, position, total),
                timeout=self.decision_timeout
            )
        except asyncio.TimeoutError:
            return CallDecision.TIMED_OUT
        except Exception as e:
            self.logger.error(f"Call prompt for {contact.name} failed: {e}")
            return CallDecision.TIMED_OUT

        if decision not in (CallDecision.ACCEPTED, CallDecision.SKIPPED):
            self.logger.warning(f"Ignoring invalid call decision {decision!r}")
            return CallDecision.TIMED_OUT
        return decision

    async def _place_call(self, outcome: CallOutcome):
        phone = outcome.contact.phone
        try:
            if not await self.dialer.can_dial():
                outcome.error = CANNOT_DIAL
                self.logger.warning(CANNOT_DIAL)
                return

            await self.dialer.dial(phone)
            outcome.dialed = True
            self.logger.info(f"Call handed off to dialer for {mask_phone(phone)}")
        except DialerError as e:
            outcome.error = str(e)
            self.logger.error(f"Phone call error for {mask_phone(phone)}: {e}")
        except Exception as e:
            outcome.error = str(e) or type(e).__name__
            self.logger.error(f"Unexpected dialer failure for {mask_phone(phone)}: {e}")
