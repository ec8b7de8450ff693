"""
Notification Dispatcher

Fans the SOS text out to every contact concurrently and joins on all sends.
Each contact's send runs in its own task with its own bounded retries, so a
slow or failing contact never delays or cancels another.
"""

import asyncio
import logging
from typing import List

from ...core.logging import mask_phone
from ...models.sos import DispatchResult, DispatchStatus, EmergencyContact, SOSMessage
from .errors import GatewayError
from .interfaces import SMSGateway


TRANSPORT_FAILURE = "transport_failure"
SEND_TIMEOUT = "timeout"


class NotificationDispatcher:
    """Concurrent per-contact SMS dispatch"""

    def __init__(self, gateway: SMSGateway, send_timeout: float = 20.0,
                 max_retries: int = 2, backoff_base: float = 1.0):
        self.logger = logging.getLogger(__name__)
        self.gateway = gateway
        self.send_timeout = send_timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    async def dispatch(self, message: SOSMessage,
                       contacts: List[EmergencyContact]) -> List[DispatchResult]:
        """
        Send the message to every contact.

        Returns one DispatchResult per contact, in contact order. Never raises
        for an individual send failure.
        """
        self.logger.info(f"Sending SOS to {len(contacts)} contacts")
        results = await asyncio.gather(
            *(self._send_to_contact(message, contact) for contact in contacts)
        )

        sent = sum(1 for r in results if r.sent)
        self.logger.info(f"SOS dispatch finished: {sent}/{len(contacts)} sent")
        return list(results)

    async def _send_to_contact(self, message: SOSMessage,
                               contact: EmergencyContact) -> DispatchResult:
        attempt = 0
        while True:
            attempt += 1
            try:
                message_id = await asyncio.wait_for(
                    self.gateway.send(contact.phone, message.body),
                    timeout=self.send_timeout
                )
                self.logger.info(f"SMS sent to {mask_phone(contact.phone)}")
                return DispatchResult(
                    contact=contact,
                    status=DispatchStatus.SENT,
                    attempts=attempt,
                    message_id=message_id
                )
            except asyncio.TimeoutError:
                reason, retryable = SEND_TIMEOUT, True
            except GatewayError as e:
                reason, retryable = e.reason or TRANSPORT_FAILURE, e.retryable
            except Exception as e:
                self.logger.error(f"SMS sending error for {mask_phone(contact.phone)}: {e}")
                reason, retryable = TRANSPORT_FAILURE, False

            if not retryable or attempt > self.max_retries:
                self.logger.error(
                    f"SMS to {mask_phone(contact.phone)} failed after {attempt} attempt(s): {reason}"
                )
                return DispatchResult(
                    contact=contact,
                    status=DispatchStatus.FAILED,
                    reason=reason,
                    attempts=attempt
                )

            # Exponential backoff: base, 2*base, 4*base
            wait_time = self.backoff_base * (2 ** (attempt - 1))
            self.logger.warning(
                f"SMS to {mask_phone(contact.phone)} failed ({reason}), retrying in {wait_time}s"
            )
            await asyncio.sleep(wait_time)
