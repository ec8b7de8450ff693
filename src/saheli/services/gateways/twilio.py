"""
Twilio REST gateways

SMS sending through the Messages resource and outbound voice calls through
the Calls resource, both over aiohttp with HTTP basic auth.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ...core.logging import mask_phone
from ..sos.errors import DialerError, GatewayError
from ..sos.interfaces import DialerCapability, SMSGateway


DEFAULT_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioClient:
    """Shared aiohttp session and error mapping for Twilio resources"""

    def __init__(self, account_sid: str, auth_token: str, from_number: str,
                 api_base: str = DEFAULT_API_BASE, timeout: float = 15.0):
        self.logger = logging.getLogger(__name__)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    def resource_url(self, resource: str) -> str:
        return f"{self.api_base}/Accounts/{self.account_sid}/{resource}.json"

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def start(self):
        """Initialize the HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                auth=aiohttp.BasicAuth(self.account_sid or "", self.auth_token or ""),
                headers={'User-Agent': 'Saheli/1.0'}
            )

    async def close(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None

    async def post_form(self, resource: str, form: Dict[str, str]) -> Dict[str, Any]:
        """
        POST a form to a Twilio resource.

        Raises:
            GatewayError: non-2xx response, unreadable body, transport failure
                or timeout.
                Server errors (5xx), 429 and transport failures are retryable.
        """
        await self.start()

        try:
            async with self.session.post(self.resource_url(resource), data=form) as response:
                if 200 <= response.status < 300:
                    try:
                        return await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        raise GatewayError("malformed_response", status=response.status)

                reason = await self._error_reason(response)
                raise GatewayError(
                    reason,
                    status=response.status,
                    retryable=response.status == 429 or response.status >= 500
                )
        except asyncio.TimeoutError:
            raise GatewayError("timeout", retryable=True)
        except aiohttp.ClientError as e:
            raise GatewayError(f"transport_failure: {e}", retryable=True)

    async def _error_reason(self, response: aiohttp.ClientResponse) -> str:
        try:
            payload = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            payload = None

        if isinstance(payload, dict) and payload.get('message'):
            return str(payload['message'])
        return f"HTTP {response.status}"


class TwilioSMSGateway(SMSGateway):
    """SMS gateway backed by the Twilio Messages resource"""

    def __init__(self, client: TwilioClient):
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def send(self, to_phone: str, body: str) -> str:
        if not self.client.is_configured():
            raise GatewayError("Twilio credentials are not configured")

        payload = await self.client.post_form('Messages', {
            'To': to_phone,
            'From': self.client.from_number,
            'Body': body
        })
        self.logger.debug(f"Twilio accepted SMS to {mask_phone(to_phone)}")
        return payload.get('sid', '')

    async def close(self):
        await self.client.close()


class TwilioVoiceDialer(DialerCapability):
    """Places an outbound call that reads a short SOS notice to the contact"""

    def __init__(self, client: TwilioClient, twiml: str):
        self.client = client
        self.twiml = twiml
        self.logger = logging.getLogger(__name__)

    async def can_dial(self) -> bool:
        return self.client.is_configured()

    async def dial(self, phone: str) -> None:
        try:
            payload = await self.client.post_form('Calls', {
                'To': phone,
                'From': self.client.from_number,
                'Twiml': self.twiml
            })
        except GatewayError as e:
            raise DialerError(e.reason) from e

        self.logger.info(f"Call {payload.get('sid', '')} queued to {mask_phone(phone)}")

    async def close(self):
        await self.client.close()
