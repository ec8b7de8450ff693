"""
Unit tests for concurrent SMS dispatch
"""

import asyncio

import pytest

from saheli.models.sos import DispatchStatus
from saheli.services.sos.alert_composer import AlertComposer
from saheli.services.sos.dispatcher import NotificationDispatcher, SEND_TIMEOUT, TRANSPORT_FAILURE
from saheli.services.sos.errors import GatewayError
from tests.base import BaseTestCase
from tests.mocks.external_service_mocks import MockSMSGateway, gateway_error


class TestNotificationDispatcher(BaseTestCase):
    """Test per-contact dispatch, retries and isolation"""

    def setup_method(self):
        super().setup_method()
        self.gateway = MockSMSGateway()
        self.dispatcher = NotificationDispatcher(
            self.gateway, send_timeout=0.3, max_retries=2, backoff_base=0.01
        )
        self.message = AlertComposer().compose("Priya", self.make_location())
        self.contacts = self.make_contacts(3)

    @pytest.mark.asyncio
    async def test_all_contacts_receive_message(self):
        results = await self.dispatcher.dispatch(self.message, self.contacts)

        assert [r.status for r in results] == [DispatchStatus.SENT] * 3
        assert [r.contact for r in results] == self.contacts
        assert {phone for phone, _ in self.gateway.sent_messages} == {c.phone for c in self.contacts}
        assert all(body == self.message.body for _, body in self.gateway.sent_messages)
        assert all(r.message_id for r in results)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self):
        bad = self.contacts[1]
        self.gateway.fail_always(bad.phone, GatewayError("Invalid 'To' Phone Number", status=400))

        results = await self.dispatcher.dispatch(self.message, self.contacts)

        assert [r.sent for r in results] == [True, False, True]
        assert results[1].reason == "Invalid 'To' Phone Number"
        # Client errors are not retried
        assert self.gateway.attempts[bad.phone] == 1

    @pytest.mark.asyncio
    async def test_retryable_failure_recovers(self):
        phone = self.contacts[0].phone
        self.gateway.fail_times(phone, gateway_error(status=503), gateway_error(status=429))

        results = await self.dispatcher.dispatch(self.message, self.contacts[:1])

        assert results[0].sent
        assert results[0].attempts == 3
        assert self.gateway.attempts[phone] == 3

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self):
        phone = self.contacts[0].phone
        self.gateway.fail_always(phone, gateway_error("Service unavailable", status=503))

        results = await self.dispatcher.dispatch(self.message, self.contacts[:1])

        assert results[0].status == DispatchStatus.FAILED
        assert results[0].reason == "Service unavailable"
        assert results[0].attempts == 3
        assert self.gateway.attempts[phone] == 3

    @pytest.mark.asyncio
    async def test_no_retries_when_disabled(self):
        dispatcher = NotificationDispatcher(self.gateway, send_timeout=0.3, max_retries=0)
        phone = self.contacts[0].phone
        self.gateway.fail_always(phone, gateway_error(status=500))

        results = await dispatcher.dispatch(self.message, self.contacts[:1])

        assert not results[0].sent
        assert self.gateway.attempts[phone] == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_transport_failure(self):
        phone = self.contacts[2].phone
        self.gateway.fail_always(phone, RuntimeError("socket closed"))

        results = await self.dispatcher.dispatch(self.message, self.contacts)

        assert results[2].reason == TRANSPORT_FAILURE
        assert self.gateway.attempts[phone] == 1
        assert results[0].sent and results[1].sent

    @pytest.mark.asyncio
    async def test_slow_send_times_out_without_blocking_others(self):
        dispatcher = NotificationDispatcher(
            self.gateway, send_timeout=0.05, max_retries=0, backoff_base=0.01
        )
        slow = self.contacts[0]
        self.gateway.delays[slow.phone] = 5.0

        results = await asyncio.wait_for(
            dispatcher.dispatch(self.message, self.contacts), timeout=2.0
        )

        assert results[0].status == DispatchStatus.FAILED
        assert results[0].reason == SEND_TIMEOUT
        assert results[1].sent and results[2].sent

    @pytest.mark.asyncio
    async def test_sends_run_concurrently(self):
        for contact in self.contacts:
            self.gateway.delays[contact.phone] = 0.1

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await self.dispatcher.dispatch(self.message, self.contacts)
        elapsed = loop.time() - started

        assert all(r.sent for r in results)
        assert elapsed < 0.25

    @pytest.mark.asyncio
    async def test_empty_contact_list(self):
        assert await self.dispatcher.dispatch(self.message, []) == []
