"""
SOS Orchestrator

Top-level state machine for one SOS activation:

    IDLE -> LOCATING_AND_LOADING_CONTACTS -> COMPOSING -> DISPATCHING
         -> ESCALATING -> COMPLETED

Any precondition failure while locating or loading contacts moves the
activation straight to FAILED before anything is sent. Once dispatch has
begun the activation always completes; individual send or call failures are
recorded in the report. An activation is not cancellable once it has left
IDLE.
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Tuple

from ...core.logging import LogContext, get_structured_logger
from ...models.sos import ActivationReport, ActivationState, ContactList, Location
from .alert_composer import AlertComposer
from .call_escalator import CallEscalator
from .contact_directory import ContactDirectory
from .dispatcher import NotificationDispatcher
from .errors import ActivationError, SOSError
from .location_provider import LocationProvider


StateListener = Callable[[ActivationReport, ActivationState], None]


class SOSOrchestrator:
    """Sequences the SOS components and aggregates a single report"""

    def __init__(self, directory: ContactDirectory, location_provider: LocationProvider,
                 composer: AlertComposer, dispatcher: NotificationDispatcher,
                 escalator: CallEscalator):
        self.logger = get_structured_logger('sos')
        self.directory = directory
        self.location_provider = location_provider
        self.composer = composer
        self.dispatcher = dispatcher
        self.escalator = escalator
        self.state_listeners: List[StateListener] = []

    def add_state_listener(self, listener: StateListener):
        """Register a callback fired on every state transition"""
        self.state_listeners.append(listener)

    async def activate(self) -> ActivationReport:
        """Run one independent activation and return its report"""
        report = ActivationReport()

        with LogContext(self.logger, activation_id=report.activation_id) as log:
            try:
                await self._run(report, log)
            except SOSError as e:
                log.warning("sos_failed", error=type(e).__name__, detail=str(e))
                report.error = e
                self._transition(report, ActivationState.FAILED)
            except Exception as e:
                log.exception("sos_activation_error")
                report.error = ActivationError(str(e))
                self._transition(report, ActivationState.FAILED)

            report.finished_at = datetime.utcnow()
            log.info(
                "sos_finished",
                state=report.state.value,
                contacts_notified=report.contacts_notified,
                total_contacts=report.total_contacts
            )

        return report

    async def _run(self, report: ActivationReport, log):
        self._transition(report, ActivationState.LOCATING_AND_LOADING_CONTACTS)
        # No location request is made for an anonymous activation
        user_id = await self.directory.current_user_id()
        contact_list, location = await self._locate_and_load(user_id)
        report.location = location
        report.total_contacts = len(contact_list.contacts)

        self._transition(report, ActivationState.COMPOSING)
        message = self.composer.compose(contact_list.name, location)

        self._transition(report, ActivationState.DISPATCHING)
        log.info("sos_dispatching", total_contacts=report.total_contacts)
        report.dispatch_results = await self.dispatcher.dispatch(message, contact_list.contacts)
        report.contacts_notified = sum(1 for r in report.dispatch_results if r.sent)

        self._transition(report, ActivationState.ESCALATING)
        report.call_outcomes = await self.escalator.escalate(contact_list.contacts)

        self._transition(report, ActivationState.COMPLETED)

    async def _locate_and_load(self, user_id: str) -> Tuple[ContactList, Location]:
        """Load contacts and acquire a fix concurrently; first failure wins"""
        contacts_task = asyncio.create_task(self.directory.load_contacts(user_id))
        location_task = asyncio.create_task(self.location_provider.acquire_location())
        tasks = [contacts_task, location_task]

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if task in done and task.exception() is not None:
                raise task.exception()

        return contacts_task.result(), location_task.result()

    def _transition(self, report: ActivationReport, state: ActivationState):
        report.state = state
        for listener in self.state_listeners:
            try:
                listener(report, state)
            except Exception as e:
                self.logger.error("state_listener_error", error=str(e))

