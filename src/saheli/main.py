"""
Saheli Main Application Entry Point

Wires configuration, logging, the record store backend and the SMS, voice
and location adapters into the SOS workflow, and exposes it on the command
line.
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional

from .core.config import ConfigurationError, ConfigurationManager
from .core.logging import get_logger, initialize_logging, mask_phone
from .models.sos import ActivationReport, CallDecision, EmergencyContact, UserProfile
from .services.backends import create_backend
from .services.gateways import (
    AutoDecisionPrompt,
    ConsoleDecisionPrompt,
    FixedLocationCapability,
    IPGeolocationCapability,
    TwilioClient,
    TwilioSMSGateway,
    TwilioVoiceDialer
)
from .services.sos import (
    AlertComposer,
    CallEscalator,
    ContactDirectory,
    LocationProvider,
    LocationTrackingSession,
    NotificationDispatcher,
    SOSCountdown,
    SOSOrchestrator
)
from .services.sos.errors import RecordStoreError, SOSError
from .services.sos.interfaces import DecisionPrompt, LocationCapability


class SaheliApplication:
    """Main Saheli application class"""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self.config_manager: Optional[ConfigurationManager] = None
        self.logger = None

        self.session = None
        self.store = None
        self.twilio_client: Optional[TwilioClient] = None
        self.sms_gateway: Optional[TwilioSMSGateway] = None
        self.dialer: Optional[TwilioVoiceDialer] = None
        self.location_capability: Optional[LocationCapability] = None
        self.directory: Optional[ContactDirectory] = None

    def initialize(self):
        """Load configuration and build every adapter"""
        self.config_manager = ConfigurationManager(self.config_dir)
        self.config_manager.load_config()

        initialize_logging(self.config_manager.config)
        self.logger = get_logger('main')
        self.logger.info(f"Saheli {self.config_manager.get('app.version', '1.0.0')} starting")

        self.session, self.store = create_backend(self.config_manager)
        self.directory = ContactDirectory(
            self.session,
            self.store,
            max_contacts=self.config_manager.get('contacts.max_contacts', 5)
        )

        twilio = self.config_manager.get_section('twilio')
        self.twilio_client = TwilioClient(
            twilio.get('account_sid'),
            twilio.get('auth_token'),
            twilio.get('from_number'),
            api_base=twilio.get('api_base', 'https://api.twilio.com/2010-04-01'),
            timeout=twilio.get('timeout', 15)
        )
        if not self.twilio_client.is_configured():
            self.logger.warning("Twilio credentials missing; SMS sends and calls will fail")
        self.sms_gateway = TwilioSMSGateway(self.twilio_client)
        self.dialer = TwilioVoiceDialer(self.twilio_client, twilio.get('call_twiml', ''))

        self.location_capability = self._build_location_capability()

    def _build_location_capability(self) -> LocationCapability:
        location = self.config_manager.get_section('location')
        if location.get('provider') == 'ip':
            return IPGeolocationCapability(location.get('ip_lookup_url', 'http://ip-api.com/json/'))
        return FixedLocationCapability(
            location.get('latitude'),
            location.get('longitude'),
            location.get('accuracy')
        )

    def _build_prompt(self, mode: Optional[str] = None) -> DecisionPrompt:
        mode = mode or self.config_manager.get('sos.call_decision', 'prompt')
        if mode == 'accept':
            return AutoDecisionPrompt(CallDecision.ACCEPTED)
        if mode == 'skip':
            return AutoDecisionPrompt(CallDecision.SKIPPED)
        return ConsoleDecisionPrompt()

    def build_orchestrator(self, call_decision: Optional[str] = None) -> SOSOrchestrator:
        """Assemble the SOS components from configuration"""
        sos = self.config_manager.get_section('sos')
        orchestrator = SOSOrchestrator(
            directory=self.directory,
            location_provider=LocationProvider(
                self.location_capability,
                fix_timeout=sos.get('location_timeout', 30)
            ),
            composer=AlertComposer(sos.get('map_link_prefix', 'https://www.google.com/maps?q=')),
            dispatcher=NotificationDispatcher(
                self.sms_gateway,
                send_timeout=sos.get('send_timeout', 20),
                max_retries=sos.get('max_send_retries', 2),
                backoff_base=sos.get('retry_backoff_base', 1.0)
            ),
            escalator=CallEscalator(
                self._build_prompt(call_decision),
                self.dialer,
                decision_timeout=sos.get('call_decision_timeout', 30)
            )
        )
        orchestrator.add_state_listener(
            lambda report, state: self.logger.debug(f"SOS {report.activation_id} -> {state.value}")
        )
        return orchestrator

    async def run_sos(self, use_countdown: bool = True,
                      call_decision: Optional[str] = None) -> Optional[ActivationReport]:
        """Activate SOS, behind the countdown unless disabled; None if cancelled"""
        orchestrator = self.build_orchestrator(call_decision)
        if not use_countdown:
            return await orchestrator.activate()

        countdown = SOSCountdown(
            orchestrator,
            seconds=self.config_manager.get('sos.countdown_seconds', 5),
            on_tick=self._print_tick
        )
        loop = asyncio.get_running_loop()

        def _interrupt(signum, frame):
            loop.call_soon_threadsafe(self._cancel_countdown, countdown)

        previous = signal.signal(signal.SIGINT, _interrupt)
        try:
            countdown.start()
            return await countdown.wait()
        finally:
            signal.signal(signal.SIGINT, previous)

    def _cancel_countdown(self, countdown: SOSCountdown):
        if countdown.cancel():
            print("\nSOS cancelled.")
        else:
            print("\nSOS is already being sent and cannot be cancelled.")

    @staticmethod
    def _print_tick(remaining: int):
        if remaining > 0:
            print(f"Sending SOS in {remaining}... (Ctrl+C to cancel)")
        else:
            print("Sending SOS...")

    async def list_contacts(self) -> List[EmergencyContact]:
        user_id = await self.directory.current_user_id()
        return await self.directory.list_contacts(user_id)

    async def add_contact(self, name: str, phone: str) -> EmergencyContact:
        user_id = await self.directory.current_user_id()
        return await self.directory.add_contact(user_id, name, phone)

    async def remove_contact(self, contact_id: str):
        user_id = await self.directory.current_user_id()
        await self.directory.remove_contact(user_id, contact_id)

    async def set_profile(self, name: str, address: Optional[str] = None,
                          occupation: Optional[str] = None):
        """Create or update the local user's profile (SQLite backend only)"""
        if not hasattr(self.store, 'upsert_user_profile'):
            raise ConfigurationError("Profiles are managed by the hosted backend")
        user_id = await self.directory.current_user_id()
        await self.store.upsert_user_profile(
            UserProfile(id=user_id, name=name, address=address, occupation=occupation)
        )

    async def track(self, duration: float) -> int:
        """Share live location for ``duration`` seconds; returns updates published"""
        user_id = await self.directory.current_user_id()
        session = LocationTrackingSession(
            self.location_capability,
            self.store,
            user_id,
            interval_seconds=self.config_manager.get('tracking.interval_seconds', 30)
        )
        if not await session.start():
            raise SOSError("Location permission is required for live tracking.")
        try:
            await asyncio.sleep(duration)
        finally:
            await session.stop()
        return session.updates_published

    async def shutdown(self):
        """Release network sessions and database connections"""
        if self.twilio_client:
            await self.twilio_client.close()
        if self.store:
            await self.store.close()


def print_report(report: ActivationReport):
    """Human-readable activation summary"""
    print(report.user_message())
    for result in report.dispatch_results:
        status = "sent" if result.sent else f"failed ({result.reason})"
        print(f"  SMS {result.contact.name} {mask_phone(result.contact.phone)}: {status}")
    for outcome in report.call_outcomes:
        line = f"  Call {outcome.contact.name}: {outcome.decision.value}"
        if outcome.dialed:
            line += ", dialed"
        elif outcome.error:
            line += f", {outcome.error}"
        print(line)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="saheli",
        description="Saheli personal safety: SOS alerts to your emergency contacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Send an SOS after the countdown, asking before each call
  saheli sos

  # Send immediately and call nobody
  saheli sos --no-countdown --call-decision skip

  # Manage emergency contacts
  saheli contacts add "Asha" +15550001111
  saheli contacts list
  saheli contacts remove 3

  # Share live location for ten minutes
  saheli track --duration 600
        """
    )
    parser.add_argument(
        "--config-dir",
        default="config",
        help="Directory holding default.yaml and config.yaml (default: config)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sos = subparsers.add_parser("sos", help="Activate SOS")
    sos.add_argument(
        "--no-countdown",
        action="store_true",
        help="Skip the cancel countdown"
    )
    sos.add_argument(
        "--call-decision",
        choices=["prompt", "accept", "skip"],
        help="How to answer the per-contact call prompts"
    )
    sos.add_argument(
        "--json",
        action="store_true",
        help="Print the activation report as JSON"
    )

    contacts = subparsers.add_parser("contacts", help="Manage emergency contacts")
    contact_commands = contacts.add_subparsers(dest="contacts_command", required=True)
    contact_commands.add_parser("list", help="List emergency contacts")
    add = contact_commands.add_parser("add", help="Add an emergency contact")
    add.add_argument("name", help="Contact name")
    add.add_argument("phone", help="Contact phone number")
    remove = contact_commands.add_parser("remove", help="Remove an emergency contact")
    remove.add_argument("contact_id", help="Contact id as shown by 'contacts list'")

    track = subparsers.add_parser("track", help="Share live location")
    track.add_argument(
        "--duration",
        type=float,
        default=300.0,
        help="Seconds to keep sharing (default: 300)"
    )

    profile = subparsers.add_parser("profile", help="Set the local user's profile")
    profile.add_argument("name", help="Name used in SOS messages")
    profile.add_argument("--address", default=None, help="Home address")
    profile.add_argument("--occupation", default=None, help="Occupation")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Run one command; returns the process exit code"""
    args = build_parser().parse_args(argv)
    app = SaheliApplication(args.config_dir)

    try:
        app.initialize()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "sos":
            report = await app.run_sos(not args.no_countdown, args.call_decision)
            if report is None:
                return 1
            if args.json:
                print(json.dumps(report.to_dict(), indent=2))
            else:
                print_report(report)
            return 0 if report.success else 1

        if args.command == "contacts":
            if args.contacts_command == "list":
                contacts = await app.list_contacts()
                if not contacts:
                    print("No emergency contacts added.")
                for contact in contacts:
                    print(f"{contact.id}\t{contact.name}\t{contact.phone}")
            elif args.contacts_command == "add":
                contact = await app.add_contact(args.name, args.phone)
                print(f"Added {contact.name} (id {contact.id})")
            else:
                await app.remove_contact(args.contact_id)
                print(f"Removed contact {args.contact_id}")
            return 0

        if args.command == "track":
            published = await app.track(args.duration)
            print(f"Shared {published} location update(s)")
            return 0

        if args.command == "profile":
            await app.set_profile(args.name, args.address, args.occupation)
            print(f"Profile saved for {args.name}")
            return 0

        return 1

    except (SOSError, ConfigurationError, RecordStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await app.shutdown()


def run():
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(1)


if __name__ == "__main__":
    run()
