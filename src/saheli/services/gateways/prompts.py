"""
Call decision prompts

Ways for a person (or a policy) to answer "call this contact now?" during
escalation. The escalator bounds every prompt with its own timeout.
"""

import asyncio
import logging
import sys
import threading
import time
from typing import Callable, Optional, TextIO

from ...models.sos import CallDecision, EmergencyContact
from ..sos.interfaces import DecisionPrompt


class AutoDecisionPrompt(DecisionPrompt):
    """Answers every prompt with the same decision"""

    def __init__(self, decision: CallDecision = CallDecision.SKIPPED):
        if decision not in (CallDecision.ACCEPTED, CallDecision.SKIPPED):
            raise ValueError(f"Unsupported automatic decision: {decision}")
        self.decision = decision

    async def prompt_call_decision(self, contact: EmergencyContact,
                                   position: int, total: int) -> CallDecision:
        return self.decision


class ConsoleDecisionPrompt(DecisionPrompt):
    """
    Asks on the terminal.

    One daemon thread owns stdin for the life of the prompt and hands each
    line to the event loop stamped with the time it was read. A prompt only
    takes lines read after it opened, so an answer typed after a timed-out
    prompt is never credited to the next contact.
    """

    def __init__(self, readline: Optional[Callable[[], str]] = None,
                 output: Optional[TextIO] = None):
        self.logger = logging.getLogger(__name__)
        self.readline = readline or sys.stdin.readline
        self.output = output or sys.stdout
        self._lines: Optional[asyncio.Queue] = None
        self._reader: Optional[threading.Thread] = None

    async def prompt_call_decision(self, contact: EmergencyContact,
                                   position: int, total: int) -> CallDecision:
        opened_at = time.monotonic()
        if self._reader is None:
            self._start_reader(asyncio.get_running_loop())

        self.output.write(f"Calling {contact.name}: emergency contact {position} of {total}. "
                          f"[c]all now / [s]kip? ")
        self.output.flush()

        while True:
            read_at, line = await self._lines.get()
            if read_at >= opened_at:
                break
            self.logger.debug("Discarding console input typed before the current prompt")

        if line.strip().lower() in ('c', 'call', 'y', 'yes'):
            return CallDecision.ACCEPTED
        return CallDecision.SKIPPED

    def _start_reader(self, loop: asyncio.AbstractEventLoop):
        self._lines = asyncio.Queue()

        def read_lines():
            while True:
                line = self.readline()
                if not line:
                    return
                try:
                    loop.call_soon_threadsafe(self._lines.put_nowait, (time.monotonic(), line))
                except RuntimeError:
                    # Event loop already closed
                    return

        self._reader = threading.Thread(target=read_lines, name="saheli-console-prompt", daemon=True)
        self._reader.start()


class FutureDecisionPrompt(DecisionPrompt):
    """
    Decision-result channel for UIs.

    Each prompt exposes the contact being asked about through ``pending``;
    the UI answers with ``resolve()``. An unanswered prompt is abandoned
    when the escalator's timeout cancels it.
    """

    def __init__(self, on_prompt: Optional[Callable[[EmergencyContact, int, int], None]] = None):
        self.logger = logging.getLogger(__name__)
        self.on_prompt = on_prompt
        self.pending: Optional[EmergencyContact] = None
        self._future: Optional[asyncio.Future] = None

    async def prompt_call_decision(self, contact: EmergencyContact,
                                   position: int, total: int) -> CallDecision:
        self._future = asyncio.get_running_loop().create_future()
        self.pending = contact
        if self.on_prompt:
            self.on_prompt(contact, position, total)

        try:
            return await self._future
        finally:
            self.pending = None
            self._future = None

    def resolve(self, decision: CallDecision) -> bool:
        """Answer the open prompt; False when nothing is waiting"""
        if self._future is None or self._future.done():
            self.logger.warning("No call prompt is waiting for a decision")
            return False
        self._future.set_result(decision)
        return True
