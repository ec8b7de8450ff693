"""
Pre-activation countdown

Gives the user a few seconds to cancel an accidental SOS. Cancelling while
counting discards the activation without touching any collaborator; once
the countdown fires the activation runs to completion even if the
countdown task is cancelled.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from ...models.sos import ActivationReport
from .orchestrator import SOSOrchestrator


class CountdownState(Enum):
    PENDING = "pending"
    COUNTING = "counting"
    CANCELLED = "cancelled"
    ACTIVATED = "activated"


class SOSCountdown:
    """Tap-to-cancel countdown in front of one SOS activation"""

    def __init__(self, orchestrator: SOSOrchestrator, seconds: int = 5,
                 on_tick: Optional[Callable[[int], None]] = None,
                 tick_interval: float = 1.0):
        self.logger = logging.getLogger(__name__)
        self.orchestrator = orchestrator
        self.seconds = seconds
        self.on_tick = on_tick
        self.tick_interval = tick_interval

        self.state = CountdownState.PENDING
        self.remaining = seconds
        self._task: Optional[asyncio.Task] = None
        self._activation: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Begin counting down; the activation fires when it reaches zero"""
        if self.state != CountdownState.PENDING:
            raise RuntimeError(f"Countdown already {self.state.value}")

        self.state = CountdownState.COUNTING
        self._task = asyncio.create_task(self._run())
        self.logger.info(f"SOS countdown started ({self.seconds}s)")
        return self._task

    def cancel(self) -> bool:
        """Cancel before the activation begins; False once it has fired"""
        if self.state == CountdownState.PENDING:
            self.state = CountdownState.CANCELLED
            return True
        if self.state != CountdownState.COUNTING:
            return False

        self.state = CountdownState.CANCELLED
        if self._task:
            self._task.cancel()
        self.logger.info(f"SOS countdown cancelled with {self.remaining}s left")
        return True

    async def wait(self) -> Optional[ActivationReport]:
        """Report of the fired activation, or None if cancelled"""
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            if self.state == CountdownState.CANCELLED:
                return None
            if self._activation is not None:
                return await self._activation
            raise

    async def _run(self) -> ActivationReport:
        while self.remaining > 0:
            self._tick()
            await asyncio.sleep(self.tick_interval)
            self.remaining -= 1

        self.state = CountdownState.ACTIVATED
        self._tick()
        self._activation = asyncio.create_task(self.orchestrator.activate())
        return await asyncio.shield(self._activation)

    def _tick(self):
        if self.on_tick is None:
            return
        try:
            self.on_tick(self.remaining)
        except Exception as e:
            self.logger.error(f"Countdown tick callback failed: {e}")
