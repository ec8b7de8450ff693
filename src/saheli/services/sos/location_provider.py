"""
Location acquisition

One-shot high-accuracy fixes for SOS activations, and an explicit live
tracking session that periodically publishes the user's position to the
record store for trusted contacts.
"""

import asyncio
import logging
import math
from typing import Optional

from ...models.sos import Location
from .errors import PermissionDenied, PositionUnavailable
from .interfaces import LocationCapability, RecordStore


class LocationProvider:
    """Permission-checked one-shot location fixes"""

    def __init__(self, capability: LocationCapability, fix_timeout: float = 30.0):
        self.logger = logging.getLogger(__name__)
        self.capability = capability
        self.fix_timeout = fix_timeout

    async def acquire_location(self) -> Location:
        """
        Acquire a fresh high-accuracy fix.

        Raises:
            PermissionDenied: foreground location permission was refused
            PositionUnavailable: the platform could not produce a usable fix
        """
        granted = await self.capability.request_permission()
        if not granted:
            self.logger.warning("Location permission denied")
            raise PermissionDenied()

        try:
            location = await asyncio.wait_for(
                self.capability.get_current_fix(high_accuracy=True),
                timeout=self.fix_timeout
            )
        except PositionUnavailable:
            raise
        except asyncio.TimeoutError:
            self.logger.error(f"No location fix within {self.fix_timeout}s")
            raise PositionUnavailable(f"No location fix within {self.fix_timeout}s")
        except Exception as e:
            self.logger.error(f"Location error: {e}")
            raise PositionUnavailable(str(e)) from e

        if not (math.isfinite(location.latitude) and math.isfinite(location.longitude)):
            raise PositionUnavailable("Location fix has non-finite coordinates")

        self.logger.debug(f"Acquired fix {location.latitude},{location.longitude}")
        return location


class LocationTrackingSession:
    """
    Continuous location sharing for one user.

    Owns its tracking state: start() is idempotent, stop() cancels the
    polling task. Each fix is written to the record store; failed fixes or
    writes are logged and the session keeps running.
    """

    def __init__(self, capability: LocationCapability, store: RecordStore,
                 user_id: str, interval_seconds: float = 30.0):
        self.logger = logging.getLogger(__name__)
        self.capability = capability
        self.store = store
        self.user_id = user_id
        self.interval_seconds = interval_seconds

        self.updates_published = 0
        self.last_location: Optional[Location] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """Start tracking; False when permission is refused"""
        if self.is_active:
            self.logger.info("Location tracking already active")
            return True

        if not await self.capability.request_permission():
            self.logger.warning("Location tracking not started: permission denied")
            return False

        self._task = asyncio.create_task(self._tracking_loop())
        self.logger.info(f"Location tracking started for {self.user_id}")
        return True

    async def stop(self):
        """Stop tracking"""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Location tracking stopped")

    async def _tracking_loop(self):
        while True:
            await self._publish_once()
            await asyncio.sleep(self.interval_seconds)

    async def _publish_once(self):
        try:
            location = await self.capability.get_current_fix(high_accuracy=True)
            await self.store.save_live_location(self.user_id, location)
        except Exception as e:
            self.logger.error(f"Error updating location: {e}")
            return

        self.last_location = location
        self.updates_published += 1
        self.logger.debug("Location updated successfully")
