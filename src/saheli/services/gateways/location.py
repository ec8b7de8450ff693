"""
Location capabilities

A configured fixed position for stationary deployments, and an approximate
IP-based lookup for hosts without a GPS receiver.
"""

import logging
from typing import Optional

import aiohttp

from ...models.sos import Location
from ..sos.errors import PositionUnavailable
from ..sos.interfaces import LocationCapability


class FixedLocationCapability(LocationCapability):
    """Reports a configured position"""

    def __init__(self, latitude: Optional[float], longitude: Optional[float],
                 accuracy: Optional[float] = None, permission_granted: bool = True):
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy = accuracy
        self.permission_granted = permission_granted

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def get_current_fix(self, high_accuracy: bool = True) -> Location:
        if self.latitude is None or self.longitude is None:
            raise PositionUnavailable("No fixed location configured")
        return Location(
            latitude=float(self.latitude),
            longitude=float(self.longitude),
            accuracy=self.accuracy
        )


class IPGeolocationCapability(LocationCapability):
    """Approximate position from the host's public IP address"""

    # City-level lookups are rarely better than this
    APPROXIMATE_ACCURACY_M = 5000.0

    def __init__(self, lookup_url: str = "http://ip-api.com/json/", timeout: float = 10.0):
        self.logger = logging.getLogger(__name__)
        self.lookup_url = lookup_url
        self.timeout = timeout

    async def request_permission(self) -> bool:
        return True

    async def get_current_fix(self, high_accuracy: bool = True) -> Location:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.lookup_url,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        raise PositionUnavailable(f"Geolocation lookup returned {response.status}")
                    data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise PositionUnavailable(f"Geolocation lookup failed: {e}") from e

        lat = data.get('lat', data.get('latitude'))
        lon = data.get('lon', data.get('longitude'))
        if lat is None or lon is None:
            raise PositionUnavailable(f"Geolocation lookup has no coordinates: {data.get('message', '')}")

        self.logger.info(f"Approximate location from IP lookup: {lat},{lon}")
        return Location(
            latitude=float(lat),
            longitude=float(lon),
            accuracy=self.APPROXIMATE_ACCURACY_M
        )
