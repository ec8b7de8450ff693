"""
Alert composition

Builds the emergency SMS text from the user's name and a map link.
"""

from decimal import Decimal

from ...models.sos import Location, SOSMessage


DEFAULT_MAP_LINK_PREFIX = "https://www.google.com/maps?q="

SOS_TEMPLATE = (
    "\U0001F6A8 EMERGENCY! {name} needs help!\n"
    "\n"
    "Location: {map_link}\n"
    "\n"
    "Please respond immediately. This is an automated SOS."
)


def _coordinate(value: float) -> str:
    # Shortest round-tripping decimal (-74.006, 40), never exponent notation
    text = format(Decimal(repr(float(value))), 'f')
    if text.endswith('.0'):
        text = text[:-2]
    return '0' if text == '-0' else text


def map_link(location: Location, prefix: str = DEFAULT_MAP_LINK_PREFIX) -> str:
    """Map-query URL for a fix, coordinates embedded verbatim"""
    return f"{prefix}{_coordinate(location.latitude)},{_coordinate(location.longitude)}"


class AlertComposer:
    """Pure composer of SOS messages"""

    def __init__(self, map_link_prefix: str = DEFAULT_MAP_LINK_PREFIX):
        self.map_link_prefix = map_link_prefix

    def compose(self, name: str, location: Location) -> SOSMessage:
        link = map_link(location, self.map_link_prefix)
        return SOSMessage(
            name=name,
            location=location,
            map_link=link,
            body=SOS_TEMPLATE.format(name=name, map_link=link)
        )
