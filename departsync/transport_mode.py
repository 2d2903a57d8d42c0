import logging
from enum import Enum


class TransportMode(Enum):
    CAR = "car"
    TRANSIT = "transit"
    BIKE = "bike"
    WALK = "walk"

    @property
    def label(self):
        return self.value.capitalize()

    @property
    def routing_hint(self):
        """
        Routing hint handed to travel-time providers.
        Bikes are routed on the walking network, matching the cycle paths most
        providers expose there.
        """
        return _ROUTING_HINTS[self]

    @classmethod
    def parse(cls, value):
        """Parse a stored mode, falling back to car for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logging.warning(f"Unknown transport mode '{value}', defaulting to car")
            return cls.CAR


_ROUTING_HINTS = {
    TransportMode.CAR: "automobile",
    TransportMode.TRANSIT: "transit",
    TransportMode.BIKE: "walking",
    TransportMode.WALK: "walking",
}
