import json
import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet

from .config import Config
from .transport_mode import TransportMode


@dataclass(frozen=True)
class UserPreferences:
    """User settings, read-only to the scheduling engine."""
    selected_calendar_ids: FrozenSet[str] = field(default_factory=frozenset)
    transport_mode: TransportMode = TransportMode.CAR
    notification_lead_time: int = Config.DEFAULT_LEAD_TIME_MINUTES


def load_preferences(path=None) -> UserPreferences:
    """
    Load preferences from a JSON file.

    Keys: selectedCalendarIDs (list), transportMode (car/transit/bike/walk),
    notificationLeadTime (minutes). A lead time of 0 or a missing key means
    the default. A missing or unreadable file gives all defaults.
    """
    path = path or Config.PREFERENCES_PATH
    if not os.path.exists(path):
        logging.info(f"No preferences file at {path}; using defaults")
        return UserPreferences()

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.error(f"Could not read preferences from {path}: {e}; using defaults")
        return UserPreferences()
    if not isinstance(data, dict):
        logging.error(f"Preferences file {path} does not hold an object; using defaults")
        return UserPreferences()

    try:
        lead_time = int(data.get('notificationLeadTime') or 0)
    except (TypeError, ValueError):
        logging.warning(f"Invalid notificationLeadTime {data.get('notificationLeadTime')!r}; using default")
        lead_time = 0

    return UserPreferences(
        selected_calendar_ids=frozenset(str(cid) for cid in data.get('selectedCalendarIDs', [])),
        transport_mode=TransportMode.parse(data.get('transportMode', 'car')),
        notification_lead_time=lead_time if lead_time > 0 else Config.DEFAULT_LEAD_TIME_MINUTES,
    )
