"""
DepartSync

Works out when to leave for upcoming calendar events and keeps a live
"time to leave" status fresh while travel-time estimates change.

To use, build a DepartureScheduler around a travel-time provider and feed it
the upcoming events, or let a DepartureCoordinator poll an event source.

Example:
    from departsync import APIClient, DepartureScheduler, DepartureCoordinator
    from departsync.calendar_source import JsonFileEventSource
    from departsync.preferences import load_preferences

    scheduler = DepartureScheduler(APIClient(origin_address="1 Willis Street, Wellington"))
    coordinator = DepartureCoordinator(
        JsonFileEventSource("events.json"), scheduler, load_preferences("preferences.json")
    )
    coordinator.reload()
    session = scheduler.current_session
"""

from .api_client import APIClient
from .coordinator import DepartureCoordinator
from .event import Event
from .scheduler import DepartureScheduler
from .session import DepartureSession, SessionState
from .transport_mode import TransportMode
from .window import DepartureWindow, compute_window

__all__ = [
    'APIClient',
    'DepartureCoordinator',
    'DepartureScheduler',
    'DepartureSession',
    'DepartureWindow',
    'Event',
    'SessionState',
    'TransportMode',
    'compute_window',
]
