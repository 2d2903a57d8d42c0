import json
import logging

from .errors import SourceUnavailable
from .event import Event
from .providers import EventSource


class JsonFileEventSource(EventSource):
    """
    Event source reading a JSON array of calendar API style event dicts.
    Each entry names its calendar with "calendarId".
    """

    def __init__(self, path):
        self.path = path

    def _load(self):
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise SourceUnavailable(f"Cannot read events file {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise SourceUnavailable(f"Invalid JSON in events file {self.path}: {e}") from e
        if not isinstance(data, list):
            raise SourceUnavailable(f"Events file {self.path} must contain a JSON array")
        return data

    def fetch_upcoming(self, window_start, window_end, calendar_ids):
        selected = set(calendar_ids)
        events = []
        for event_data in self._load():
            if not isinstance(event_data, dict):
                logging.warning(f"Skipping malformed event entry: {event_data!r}")
                continue
            if event_data.get('calendarId') not in selected:
                continue
            try:
                event = Event(event_data)
            except ValueError as e:
                logging.warning(f"Skipping invalid event: {e}")
                continue
            if event.start_time is None:
                logging.warning(f"Skipping event '{event.summary}' - unparseable start time")
                continue
            # Keep anything overlapping the window
            if event.end_time < window_start or event.start_time > window_end:
                continue
            events.append(event)

        events.sort(key=lambda e: e.start_time)
        logging.info(f"Loaded {len(events)} upcoming events from {self.path}")
        return events
