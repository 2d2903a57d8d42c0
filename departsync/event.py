import datetime
from typing import Dict, Any, Optional

import pytz

from .config import Config


class Event:
    def __init__(self, event_dict: Dict[str, Any]) -> None:
        # Initialize the event with data from a calendar API style dictionary
        self.id = event_dict.get('id')
        self.summary = event_dict.get('summary') or 'Untitled Event'
        location = event_dict.get('location')
        self.location = location.strip() if location and location.strip() else None
        self.description = event_dict.get('description', '')
        self.calendar_id = event_dict.get('calendarId')
        self.time_zone = Config.TIMEZONE
        self.all_day = False

        # Handle start time
        start = event_dict.get('start', {})
        if isinstance(start, dict):
            if 'date' in start and 'dateTime' not in start:
                self.all_day = True
                self.start_str = start.get('date')
            else:
                self.start_str = start.get('dateTime')
            if 'timeZone' in start:
                self.time_zone = start.get('timeZone')
        else:
            self.start_str = start

        # Handle end time
        end = event_dict.get('end', {})
        if isinstance(end, dict):
            self.end_str = end.get('date') if self.all_day else end.get('dateTime')
        else:
            self.end_str = end

        # Parse datetime objects
        self.start_time = self._parse_datetime(self.start_str)
        self.end_time = self._parse_datetime(self.end_str) or self.start_time

        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValueError(f"Event '{self.summary}' ends before it starts")

    def _parse_datetime(self, datetime_str) -> Optional[datetime.datetime]:
        """Parse an ISO format datetime string, localizing naive values to the event time zone."""
        if not datetime_str:
            return None
        try:
            parsed = datetime.datetime.fromisoformat(datetime_str.replace('Z', '+00:00'))
        except (ValueError, AttributeError):
            return None
        if parsed.tzinfo is None:
            try:
                tz = pytz.timezone(self.time_zone)
            except pytz.UnknownTimeZoneError:
                tz = pytz.timezone(Config.TIMEZONE)
            parsed = tz.localize(parsed)
        return parsed

    @property
    def title(self):
        return self.summary

    def is_same_occurrence(self, other) -> bool:
        """True when other is the same event at the same time and place."""
        if other is None:
            return False
        return (
            self.id == other.id
            and self.start_time == other.start_time
            and self.location == other.location
        )

    def __str__(self):
        """String representation of the event."""
        return f"Event({self.summary}, {self.start_time}, {self.location})"

    def __repr__(self):
        """Representation of the event."""
        return self.__str__()
