"""
Leave-by window calculation.

Given when an event starts and how long the trip takes, work out the ideal
moment to leave and the latest acceptable one.
"""
import datetime
from dataclasses import dataclass

# Safety margin: 10% of the travel time, never less than five minutes
BUFFER_FRACTION = 0.10
MIN_BUFFER = datetime.timedelta(minutes=5)


@dataclass(frozen=True)
class DepartureWindow:
    ideal_leave_time: datetime.datetime
    last_leave_time: datetime.datetime
    event_start_time: datetime.datetime
    travel_duration_label: str
    travel_duration: datetime.timedelta

    @property
    def buffer(self) -> datetime.timedelta:
        return self.last_leave_time - self.ideal_leave_time


def compute_window(event_start: datetime.datetime, travel_duration: datetime.timedelta) -> DepartureWindow:
    """
    Map an event start and a travel duration to a DepartureWindow.

    Negative durations are clamped to zero.
    """
    if travel_duration < datetime.timedelta(0):
        travel_duration = datetime.timedelta(0)

    buffer = max(travel_duration * BUFFER_FRACTION, MIN_BUFFER)
    ideal_leave = event_start - travel_duration
    return DepartureWindow(
        ideal_leave_time=ideal_leave,
        last_leave_time=ideal_leave + buffer,
        event_start_time=event_start,
        travel_duration_label=format_duration(travel_duration),
        travel_duration=travel_duration,
    )


def format_duration(duration: datetime.timedelta) -> str:
    """Format a travel duration as "24 min", "1 hr" or "1 hr 5 min"."""
    minutes = int(duration.total_seconds() // 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, minutes = divmod(minutes, 60)
    return f"{hours} hr" if minutes == 0 else f"{hours} hr {minutes} min"
