import datetime
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .window import DepartureWindow


@dataclass(frozen=True)
class DepartureStatus:
    """
    Snapshot handed to the presentation layer.

    stale_at is when the snapshot should be considered out of date if no
    newer one has arrived, normally one refresh interval after publishing.
    """
    ideal_leave_time: datetime.datetime
    last_leave_time: datetime.datetime
    event_start_time: datetime.datetime
    travel_duration_label: str
    headline: str
    event_title: str = ""
    event_location: str = ""
    transport_mode: str = ""
    stale_at: Optional[datetime.datetime] = None

    @classmethod
    def from_window(cls, window: DepartureWindow, now: datetime.datetime, event_title: str = "",
                    event_location: str = "", transport_mode: str = "",
                    stale_after: Optional[datetime.timedelta] = None):
        return cls(
            ideal_leave_time=window.ideal_leave_time,
            last_leave_time=window.last_leave_time,
            event_start_time=window.event_start_time,
            travel_duration_label=window.travel_duration_label,
            headline=headline(window, now),
            event_title=event_title,
            event_location=event_location or "",
            transport_mode=transport_mode,
            stale_at=now + stale_after if stale_after is not None else None,
        )

    def progress(self, now: datetime.datetime) -> float:
        """Fraction of the buffer between ideal and last leave time used up at now."""
        total = (self.last_leave_time - self.ideal_leave_time).total_seconds()
        if total <= 0:
            return 1.0
        elapsed = (now - self.ideal_leave_time).total_seconds()
        return min(max(elapsed / total, 0.0), 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventTitle": self.event_title,
            "eventLocation": self.event_location,
            "transportMode": self.transport_mode,
            "idealLeaveTime": self.ideal_leave_time.isoformat(),
            "lastLeaveTime": self.last_leave_time.isoformat(),
            "eventStartTime": self.event_start_time.isoformat(),
            "travelDuration": self.travel_duration_label,
            "headline": self.headline,
            "staleAt": self.stale_at.isoformat() if self.stale_at else None,
        }


def headline(window: DepartureWindow, now: datetime.datetime) -> str:
    if now >= window.last_leave_time:
        return "Leave now!"
    if now >= window.ideal_leave_time:
        mins = int((window.last_leave_time - now).total_seconds() // 60)
        return f"Leave within {mins} min"
    mins = int((window.ideal_leave_time - now).total_seconds() // 60)
    return f"Go in {mins} minutes"
