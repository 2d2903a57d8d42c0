"""
Collaborator interfaces consumed by the scheduling engine.

Calendars, routing and notifications live outside the engine; it only talks
to them through these classes.
"""
import datetime
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Iterable, List

from .errors import EstimateUnavailable, TravelEstimateError


class TravelEstimateProvider(ABC):
    @abstractmethod
    def estimate(self, location: str, mode) -> datetime.timedelta:
        """
        Return the travel duration to location using the given TransportMode.
        Raises NotFound or RouteUnavailable on failure.
        """


class EventSource(ABC):
    @abstractmethod
    def fetch_upcoming(self, window_start: datetime.datetime, window_end: datetime.datetime,
                       calendar_ids: Iterable[str]) -> List:
        """
        Return events overlapping the window from the selected calendars,
        ordered by start time. Raises SourceUnavailable when the backing store
        cannot be queried.
        """


class NotificationSink(ABC):
    @abstractmethod
    def deliver(self, title: str, body: str, scheduled_at: datetime.datetime) -> None:
        """Fire-and-forget delivery; callers never wait for confirmation."""

    def withdraw(self, title: str, scheduled_at: datetime.datetime) -> None:
        """Drop a delivery scheduled for the future. Sinks that cannot retract ignore this."""


def fetch_duration(provider: TravelEstimateProvider, location: str, mode, timeout: float) -> datetime.timedelta:
    """
    Ask provider for a travel duration, waiting at most timeout seconds.

    Every failure, including a timeout or an empty answer, is reported as
    EstimateUnavailable. A call that overruns is left to finish in the
    background and its result is dropped.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="estimate")
    future = executor.submit(provider.estimate, location, mode)
    try:
        duration = future.result(timeout=timeout)
    except FutureTimeout:
        logging.warning(f"Travel estimate for '{location}' timed out after {timeout}s")
        raise EstimateUnavailable(location, "timed out")
    except TravelEstimateError as e:
        raise EstimateUnavailable(location, str(e)) from e
    except Exception as e:
        logging.error(f"Unexpected error from travel provider: {e}", exc_info=True)
        raise EstimateUnavailable(location, str(e)) from e
    finally:
        executor.shutdown(wait=False)

    if duration is None:
        raise EstimateUnavailable(location, "provider returned no duration")
    return duration


def deliver_quietly(sink: NotificationSink, title: str, body: str, scheduled_at: datetime.datetime) -> None:
    """Hand a notification to sink, logging rather than raising on failure."""
    if sink is None:
        return
    try:
        sink.deliver(title, body, scheduled_at)
    except Exception as e:
        logging.warning(f"Notification delivery failed for '{title}': {e}")


def withdraw_quietly(sink: NotificationSink, title: str, scheduled_at: datetime.datetime) -> None:
    if sink is None:
        return
    try:
        sink.withdraw(title, scheduled_at)
    except Exception as e:
        logging.warning(f"Could not withdraw notification '{title}': {e}")
