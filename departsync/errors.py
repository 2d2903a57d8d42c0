"""
Exceptions raised by the departure-scheduling engine and its collaborators.

None of these are fatal: the worst outcome for any of them is that no
departure session is live.
"""


class DepartureError(Exception):
    """Base class for every error raised by departsync."""


class NoLocation(DepartureError):
    """The event has no destination, so no session can be started for it."""

    def __init__(self, event):
        self.event = event
        super().__init__(f"Event '{getattr(event, 'summary', event)}' has no location")


class EstimateUnavailable(DepartureError):
    """The travel-time provider failed, timed out or returned nothing usable."""

    def __init__(self, location, reason=""):
        self.location = location
        self.reason = reason
        message = f"No travel estimate for '{location}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SourceUnavailable(DepartureError):
    """The event source could not be queried."""


class PastAlertTime(DepartureError):
    """The computed alert time has already elapsed."""

    def __init__(self, event, alert_time):
        self.event = event
        self.alert_time = alert_time
        super().__init__(
            f"Alert time {alert_time.isoformat()} for '{getattr(event, 'summary', event)}' has passed"
        )


class TravelEstimateError(DepartureError):
    """Raised by a TravelEstimateProvider when it cannot produce a duration."""


class NotFound(TravelEstimateError):
    """The destination could not be resolved to a place."""


class RouteUnavailable(TravelEstimateError):
    """A place was found but no route to it could be computed."""
