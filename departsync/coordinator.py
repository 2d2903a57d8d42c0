import datetime
import logging
import threading

from .config import Config
from .errors import SourceUnavailable
from .session import utcnow
from .transport_mode import TransportMode


class DepartureCoordinator:
    """
    Top-level owner of the scheduling engine.

    Build one per process and hand it its collaborators: it polls the event
    source, feeds the scheduler, and routes external triggers to it.
    """

    def __init__(self, event_source, scheduler, preferences, clock=None, lookahead_days=None):
        self.event_source = event_source
        self.scheduler = scheduler
        self.preferences = preferences
        self.clock = clock or utcnow
        self.lookahead = datetime.timedelta(days=lookahead_days or Config.LOOKAHEAD_DAYS)
        self._shutdown_event = threading.Event()

    def _fetch(self):
        now = self.clock()
        return self.event_source.fetch_upcoming(
            now, now + self.lookahead, self.preferences.selected_calendar_ids
        )

    def reload(self):
        """
        Fetch the upcoming events and let the scheduler re-evaluate.
        Returns the event list, or None when the source was unavailable.
        """
        try:
            events = self._fetch()
        except SourceUnavailable as e:
            # Not the same as an empty list; tracked sessions stay as they are
            logging.warning(f"Event source unavailable, skipping this reload: {e}")
            return None

        self.scheduler.on_event_list_changed(
            events, self.preferences.transport_mode, self.preferences.notification_lead_time
        )
        return events

    def update_preferences(self, preferences):
        self.preferences = preferences
        logging.info("Preferences changed; reloading events")
        return self.reload()

    def on_external_trigger(self, event_id, mode=None):
        """Re-resolve event_id from the source and schedule it."""
        try:
            events = self._fetch()
        except SourceUnavailable as e:
            logging.warning(f"Cannot resolve event {event_id}: {e}")
            return None

        event = next((e for e in events if e.id == event_id), None)
        if event is None:
            logging.warning(f"External trigger for unknown event {event_id}")
            return None
        mode = TransportMode.parse(mode) if mode else self.preferences.transport_mode
        return self.scheduler.schedule_activity_start(event, mode, self.preferences.notification_lead_time)

    def run(self, poll_interval_seconds=None):
        """Reload now and then every poll interval until shutdown() is called."""
        interval = poll_interval_seconds or Config.POLL_INTERVAL_SECONDS
        logging.info(f"Coordinator running, polling every {interval}s")
        while not self._shutdown_event.is_set():
            try:
                self.reload()
            except Exception as e:
                logging.error(f"Reload failed: {e}", exc_info=True)
            self._shutdown_event.wait(interval)
        logging.info("Coordinator stopped")

    def shutdown(self):
        self._shutdown_event.set()
        self.scheduler.shutdown()
