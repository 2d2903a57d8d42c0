import datetime
import logging
import threading

from .config import Config
from .errors import DepartureError, PastAlertTime
from .providers import fetch_duration
from .session import DepartureSession, SessionState, utcnow
from .timers import ThreadingTimers
from .transport_mode import TransportMode
from .window import compute_window


class DepartureScheduler:
    """
    Decides which event gets the live departure session.

    At most one session is ARMED or LIVE at any time. The current-session
    slot is only reassigned under self._lock, and the previous session is
    always ended before its replacement starts.
    """

    def __init__(self, provider, timers=None, notifier=None, clock=None,
                 refresh_interval=None, estimate_timeout=None):
        self.provider = provider
        self.timers = timers or ThreadingTimers()
        self.notifier = notifier
        self.clock = clock or utcnow
        self.refresh_interval = refresh_interval or Config.REFRESH_INTERVAL_SECONDS
        self.estimate_timeout = estimate_timeout or Config.ESTIMATE_TIMEOUT_SECONDS

        self._lock = threading.RLock()
        self._current = None
        self._listeners = []
        self._shut_down = False

    @property
    def current_session(self):
        with self._lock:
            if self._current is not None and not self._current.is_active:
                self._current = None
            return self._current

    def subscribe(self, listener):
        """Receive DepartureStatus updates from whichever session is current."""
        with self._lock:
            self._listeners.append(listener)
            if self._current is not None and self._current.is_active:
                self._current.subscribe(listener)

    def is_suitable_event(self, event):
        """
        Determines if an event can be tracked at all.

        Filters out:
        - Events without a start time
        - All-day events
        - Events without a location
        - Events that have already started
        """
        if event.start_time is None:
            logging.debug(f"Skipping event '{event.summary}' - no start time")
            return False
        if event.all_day:
            logging.debug(f"Skipping event '{event.summary}' - all day")
            return False
        if not event.location:
            logging.debug(f"Skipping event '{event.summary}' - no location")
            return False
        if event.start_time <= self.clock():
            logging.debug(f"Skipping event '{event.summary}' - already started")
            return False
        return True

    def schedule_activity_start(self, event, mode, lead_time_minutes):
        """
        Start tracking event if its alert time is still ahead.

        Returns the new session, or None when the event was skipped. Skips
        are logged, never raised. The travel estimate is fetched without
        holding the slot lock.
        """
        if self._shut_down:
            logging.debug("Scheduler is shut down; ignoring schedule request")
            return None
        mode = TransportMode.parse(mode)
        if not self.is_suitable_event(event):
            return None

        try:
            duration = fetch_duration(self.provider, event.location, mode, self.estimate_timeout)
            window = compute_window(event.start_time, duration)
            alert_time = window.last_leave_time - datetime.timedelta(minutes=lead_time_minutes)
            if alert_time <= self.clock():
                raise PastAlertTime(event, alert_time)

            with self._lock:
                if self._shut_down:
                    return None
                session = self._replace_current_locked(event, mode, lead_time_minutes, duration)
        except PastAlertTime as e:
            logging.debug(f"Not scheduling: {e}")
            return None
        except DepartureError as e:
            logging.warning(f"Could not schedule '{event.summary}': {e}")
            return None

        logging.info(f"Scheduled departure tracking for '{event.summary}' ({session.state.value})")
        return session

    def on_event_list_changed(self, events, mode, lead_time_minutes):
        """
        Re-evaluate scheduling from a freshly loaded event list.

        Events are considered earliest start first and the first one that can
        be scheduled wins. An ARMED session whose event disappeared or moved
        is dropped; a LIVE one is left running. A tracked session whose mode
        or lead time no longer matches is restarted with the new settings.
        """
        if self._shut_down:
            return None
        mode = TransportMode.parse(mode)
        events = list(events)
        by_id = {event.id: event for event in events if event.id is not None}

        with self._lock:
            current = self.current_session
            if current is not None and current.state is SessionState.ARMED:
                latest = by_id.get(current.event.id)
                if not current.event.is_same_occurrence(latest):
                    logging.info(f"Event '{current.event.summary}' was removed or moved; dropping armed session")
                    self._end_current_locked()
                    current = None

        if current is not None and self._settings_changed(current, mode, lead_time_minutes):
            current = self._restart_with_settings(current, mode, lead_time_minutes)

        candidates = sorted(
            (event for event in events if self.is_suitable_event(event)),
            key=lambda e: e.start_time,
        )
        logging.info(f"Evaluating {len(candidates)} suitable events out of {len(events)}")

        for event in candidates:
            if current is not None and current.is_active:
                if current.event.is_same_occurrence(event):
                    logging.debug(f"'{event.summary}' is already tracked")
                    return current
                if current.event.start_time <= event.start_time:
                    logging.debug(f"Keeping session for earlier event '{current.event.summary}'")
                    return current
            session = self.schedule_activity_start(event, mode, lead_time_minutes)
            if session is not None:
                return session
        return self.current_session

    @staticmethod
    def _settings_changed(session, mode, lead_time_minutes):
        if session.mode is not mode:
            return True
        # Lead time only matters until the alert has fired
        return (session.state is SessionState.ARMED
                and session.lead_time != datetime.timedelta(minutes=lead_time_minutes))

    def _restart_with_settings(self, current, mode, lead_time_minutes):
        """
        Replace current with a session for the same event under new settings.

        The replacement may go LIVE straight away when the new lead time puts
        the alert in the past. If the estimate cannot be fetched the old
        session is kept and the next reload tries again.
        """
        event = current.event
        logging.info(f"Settings changed for '{event.summary}'; restarting with {mode.value}, {lead_time_minutes} min lead")
        try:
            duration = fetch_duration(self.provider, event.location, mode, self.estimate_timeout)
        except DepartureError as e:
            logging.warning(f"Keeping previous settings for '{event.summary}': {e}")
            return current

        with self._lock:
            if self._shut_down or self._current is not current or not current.is_active:
                return self.current_session
            try:
                return self._replace_current_locked(event, mode, lead_time_minutes, duration)
            except DepartureError as e:
                logging.warning(f"Could not restart '{event.summary}': {e}")
                return None

    def _replace_current_locked(self, event, mode, lead_time_minutes, duration):
        self._end_current_locked()
        session = DepartureSession.start(
            event, mode, lead_time_minutes, self.provider, self.timers,
            notifier=self.notifier,
            clock=self.clock,
            initial_duration=duration,
            refresh_interval=self.refresh_interval,
            estimate_timeout=self.estimate_timeout,
            listeners=self._listeners,
        )
        self._current = session
        return session

    def end_current(self):
        with self._lock:
            self._end_current_locked()

    def _end_current_locked(self):
        if self._current is not None:
            self._current.end()
            self._current = None

    def shutdown(self):
        """End the current session and refuse new ones."""
        with self._lock:
            self._shut_down = True
            self._end_current_locked()
            self._listeners = []
        logging.info("Departure scheduler shut down")
