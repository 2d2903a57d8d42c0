import copy
import datetime
import logging
import threading
from enum import Enum

from .config import Config
from .errors import NoLocation
from .providers import deliver_quietly, fetch_duration, withdraw_quietly
from .status import DepartureStatus
from .transport_mode import TransportMode
from .window import compute_window


class SessionState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    LIVE = "live"
    ENDED = "ended"


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class DepartureSession:
    """
    Live "time to leave" feed for a single event.

    A session waits ARMED until its alert time (last leave time minus the
    user's lead time), then goes LIVE and re-queries the travel estimate on a
    fixed interval until the event starts or end() is called. ENDED is
    terminal.

    Arming hands the notifier a notification scheduled for the alert time so
    it can fire even if this process is gone by then. Ending a session before
    that moment withdraws it again.

    Sessions are owned by a DepartureScheduler; use DepartureSession.start()
    rather than the constructor.
    """

    def __init__(self, event, mode, lead_time_minutes, provider, timers,
                 notifier=None, clock=None, refresh_interval=None, estimate_timeout=None):
        # Snapshot so later edits to the caller's event don't leak in
        self.event = copy.copy(event)
        self.mode = TransportMode.parse(mode)
        self.lead_time = datetime.timedelta(minutes=lead_time_minutes)
        self.provider = provider
        self.timers = timers
        self.notifier = notifier
        self.clock = clock or utcnow
        self.refresh_interval = refresh_interval or Config.REFRESH_INTERVAL_SECONDS
        self.estimate_timeout = estimate_timeout or Config.ESTIMATE_TIMEOUT_SECONDS

        self.state = SessionState.IDLE
        self._cancelled = threading.Event()
        self._lock = threading.RLock()
        self._window = None
        self._handles = {}
        self._listeners = []
        self._end_callbacks = []
        self._pending_notice = None

    @classmethod
    def start(cls, event, mode, lead_time_minutes, provider, timers, notifier=None, clock=None,
              initial_duration=None, refresh_interval=None, estimate_timeout=None, on_end=None,
              listeners=()):
        """
        Create a session for event and bring it to ARMED or LIVE.

        Raises NoLocation if the event has no destination and
        EstimateUnavailable if the first travel estimate cannot be fetched.
        Pass initial_duration to reuse an estimate the caller already holds;
        listeners are subscribed before the first status is published.
        """
        session = cls(event, mode, lead_time_minutes, provider, timers,
                      notifier=notifier, clock=clock, refresh_interval=refresh_interval,
                      estimate_timeout=estimate_timeout)
        if on_end:
            session._end_callbacks.append(on_end)
        session._listeners.extend(listeners)
        session._begin(initial_duration)
        return session

    @property
    def is_active(self):
        return self.state in (SessionState.ARMED, SessionState.LIVE)

    @property
    def alert_time(self):
        if self._window is None:
            return None
        return self._window.last_leave_time - self.lead_time

    def current_snapshot(self):
        """Most recently computed DepartureWindow."""
        return self._window

    def current_status(self, now=None):
        if self._window is None:
            return None
        return DepartureStatus.from_window(
            self._window, now or self.clock(), self.event.summary,
            event_location=self.event.location,
            transport_mode=self.mode.value,
            stale_after=datetime.timedelta(seconds=self.refresh_interval),
        )

    def subscribe(self, listener):
        """Register listener for every published DepartureStatus. Returns an unsubscribe function."""
        with self._lock:
            if self.state is not SessionState.ENDED:
                self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _begin(self, initial_duration):
        if not self.event.location:
            logging.debug(f"Skipping event '{self.event.summary}' - no location")
            raise NoLocation(self.event)
        if self.event.start_time is None:
            raise ValueError(f"Event '{self.event.summary}' has no start time")

        if initial_duration is None:
            initial_duration = fetch_duration(self.provider, self.event.location, self.mode, self.estimate_timeout)
        self._window = compute_window(self.event.start_time, initial_duration)

        now = self.clock()
        alert_time = self.alert_time
        if alert_time <= now:
            logging.info(f"Alert time for '{self.event.summary}' already reached; going live now")
            self._notify(now)
            self._go_live()
            return

        self.state = SessionState.ARMED
        self._notify(alert_time)
        self._pending_notice = (self._notice_title(), alert_time)
        self._handles["alert"] = self.timers.call_later(
            (alert_time - now).total_seconds(), self._on_alert, name=f"alert:{self.event.id}"
        )
        logging.info(f"Armed departure session for '{self.event.summary}', alert at {alert_time.isoformat()}")

    def _notice_title(self):
        return f"Time to leave for {self.event.summary}"

    def _notify(self, scheduled_at):
        window = self._window
        deliver_quietly(
            self.notifier,
            self._notice_title(),
            f"{window.travel_duration_label} by {self.mode.label.lower()}. "
            f"Leave by {window.last_leave_time.strftime('%H:%M')} to arrive on time.",
            scheduled_at,
        )

    def _on_alert(self):
        if self._cancelled.is_set():
            return
        if self.clock() >= self.event.start_time:
            logging.info(f"Event '{self.event.summary}' started before its alert fired")
            self.end()
            return
        self._go_live(refresh_now=True)

    def _go_live(self, refresh_now=False):
        with self._lock:
            if self._cancelled.is_set():
                return
            self.state = SessionState.LIVE
            self._pending_notice = None
            self._handles.pop("alert", None)
            self._handles["refresh"] = self.timers.call_every(
                self.refresh_interval, self.refresh, name=f"refresh:{self.event.id}"
            )
            until_start = (self.event.start_time - self.clock()).total_seconds()
            self._handles["teardown"] = self.timers.call_later(
                until_start, self._on_event_started, name=f"teardown:{self.event.id}"
            )
        logging.info(f"Departure session for '{self.event.summary}' is live")
        # The armed window may be hours old; a failed fetch falls back to it
        if not (refresh_now and self.refresh()):
            self._publish()

    def _on_event_started(self):
        if self._cancelled.is_set():
            return
        logging.info(f"Event '{self.event.summary}' has started; ending session")
        self.end()

    def refresh(self):
        """
        One refresh tick. Returns True when a new snapshot was published.

        A failed estimate keeps the previous snapshot; the next tick retries.
        """
        if self._cancelled.is_set() or self.state is not SessionState.LIVE:
            return False
        if self.clock() >= self.event.start_time:
            logging.info(f"Event '{self.event.summary}' has started; ending session")
            self.end()
            return False

        try:
            duration = fetch_duration(self.provider, self.event.location, self.mode, self.estimate_timeout)
        except Exception as e:
            logging.warning(f"Refresh for '{self.event.summary}' failed, keeping previous estimate: {e}")
            return False

        # end() may have run while the fetch was in flight
        with self._lock:
            if self._cancelled.is_set():
                logging.debug(f"Discarding estimate for ended session '{self.event.summary}'")
                return False
            self._window = compute_window(self.event.start_time, duration)
        self._publish()
        return True

    def _publish(self):
        status = self.current_status()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(status)
            except Exception as e:
                logging.error(f"Status listener failed: {e}", exc_info=True)

    def end(self):
        """Stop the session. Safe to call more than once."""
        with self._lock:
            if self.state is SessionState.ENDED:
                return
            self._cancelled.set()
            self.state = SessionState.ENDED
            handles = list(self._handles.values())
            self._handles.clear()
            callbacks = self._end_callbacks
            self._end_callbacks = []
            self._listeners = []
            pending, self._pending_notice = self._pending_notice, None

        for handle in handles:
            handle.cancel()
        if pending and self.clock() < pending[1]:
            withdraw_quietly(self.notifier, *pending)
        logging.info(f"Ended departure session for '{self.event.summary}'")
        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logging.error(f"Session end callback failed: {e}", exc_info=True)

    def __repr__(self):
        return f"DepartureSession({self.event.summary}, {self.mode.value}, {self.state.value})"
