import datetime
import itertools

import pytest

from departsync.event import Event
from departsync.providers import NotificationSink, TravelEstimateProvider
from departsync.timers import TimerHandle

T = datetime.datetime(2026, 3, 2, 9, 0, tzinfo=datetime.timezone.utc)


def minutes(n):
    return datetime.timedelta(minutes=n)


def make_event(event_id, start, location="Office", duration=minutes(60), calendar="work", summary=None):
    data = {
        "id": event_id,
        "summary": summary or f"Event {event_id}",
        "calendarId": calendar,
        "start": {"dateTime": start.isoformat()},
        "end": {"dateTime": (start + duration).isoformat()},
    }
    if location is not None:
        data["location"] = location
    return Event(data)


class FakeClock:
    def __init__(self, now=T):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += datetime.timedelta(**kwargs)


class ManualTimers:
    """Timer service driven by FakeClock; nothing runs until advance() is called."""

    def __init__(self, clock):
        self.clock = clock
        self.pending = []
        self._seq = itertools.count()

    def _add(self, due, handle, action, interval):
        self.pending.append((due, next(self._seq), handle, action, interval))

    def call_later(self, delay_seconds, action, name=""):
        handle = TimerHandle(name)
        self._add(self.clock() + datetime.timedelta(seconds=max(0, delay_seconds)), handle, action, None)
        return handle

    def call_every(self, interval_seconds, action, name=""):
        handle = TimerHandle(name)
        self._add(self.clock() + datetime.timedelta(seconds=interval_seconds), handle, action, interval_seconds)
        return handle

    @property
    def active(self):
        return [entry for entry in self.pending if not entry[2].cancelled]

    def advance(self, **kwargs):
        target = self.clock() + datetime.timedelta(**kwargs)
        while True:
            due = [entry for entry in self.active if entry[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self.pending.remove(entry)
            when, _, handle, action, interval = entry
            self.clock.now = max(self.clock.now, when)
            if interval is not None:
                self._add(when + datetime.timedelta(seconds=interval), handle, action, interval)
            handle._run(action)
        self.clock.now = target
        self.pending = self.active


class StubProvider(TravelEstimateProvider):
    """Returns queued durations; an exception in the queue is raised instead."""

    def __init__(self, *results, default=minutes(20)):
        self.results = list(results)
        self.default = default
        self.calls = []
        self.before_return = None

    def estimate(self, location, mode):
        self.calls.append((location, mode))
        result = self.results.pop(0) if self.results else self.default
        if self.before_return:
            self.before_return()
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSink(NotificationSink):
    def __init__(self):
        self.delivered = []
        self.withdrawn = []

    def deliver(self, title, body, scheduled_at):
        self.delivered.append((title, body, scheduled_at))

    def withdraw(self, title, scheduled_at):
        self.withdrawn.append((title, scheduled_at))


class FailingSink(NotificationSink):
    def deliver(self, title, body, scheduled_at):
        raise RuntimeError("push service down")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return ManualTimers(clock)


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def sink():
    return RecordingSink()


