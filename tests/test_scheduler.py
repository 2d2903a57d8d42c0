from unittest.mock import MagicMock

import pytest

from departsync.errors import NotFound
from departsync.event import Event
from departsync.scheduler import DepartureScheduler
from departsync.session import SessionState
from departsync.transport_mode import TransportMode

from conftest import T, StubProvider, make_event, minutes

CAR = TransportMode.CAR


@pytest.fixture
def scheduler(provider, timers, clock, sink):
    return DepartureScheduler(provider, timers=timers, notifier=sink, clock=clock)


def make_live(scheduler, timers, event_id="live", start_in=60):
    # 20 min trip, last leave start-15, lead 30 -> alert start-45
    session = scheduler.schedule_activity_start(make_event(event_id, T + minutes(start_in)), CAR, 30)
    timers.advance(minutes=start_in - 45)
    assert session.state is SessionState.LIVE
    return session


def test_schedule_creates_armed_session(scheduler, provider):
    session = scheduler.schedule_activity_start(make_event("e1", T + minutes(120)), CAR, 30)
    assert session.state is SessionState.ARMED
    assert scheduler.current_session is session
    # the estimate used for the alert decision is reused by the session
    assert len(provider.calls) == 1


def test_schedule_is_noop_when_alert_time_has_passed(timers, clock):
    # 100 min trip to an event 40 min away
    provider = StubProvider(minutes(100))
    scheduler = DepartureScheduler(provider, timers=timers, clock=clock)
    assert scheduler.schedule_activity_start(make_event("e1", T + minutes(40)), CAR, 30) is None
    assert scheduler.current_session is None
    assert timers.active == []


def test_schedule_skips_event_without_location(scheduler, provider):
    assert scheduler.schedule_activity_start(make_event("e1", T + minutes(90), location=None), CAR, 30) is None
    assert provider.calls == []


def test_schedule_skips_all_day_and_started_events(scheduler, provider):
    all_day = Event({
        "id": "holiday",
        "summary": "Holiday",
        "location": "Beach",
        "start": {"date": "2026-03-03", "timeZone": "UTC"},
        "end": {"date": "2026-03-04", "timeZone": "UTC"},
    })
    assert scheduler.schedule_activity_start(all_day, CAR, 30) is None
    assert scheduler.schedule_activity_start(make_event("past", T - minutes(5)), CAR, 30) is None
    assert provider.calls == []


def test_estimate_failure_keeps_existing_session(timers, clock):
    provider = StubProvider(minutes(20), NotFound("unknown place"))
    scheduler = DepartureScheduler(provider, timers=timers, clock=clock)
    first = scheduler.schedule_activity_start(make_event("e1", T + minutes(120)), CAR, 30)

    assert scheduler.schedule_activity_start(make_event("e2", T + minutes(180), location="Nowhere"), CAR, 30) is None
    assert scheduler.current_session is first
    assert first.state is SessionState.ARMED


def test_new_schedule_ends_live_session(scheduler, timers):
    s1 = make_live(scheduler, timers)
    s2 = scheduler.schedule_activity_start(make_event("e2", T + minutes(240)), CAR, 30)

    assert s1.state is SessionState.ENDED
    assert s2.state in (SessionState.ARMED, SessionState.LIVE)
    assert scheduler.current_session is s2


def test_at_most_one_session_is_active(scheduler):
    sessions = [
        scheduler.schedule_activity_start(make_event(f"e{i}", T + minutes(120 + 30 * i)), CAR, 30)
        for i in range(5)
    ]
    active = [s for s in sessions if s.state in (SessionState.ARMED, SessionState.LIVE)]
    assert active == [sessions[-1]]


def test_event_list_prefers_earliest_event(scheduler):
    late = make_event("late", T + minutes(300))
    early = make_event("early", T + minutes(120))
    session = scheduler.on_event_list_changed([late, early], CAR, 30)
    assert session.event.id == "early"
    assert scheduler.current_session is session


def test_event_list_failure_does_not_abort_later_events(scheduler):
    events = [
        make_event("no-location", T + minutes(100), location=None),
        make_event("too-soon", T + minutes(30)),
        make_event("ok", T + minutes(200)),
    ]
    session = scheduler.on_event_list_changed(events, CAR, 30)
    assert session.event.id == "ok"


def test_same_list_twice_keeps_session(scheduler, provider):
    events = [make_event("e1", T + minutes(120)), make_event("e2", T + minutes(240))]
    first = scheduler.on_event_list_changed(events, CAR, 30)
    calls = len(provider.calls)

    second = scheduler.on_event_list_changed(events, CAR, 30)

    assert second is first
    assert first.state is SessionState.ARMED
    assert len(provider.calls) == calls


def test_removed_event_keeps_live_session(scheduler, timers):
    live = make_live(scheduler, timers)
    later = make_event("later", T + minutes(300))

    result = scheduler.on_event_list_changed([later], CAR, 30)

    assert live.state is SessionState.LIVE
    assert result is live


def test_removed_event_drops_armed_session(scheduler):
    armed = scheduler.schedule_activity_start(make_event("gone", T + minutes(120)), CAR, 30)
    later = make_event("later", T + minutes(300))

    result = scheduler.on_event_list_changed([later], CAR, 30)

    assert armed.state is SessionState.ENDED
    assert result.event.id == "later"


def test_moved_event_is_rescheduled(scheduler):
    armed = scheduler.schedule_activity_start(make_event("e1", T + minutes(120)), CAR, 30)
    moved = make_event("e1", T + minutes(180))

    result = scheduler.on_event_list_changed([moved], CAR, 30)

    assert armed.state is SessionState.ENDED
    assert result.event.start_time == T + minutes(180)


def test_empty_list_with_nothing_tracked(scheduler):
    assert scheduler.on_event_list_changed([], CAR, 30) is None


def test_end_current(scheduler):
    session = scheduler.schedule_activity_start(make_event("e1", T + minutes(120)), CAR, 30)
    scheduler.end_current()
    assert session.state is SessionState.ENDED
    assert scheduler.current_session is None
    scheduler.end_current()


def test_shutdown_ends_and_refuses_new_sessions(scheduler):
    session = scheduler.schedule_activity_start(make_event("e1", T + minutes(120)), CAR, 30)
    scheduler.shutdown()
    assert session.state is SessionState.ENDED
    assert scheduler.schedule_activity_start(make_event("e2", T + minutes(180)), CAR, 30) is None
    assert scheduler.current_session is None


def test_subscribers_follow_the_current_session(scheduler, timers):
    listener = MagicMock()
    scheduler.subscribe(listener)

    make_live(scheduler, timers)

    status = listener.call_args[0][0]
    assert status.event_title == "Event live"
    assert status.travel_duration_label == "20 min"


def test_ended_session_clears_current_slot(scheduler, timers):
    session = make_live(scheduler, timers)
    timers.advance(minutes=60)
    assert session.state is SessionState.ENDED
    assert scheduler.current_session is None


def test_mode_and_lead_change_restarts_armed_session(scheduler, provider, sink):
    e1 = make_event("e1", T + minutes(120))
    first = scheduler.on_event_list_changed([e1], CAR, 30)

    second = scheduler.on_event_list_changed([e1], TransportMode.WALK, 60)

    assert second is not first
    assert first.state is SessionState.ENDED
    assert second.mode is TransportMode.WALK
    # last leave T+105 minus the new 60 min lead
    assert second.alert_time == T + minutes(45)
    assert provider.calls[-1] == ("Office", TransportMode.WALK)
    assert sink.withdrawn == [("Time to leave for Event e1", T + minutes(75))]


def test_longer_lead_time_can_make_restart_go_live(scheduler):
    e1 = make_event("e1", T + minutes(120))
    scheduler.on_event_list_changed([e1], CAR, 30)

    session = scheduler.on_event_list_changed([e1], CAR, 120)

    assert session.state is SessionState.LIVE
    assert scheduler.current_session is session


def test_lead_change_keeps_live_session(scheduler, timers):
    live = make_live(scheduler, timers)
    assert scheduler.on_event_list_changed([make_event("live", T + minutes(60))], CAR, 45) is live


def test_mode_change_restarts_live_session(scheduler, timers):
    live = make_live(scheduler, timers)

    session = scheduler.on_event_list_changed([make_event("live", T + minutes(60))], TransportMode.TRANSIT, 30)

    assert live.state is SessionState.ENDED
    assert session.state is SessionState.LIVE
    assert session.mode is TransportMode.TRANSIT


def test_failed_restart_keeps_previous_session(timers, clock):
    provider = StubProvider(minutes(20), NotFound("no walking route"))
    scheduler = DepartureScheduler(provider, timers=timers, clock=clock)
    e1 = make_event("e1", T + minutes(120))
    first = scheduler.on_event_list_changed([e1], CAR, 30)

    assert scheduler.on_event_list_changed([e1], TransportMode.WALK, 30) is first
    assert first.state is SessionState.ARMED


def test_estimate_is_fetched_without_holding_the_slot(timers, clock):
    provider = StubProvider()
    scheduler = DepartureScheduler(provider, timers=timers, clock=clock)
    acquired = []

    # runs on the estimate worker thread
    def try_lock():
        got = scheduler._lock.acquire(timeout=1)
        acquired.append(got)
        if got:
            scheduler._lock.release()

    provider.before_return = try_lock
    scheduler.on_event_list_changed([make_event("e1", T + minutes(120))], CAR, 30)

    assert acquired == [True]
