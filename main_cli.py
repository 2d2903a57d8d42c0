#!/usr/bin/env python3
import argparse
import logging
import datetime
import json
import sys
import os

# Add the parent directory to the path so we can import the package
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytz

from departsync.api_client import APIClient
from departsync.calendar_source import JsonFileEventSource
from departsync.config import Config
from departsync.coordinator import DepartureCoordinator
from departsync.errors import DepartureError
from departsync.notifications import LoggingNotificationSink
from departsync.preferences import load_preferences
from departsync.providers import fetch_duration
from departsync.scheduler import DepartureScheduler
from departsync.status import DepartureStatus
from departsync.transport_mode import TransportMode
from departsync.window import compute_window, format_duration


def setup_logging(debug=False):
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_time(time_str):
    """Format time string into a timezone-aware datetime object."""
    tz = pytz.timezone(Config.TIMEZONE)
    try:
        parsed = datetime.datetime.fromisoformat(time_str)
    except ValueError:
        parsed = None
        for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%d/%m/%Y %H:%M"):
            try:
                parsed = datetime.datetime.strptime(time_str, fmt)
                break
            except ValueError:
                continue
        if parsed is None and len(time_str) <= 5:  # Handle just time like "14:30"
            try:
                time_only = datetime.datetime.strptime(time_str, "%H:%M").time()
                parsed = datetime.datetime.combine(datetime.datetime.now(tz).date(), time_only)
            except ValueError:
                parsed = None
        if parsed is None:
            logging.error(f"Could not parse time string: {time_str}")
            return None
    if parsed.tzinfo is None:
        parsed = tz.localize(parsed)
    return parsed


def show_window(start, travel_minutes):
    """Print the departure window for an event start and travel time."""
    event_start = format_time(start)
    if not event_start:
        print(f"❌ Invalid start time format: {start}")
        return 1

    window = compute_window(event_start, datetime.timedelta(minutes=travel_minutes))
    status = DepartureStatus.from_window(window, datetime.datetime.now(event_start.tzinfo))
    print(f"🕒 Event starts: {window.event_start_time.strftime('%H:%M')}")
    print(f"⏱️ Travel time: {window.travel_duration_label}")
    print(f"🚶 Ideal leave: {window.ideal_leave_time.strftime('%H:%M')}")
    print(f"🏁 Last leave: {window.last_leave_time.strftime('%H:%M')}")
    print(f"📣 {status.headline}")
    return 0


def show_estimate(location, mode, origin=None):
    """Fetch a single travel estimate."""
    client = APIClient(origin_address=origin)
    try:
        duration = fetch_duration(client, location, mode, Config.ESTIMATE_TIMEOUT_SECONDS)
    except DepartureError as e:
        print(f"❌ {e}")
        return 1
    print(f"✅ {mode.label} to {location}: {format_duration(duration)}")
    return 0


def build_coordinator(events_file, preferences_file, origin=None):
    preferences = load_preferences(preferences_file)
    scheduler = DepartureScheduler(
        APIClient(origin_address=origin),
        notifier=LoggingNotificationSink(),
    )
    scheduler.subscribe(lambda status: print(json.dumps(status.to_dict(), ensure_ascii=False)))
    return DepartureCoordinator(JsonFileEventSource(events_file), scheduler, preferences)


def plan_once(events_file, preferences_file, origin=None):
    """Evaluate the event list once and report what would be tracked."""
    coordinator = build_coordinator(events_file, preferences_file, origin)
    events = coordinator.reload()
    if events is None:
        print(f"❌ Could not read events from {events_file}")
        return 1

    print(f"📅 Evaluated {len(events)} upcoming events")
    session = coordinator.scheduler.current_session
    if session is None:
        print("No event needs departure tracking right now")
    else:
        print(f"✅ Tracking '{session.event.summary}' ({session.state.value})")
        print(json.dumps(session.current_status().to_dict(), indent=2, ensure_ascii=False))
        if session.alert_time:
            print(f"🔔 Alert at {session.alert_time.isoformat()}")
    coordinator.shutdown()
    return 0


def run_forever(events_file, preferences_file, origin=None, poll_interval=None):
    """Poll the events file and keep the live status updated until interrupted."""
    coordinator = build_coordinator(events_file, preferences_file, origin)
    try:
        coordinator.run(poll_interval)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        coordinator.shutdown()
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="DepartSync CLI - work out when to leave for upcoming events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the leave-by window for an event at 14:30 with a 25 minute trip
  ./main_cli.py window "14:30" 25

  # Estimate travel time to a location
  ./main_cli.py estimate "Wellington Zoo" --mode transit --origin "1 Willis Street, Wellington"

  # Evaluate events once / keep tracking them
  ./main_cli.py plan events.json --prefs preferences.json
  ./main_cli.py run events.json --prefs preferences.json
        """
    )

    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Sub-command help')

    window_parser = subparsers.add_parser('window', help='Compute a departure window')
    window_parser.add_argument('start', type=str, help='Event start (e.g., "14:30" or ISO format)')
    window_parser.add_argument('travel_minutes', type=float, help='Travel time in minutes')

    estimate_parser = subparsers.add_parser('estimate', help='Estimate travel time to a location')
    estimate_parser.add_argument('location', type=str, help='Destination')
    estimate_parser.add_argument('--mode', type=str, default='car', help='car, transit, bike or walk')
    estimate_parser.add_argument('--origin', type=str, help='Origin address (defaults to ORIGIN_ADDRESS)')

    for name, help_text in (('plan', 'Evaluate events once'), ('run', 'Track events until interrupted')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('events_file', type=str, help='JSON file with events data')
        sub.add_argument('--prefs', type=str, default=Config.PREFERENCES_PATH, help='Preferences JSON file')
        sub.add_argument('--origin', type=str, help='Origin address (defaults to ORIGIN_ADDRESS)')
        if name == 'run':
            sub.add_argument('--interval', type=int, help='Poll interval in seconds')

    args = parser.parse_args()
    setup_logging(args.debug or Config.DEBUG)

    if args.command == 'window':
        return show_window(args.start, args.travel_minutes)
    elif args.command == 'estimate':
        return show_estimate(args.location, TransportMode.parse(args.mode), args.origin)
    elif args.command == 'plan':
        return plan_once(args.events_file, args.prefs, args.origin)
    elif args.command == 'run':
        return run_forever(args.events_file, args.prefs, args.origin, args.interval)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
