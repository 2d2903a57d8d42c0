"""
Cancellable one-shot and periodic tasks.

Sessions never touch threads directly; they ask a timer service to run an
action later or repeatedly and keep the returned handle so the work can be
cancelled. After TimerHandle.cancel() returns no further invocation is
scheduled. A run that already passed its check may still finish, so actions
keep their own cancellation flag.
"""
import logging
import threading


class TimerHandle:
    def __init__(self, name=""):
        self.name = name
        self._lock = threading.Lock()
        self._cancelled = False
        self._on_cancel = None

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            on_cancel = self._on_cancel
        if on_cancel:
            on_cancel()

    def _run(self, action):
        with self._lock:
            if self._cancelled:
                return False
        try:
            action()
        except Exception as e:
            logging.error(f"Timer action '{self.name}' failed: {e}", exc_info=True)
        return True


class ThreadingTimers:
    """Timer service backed by daemon threads."""

    def call_later(self, delay_seconds, action, name=""):
        handle = TimerHandle(name)
        timer = threading.Timer(max(0.0, delay_seconds), handle._run, args=(action,))
        timer.daemon = True
        handle._on_cancel = timer.cancel
        timer.start()
        return handle

    def call_every(self, interval_seconds, action, name=""):
        """Run action every interval_seconds, first run one interval from now."""
        handle = TimerHandle(name)
        wake = threading.Event()
        handle._on_cancel = wake.set

        def loop():
            while not wake.wait(interval_seconds):
                if not handle._run(action):
                    break

        thread = threading.Thread(target=loop, name=name or "periodic-task", daemon=True)
        thread.start()
        return handle
