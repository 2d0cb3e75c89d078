import threading
from typing import Callable, Optional

from quizzy import socketio


class DeadlineHandle:
    """Cancellable reference to one scheduled callback.

    Cancelling is idempotent and safe after the callback already fired.
    """

    def __init__(self, label: str = ''):
        self.label = label
        self._lock = threading.Lock()
        self._cancelled = False
        self._fired = False

    def cancel(self) -> bool:
        """Cancel the callback. Returns True if this call prevented it."""
        with self._lock:
            if self._cancelled or self._fired:
                return False
            self._cancelled = True
            return True

    def _claim(self) -> bool:
        with self._lock:
            if self._cancelled or self._fired:
                return False
            self._fired = True
            return True

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._fired)


class TimerScheduler:
    """Runs deadline callbacks on Socket.IO background tasks.

    - Sleeps in heartbeat-sized steps when TIMER_HEARTBEAT_SEC is set
    - Stops sleeping as soon as the handle is cancelled
    - Runs the callback inside the app context
    """

    def __init__(self, app=None, start_task=None, sleep=None):
        self.app = app
        self._start_task = start_task or socketio.start_background_task
        self._sleep = sleep or socketio.sleep

    def call_later(self, delay: float, callback: Callable[[], None], label: str = '') -> DeadlineHandle:
        handle = DeadlineHandle(label)
        self._log(f"[timer-set] {label} duration={delay}s")
        self._start_task(self._worker, handle, delay, callback)
        return handle

    def _worker(self, handle: DeadlineHandle, delay: float, callback: Callable[[], None]) -> None:
        hb = self._heartbeat()
        step = hb if hb > 0 else delay
        slept = 0.0
        while slept < delay and handle.pending:
            chunk = min(step, delay - slept)
            self._sleep(chunk)
            slept += chunk
            if hb > 0 and handle.pending and slept < delay:
                self._log(f"[timer-heartbeat] {handle.label} remaining={max(0, delay - slept)}s")
        if not handle._claim():
            self._log(f"[timer-abort] {handle.label} cancelled")
            return
        self._log(f"[timer-fire] {handle.label}")
        if self.app is not None:
            with self.app.app_context():
                callback()
        else:
            callback()

    def _heartbeat(self) -> float:
        if self.app is None:
            return 0
        return float(self.app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)

    def _log(self, message: str) -> None:
        if self.app is not None:
            self.app.logger.info(message)

