import threading
import time

from promptquiz.realtime.countdown import Countdown


class ThreadingBackend:
    """Stand-in for SocketIO's async helpers in threading mode."""

    def __init__(self):
        self.threads = []

    def start_background_task(self, target, *args, **kwargs):
        t = threading.Thread(target=target, args=args, kwargs=kwargs, daemon=True)
        t.start()
        self.threads.append(t)
        return t

    def sleep(self, seconds):
        time.sleep(seconds)

    def join(self, timeout=2.0):
        for t in self.threads:
            t.join(timeout)


def test_runs_until_callback_stops():
    backend = ThreadingBackend()
    ticks = []

    def on_tick():
        ticks.append(len(ticks) + 1)
        return len(ticks) < 3

    Countdown(backend, 0.01, on_tick).start()
    backend.join()

    assert ticks == [1, 2, 3]


def test_cancel_stops_ticks():
    backend = ThreadingBackend()
    ticks = []
    countdown = Countdown(backend, 0.01, lambda: ticks.append(1) or True)

    countdown.start()
    time.sleep(0.05)
    assert countdown.cancel() is True
    assert countdown.cancel() is False
    backend.join()
    count = len(ticks)
    time.sleep(0.05)

    assert countdown.cancelled
    assert len(ticks) == count


def test_cancel_before_start_never_ticks():
    backend = ThreadingBackend()
    countdown = Countdown(backend, 0.01, lambda: True)

    countdown.cancel()
    countdown.start()

    assert backend.threads == []


def test_failing_tick_ends_countdown():
    backend = ThreadingBackend()
    calls = []

    def on_tick():
        calls.append(1)
        raise RuntimeError('boom')

    Countdown(backend, 0.01, on_tick).start()
    backend.join()

    assert calls == [1]
