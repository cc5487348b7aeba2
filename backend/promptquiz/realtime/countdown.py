from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from flask_socketio import SocketIO


logger = logging.getLogger(__name__)


class Countdown:
    """Repeating background task driven by the Socket.IO async backend.

    ``on_tick`` runs every ``interval`` seconds until it returns False or
    the countdown is cancelled.
    """

    def __init__(self, socketio: SocketIO, interval: float, on_tick: Callable[[], bool]) -> None:
        self._socketio = socketio
        self._interval = interval
        self._on_tick = on_tick
        self._lock = Lock()
        self._cancelled = False
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        with self._lock:
            if self._started or self._cancelled:
                return
            self._started = True
        self._socketio.start_background_task(self._run)

    def cancel(self) -> bool:
        """Returns True only for the call that actually cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            return True

    def _run(self) -> None:
        while not self._cancelled:
            self._socketio.sleep(self._interval)
            if self._cancelled:
                break
            try:
                keep_going = self._on_tick()
            except Exception:
                logger.exception("countdown tick failed")
                keep_going = False
            if not keep_going:
                break
