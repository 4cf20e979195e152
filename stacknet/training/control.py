"""Cooperative cancellation and progress reporting for training calls.

A training call runs on the caller's thread. Other threads may poll
:meth:`TrainingControl.is_running` / :meth:`TrainingControl.progress` or
cancel the call's :class:`CancellationToken`; the training loop checks the
token once before each epoch, so a cancelled call finishes the epoch in
flight before returning.
"""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe, one-way stop request."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


class TrainingControl:
    """Running flag, progress value and the token of the current call."""

    def __init__(self) -> None:
        self._running = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._lock = threading.Lock()
        self._progress = 0.0
        self._token = CancellationToken()

    def begin(self, token: CancellationToken | None = None) -> CancellationToken:
        """Mark a training call as started and return its token."""

        with self._lock:
            self._token = token if token is not None else CancellationToken()
            self._progress = 0.0
            self._idle.clear()
            self._running.set()
            return self._token

    def finish(self) -> None:
        with self._lock:
            self._progress = 1.0
            self._running.clear()
            self._idle.set()

    def request_stop(self) -> None:
        with self._lock:
            self._token.cancel()

    def is_running(self) -> bool:
        return self._running.is_set()

    def should_stop(self) -> bool:
        with self._lock:
            return self._token.cancelled

    def progress(self) -> float:
        with self._lock:
            return self._progress

    def set_progress(self, value: float) -> None:
        with self._lock:
            self._progress = min(1.0, max(0.0, float(value)))

    def wait_for_idle(self, timeout: float | None = None) -> bool:
        """Block until no training call is running; ``False`` on timeout."""

        return self._idle.wait(timeout)

    def reset(self) -> None:
        with self._lock:
            self._progress = 0.0
            self._token = CancellationToken()


__all__ = ["CancellationToken", "TrainingControl"]
