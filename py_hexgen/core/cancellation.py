"""Cooperative cancellation for long running generation stages."""

import threading
from typing import Optional

# Stages poll the token once per this many iterations (mask test on the counter).
CHECK_INTERVAL_MASK = 0xFF


class GenerationCancelled(Exception):
    """Raised inside a stage when its run has been cancelled."""


class CancellationToken:
    """
    Thread safe cancellation flag.

    The owner calls ``cancel()``; workers call ``raise_if_cancelled()`` at
    bounded intervals and unwind with ``GenerationCancelled``.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled("Generation was cancelled")


def check_cancelled(token: Optional[CancellationToken], iteration: int = 0) -> None:
    """Poll ``token`` when ``iteration`` lands on a check boundary."""
    if token is not None and (iteration & CHECK_INTERVAL_MASK) == 0:
        token.raise_if_cancelled()


__all__ = ["CHECK_INTERVAL_MASK", "CancellationToken", "GenerationCancelled", "check_cancelled"]
