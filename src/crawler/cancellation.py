# src/crawler/cancellation.py

"""Cancellation token observed by the crawl at its suspension points."""

import logging
import signal
import threading
from collections.abc import Callable
from types import FrameType

logger = logging.getLogger("market_prices.cancellation")


class StopToken:
    """Single-shot stop request shared between signal handlers and the crawl.

    Waits go through :meth:`sleep` so a stop request cuts a long backoff
    short instead of running it to completion.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def stop_requested(self) -> bool:
        return self._event.is_set()

    def request(self, reason: str) -> bool:
        """Request a stop; returns False if one was already requested."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def sleep(self, seconds: float) -> bool:
        """Block for up to *seconds*; True if a stop was requested."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


def install_signal_handlers(
    token: StopToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Callable[[], None]:
    """Route *signals* to *token*; returns a callable restoring the old handlers."""
    previous: dict[signal.Signals, object] = {}

    def _handle(signum: int, frame: FrameType | None) -> None:
        name = signal.Signals(signum).name
        if token.request(name):
            logger.warning("Received %s, stopping after saving progress", name)
        else:
            logger.warning("Received %s again, stop already in progress", name)

    for sig in signals:
        previous[sig] = signal.getsignal(sig)
        signal.signal(sig, _handle)

    def _restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]

    return _restore
