"""
Out-of-band cancellation for long-running swap waits.
"""
import threading

from .exceptions import SwapCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag shared between a caller and a swap flow.

    Polling loops sleep through ``sleep()``, which wakes up as soon as the
    token is cancelled, so abandoning a swap does not wait out a poll interval.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason = "Swap cancelled"

    def cancel(self, reason: str = "Swap cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SwapCancelledError(self.reason)

    def sleep(self, seconds: float) -> None:
        """
        Wait up to ``seconds``.

        Raises:
            SwapCancelledError: If the token is or becomes cancelled
        """
        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()
