"""
Source-chain confirmation watchers.

Two chains, two finality models:

* Octra finalizes at epoch boundaries and never carries a pending transaction
  into the next epoch. Once the epoch recorded at watch start has closed, a
  still-pending transaction is dropped for good, so ``EpochConfirmationWatcher``
  reports ``epoch_missed`` right away instead of waiting for the timeout.
* Sepolia reports confirmation directly; ``DirectStatusWatcher`` polls until the
  transaction is found confirmed or failed.

Both watchers are bounded by a timeout and wake up early when their
cancellation token is cancelled.
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from ._rate_limited_log import rate_limited_log
from .amounts import truncate_address
from .cancellation import CancellationToken
from .config import TX_CONFIRMATION_TIMEOUT, TX_POLL_INTERVAL
from .models import TxLookupStatus, TxStatus

StatusCallback = Callable[[str], None]


class ConfirmationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    EPOCH_MISSED = "epoch_missed"
    TIMEOUT = "timeout"


@dataclass
class WatchResult:
    """Final outcome of one watch."""
    outcome: ConfirmationOutcome
    polls: int
    elapsed: float

    @property
    def confirmed(self) -> bool:
        return self.outcome == ConfirmationOutcome.CONFIRMED


class TxStatusSource(Protocol):
    """Looks up a transaction by hash on one chain."""

    def tx_status(self, tx_hash: str) -> TxStatus:
        ...


class EpochSource(TxStatusSource, Protocol):
    """Transaction lookup plus the chain's current epoch."""

    def current_epoch(self) -> Optional[int]:
        ...


class ConfirmationWatcher(ABC):
    """
    Base class for polling watchers.

    Args:
        source: Chain lookup used on every poll
        timeout: Maximum seconds to wait for a resolution
        poll_interval: Seconds between polls
        clock: Monotonic clock, injectable for tests
        logger: Optional logger instance
    """

    chain_name = ""

    def __init__(
        self,
        source: TxStatusSource,
        timeout: float = TX_CONFIRMATION_TIMEOUT,
        poll_interval: float = TX_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if poll_interval < 0:
            raise ValueError("poll_interval must not be negative")
        self.source = source
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    def watch(
        self,
        tx_hash: str,
        on_status: Optional[StatusCallback] = None,
        cancel: Optional[CancellationToken] = None
    ) -> WatchResult:
        """
        Poll until the transaction resolves, the timeout elapses, or ``cancel`` fires.

        Args:
            tx_hash: Source-chain transaction hash
            on_status: Called with every observed status string
            cancel: Cancellation token checked at every suspension point

        Returns:
            The watch result

        Raises:
            SwapCancelledError: If the token is cancelled while waiting
        """
        cancel = cancel or CancellationToken()
        cancel.raise_if_cancelled()
        self.logger.info(
            f"[{self.chain_name}] Waiting for tx {truncate_address(tx_hash, 10, 6)} "
            f"(timeout={self.timeout}s, interval={self.poll_interval}s)"
        )
        start = self.clock()
        outcome, polls = self._watch(tx_hash, on_status, cancel, start)
        elapsed = self.clock() - start
        self.logger.info(f"[{self.chain_name}] Tx {truncate_address(tx_hash, 10, 6)} resolved {outcome.value} after {polls} polls")
        return WatchResult(outcome=outcome, polls=polls, elapsed=elapsed)

    @abstractmethod
    def _watch(self, tx_hash: str, on_status: Optional[StatusCallback],
               cancel: CancellationToken, start: float) -> "tuple[ConfirmationOutcome, int]":
        ...

    def _within_timeout(self, start: float) -> bool:
        return self.clock() - start < self.timeout

    def _notify(self, on_status: Optional[StatusCallback], status: str) -> None:
        if on_status is None:
            return
        try:
            on_status(status)
        except Exception as e:
            self.logger.error(f"[{self.chain_name}] Status callback error: {e}")

    def _lookup(self, tx_hash: str) -> TxStatus:
        # A single flaky lookup must not abort the wait
        try:
            return self.source.tx_status(tx_hash)
        except Exception as e:
            rate_limited_log(f"[{self.chain_name}] Tx status lookup failed: {e}", logger_instance=self.logger)
            return TxStatus(found=False, status=TxLookupStatus.UNKNOWN)


class EpochConfirmationWatcher(ConfirmationWatcher):
    """
    Epoch-based watcher for Octra.

    Outcomes: ``confirmed``, ``failed``, ``epoch_missed``, ``timeout``.

    When the epoch advances past the one recorded at watch start, the status is
    re-checked exactly once; if the transaction is still not confirmed it is
    reported ``epoch_missed``.
    """

    chain_name = "Octra"

    def __init__(self, source: EpochSource, **kwargs):
        super().__init__(source, **kwargs)

    def _epoch(self) -> Optional[int]:
        try:
            return self.source.current_epoch()
        except Exception as e:
            rate_limited_log(f"[{self.chain_name}] Epoch lookup failed: {e}", logger_instance=self.logger)
            return None

    def _watch(self, tx_hash, on_status, cancel, start):
        initial_epoch = self._epoch()
        self.logger.debug(f"[{self.chain_name}] Initial epoch: {initial_epoch}")
        polls = 0

        while self._within_timeout(start):
            cancel.raise_if_cancelled()
            polls += 1
            result = self._lookup(tx_hash)
            self._notify(on_status, result.status.value)

            if result.status == TxLookupStatus.CONFIRMED:
                return ConfirmationOutcome.CONFIRMED, polls
            if result.status == TxLookupStatus.FAILED:
                return ConfirmationOutcome.FAILED, polls

            current_epoch = self._epoch()
            self.logger.debug(f"[{self.chain_name}] Current epoch: {current_epoch}, initial epoch: {initial_epoch}")

            if initial_epoch is not None and current_epoch is not None and current_epoch > initial_epoch:
                final_check = self._lookup(tx_hash)
                if final_check.status == TxLookupStatus.CONFIRMED:
                    self._notify(on_status, final_check.status.value)
                    return ConfirmationOutcome.CONFIRMED, polls
                self.logger.warning(
                    f"[{self.chain_name}] Epoch changed ({initial_epoch} -> {current_epoch}) "
                    f"but tx still {final_check.status.value}"
                )
                return ConfirmationOutcome.EPOCH_MISSED, polls

            self.logger.debug(f"[{self.chain_name}] Tx status {result.status.value}, waiting for next epoch")
            cancel.sleep(self.poll_interval)

        return ConfirmationOutcome.TIMEOUT, polls


class DirectStatusWatcher(ConfirmationWatcher):
    """
    Direct-status watcher for Sepolia.

    Outcomes: ``confirmed``, ``failed``, ``timeout``. Lookup errors count as
    a pending poll.
    """

    chain_name = "Sepolia"

    def _watch(self, tx_hash, on_status, cancel, start):
        polls = 0

        while self._within_timeout(start):
            cancel.raise_if_cancelled()
            polls += 1
            result = self._lookup(tx_hash)

            if result.found and result.status == TxLookupStatus.CONFIRMED:
                self._notify(on_status, TxLookupStatus.CONFIRMED.value)
                return ConfirmationOutcome.CONFIRMED, polls
            if result.found and result.status == TxLookupStatus.FAILED:
                self._notify(on_status, TxLookupStatus.FAILED.value)
                return ConfirmationOutcome.FAILED, polls

            self._notify(on_status, TxLookupStatus.PENDING.value)
            cancel.sleep(self.poll_interval)

        return ConfirmationOutcome.TIMEOUT, polls
