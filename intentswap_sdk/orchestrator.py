"""
SwapOrchestrator - drives one swap attempt from signing to payout.

State machine per swap::

    signing -> sending -> confirming -> submitting -> polling -> fulfilled
        \\__________\\____________\\_____________\\___________\\-> failed

``fulfilled`` and ``failed`` are terminal; a terminal record is never mutated
again. Retries are not automatic: a new attempt is a new swap with a new id
and a new nonce.
"""
import logging
import secrets
import string
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from .amounts import format_amount_safe, truncate_address
from .cancellation import CancellationToken
from .config import SwapConfig
from .envelope import TxField, canonical_json, encode, field_for_chain
from .exceptions import (
    ConfirmationFailure, FulfillmentFailure, SwapRecordFinalizedError, SwapValidationError,
)
from .models import (
    AppError, IntentStatus, Quote, SwapDirection, SwapRecord, SwapStatus, TargetChain,
)
from .payload import build_payload, now_ms, source_chain
from .settlement import SettlementClient
from .wallet import TransactionRequest, WalletBoundary
from .watchers import (
    ConfirmationOutcome, ConfirmationWatcher, DirectStatusWatcher, EpochConfirmationWatcher,
)

_ID_ALPHABET = string.digits + string.ascii_lowercase

_OCTRA_CONFIRMATION_MESSAGES = {
    ConfirmationOutcome.FAILED: "Octra transaction failed",
    ConfirmationOutcome.EPOCH_MISSED: "Octra transaction not included in block (epoch changed)",
    ConfirmationOutcome.TIMEOUT: "Octra transaction not confirmed (timeout)",
}


@dataclass(frozen=True)
class StatusEvent:
    """
    Progress notification sent to subscribers.

    ``kind`` is ``"swap"`` for state transitions, ``"confirmation"`` for source
    chain polling and ``"fulfillment"`` for backend polling.
    """
    swap_id: str
    kind: str
    status: str
    timestamp: int


StatusObserver = Callable[[StatusEvent], None]


def new_swap_id(now: Optional[int] = None) -> str:
    """Local swap id: ``swap-<unix ms>-<6 random base36 chars>``."""
    ts = now if now is not None else now_ms()
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"swap-{ts}-{suffix}"


def confirmation_error_message(chain: TargetChain, outcome: ConfirmationOutcome) -> str:
    outcome = ConfirmationOutcome(outcome)
    if TargetChain(chain) == TargetChain.OCTRA_MAINNET:
        return _OCTRA_CONFIRMATION_MESSAGES[outcome]
    return f"Sepolia transaction {outcome.value}"


class SwapOrchestrator:
    """
    Runs swap flows and owns their records.

    Each flow runs sequentially and only writes its own record, so several
    swaps may be in flight at once through ``start_swap``. Callers only ever
    see copies of records.

    Args:
        settlement: Settlement backend client
        wallet: Wallet used to sign intents and send escrow transactions
        config: Timing settings (defaults to ``SwapConfig()``)
        watchers: Confirmation watcher per source chain (built from
            ``settlement`` and ``config`` when omitted)
        logger: Optional logger instance
    """

    def __init__(
        self,
        settlement: SettlementClient,
        wallet: WalletBoundary,
        config: Optional[SwapConfig] = None,
        watchers: Optional[Mapping[TargetChain, ConfirmationWatcher]] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.settlement = settlement
        self.wallet = wallet
        self.config = config or SwapConfig()
        self.logger = logger or logging.getLogger(__name__)

        if watchers is None:
            timing = dict(timeout=self.config.confirmation_timeout,
                          poll_interval=self.config.confirmation_poll_interval,
                          logger=self.logger)
            watchers = {
                TargetChain.OCTRA_MAINNET: EpochConfirmationWatcher(settlement.octra, **timing),
                TargetChain.ETHEREUM_SEPOLIA: DirectStatusWatcher(settlement.sepolia, **timing),
            }
        self.watchers: Dict[TargetChain, ConfirmationWatcher] = dict(watchers)

        self._lock = threading.RLock()
        self._records: Dict[str, SwapRecord] = {}
        self._errors: List[AppError] = []
        self._observers: List[StatusObserver] = []
        self._current_status = SwapStatus.IDLE
        self._reset_timer: Optional[threading.Timer] = None
        self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                            thread_name_prefix="intentswap")

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------

    @property
    def current_status(self) -> SwapStatus:
        """Status of the most recent transition; back to ``idle`` after the cooldown."""
        with self._lock:
            return self._current_status

    @property
    def is_swapping(self) -> bool:
        with self._lock:
            return any(not r.is_terminal for r in self._records.values())

    @property
    def swaps(self) -> List[SwapRecord]:
        """Copies of all records, newest first."""
        with self._lock:
            return [r.model_copy(deep=True) for r in reversed(list(self._records.values()))]

    def get_swap(self, swap_id: str) -> Optional[SwapRecord]:
        with self._lock:
            record = self._records.get(swap_id)
            return record.model_copy(deep=True) if record is not None else None

    @property
    def errors(self) -> List[AppError]:
        with self._lock:
            return list(self._errors)

    def clear_errors(self) -> None:
        with self._lock:
            self._errors.clear()

    # ------------------------------------------------------------------
    # observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: StatusObserver) -> Callable[[], None]:
        """
        Register a progress observer.

        Returns:
            A function that removes the observer again
        """
        with self._lock:
            self._observers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe

    def _emit(self, swap_id: str, kind: str, status: str) -> None:
        event = StatusEvent(swap_id=swap_id, kind=kind, status=status, timestamp=now_ms())
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(event)
            except Exception as e:
                self.logger.error(f"Status observer error: {e}")

    # ------------------------------------------------------------------
    # record mutation
    # ------------------------------------------------------------------

    def update_swap(self, swap_id: str, **changes) -> None:
        """
        Apply changes to a swap record.

        Raises:
            KeyError: If the swap is unknown
            SwapRecordFinalizedError: If the swap is already fulfilled or failed
        """
        with self._lock:
            record = self._records[swap_id]
            if record.is_terminal:
                raise SwapRecordFinalizedError(
                    f"Swap {swap_id} is already {record.status.value} and cannot be updated"
                )
            if "status" in changes:
                changes["status"] = SwapStatus(changes["status"])
            for key, value in changes.items():
                setattr(record, key, value)
            status = changes.get("status")
            if status is not None:
                self._current_status = status
        if status is not None:
            self.logger.info(f"Swap {swap_id} -> {status.value}")
            self._emit(swap_id, "swap", status.value)

    def _log_error(self, code: str, message: str) -> None:
        with self._lock:
            self._errors.append(AppError(id=str(uuid.uuid4()), code=code, message=message, timestamp=now_ms()))

    def _schedule_reset(self) -> None:
        with self._lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
            self._reset_timer = threading.Timer(self.config.status_reset_delay, self._reset_status)
            self._reset_timer.daemon = True
            self._reset_timer.start()

    def _reset_status(self) -> None:
        with self._lock:
            if self._current_status.is_terminal:
                self._current_status = SwapStatus.IDLE

    # ------------------------------------------------------------------
    # flows
    # ------------------------------------------------------------------

    def execute_swap(
        self,
        quote: Quote,
        direction: SwapDirection,
        target_address: str,
        cancel: Optional[CancellationToken] = None
    ) -> SwapRecord:
        """
        Run one swap attempt to a terminal state.

        Args:
            quote: Quote for the swap
            direction: Swap direction
            target_address: Payout address on the destination chain
            cancel: Token to abandon the swap from another thread

        Returns:
            A copy of the final record, ``fulfilled`` or ``failed``

        Raises:
            SwapValidationError: If the payload cannot be built; no record is created
        """
        direction = SwapDirection(direction)
        try:
            payload = build_payload(quote, direction, target_address,
                                    expiry_ms=self.config.intent_expiry_ms)
        except SwapValidationError as e:
            self.logger.error(f"Swap validation failed: {e}")
            self._log_error("VALIDATION_FAILED", str(e))
            raise

        cancel = cancel or CancellationToken()
        record = SwapRecord(id=new_swap_id(), direction=direction, payload=payload,
                            status=SwapStatus.SIGNING, created_at=now_ms())
        with self._lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None
            self._records[record.id] = record
            self._current_status = SwapStatus.SIGNING
        self.logger.info(f"Swap {record.id} started: {direction.value} amountIn={payload.amount_in}")
        self._emit(record.id, "swap", SwapStatus.SIGNING.value)

        try:
            self._run(record.id, quote, direction, cancel)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            at_risk = getattr(e, "funds_at_risk", False)
            self.logger.error(f"Swap {record.id} failed: {message}" + (" (funds at risk)" if at_risk else ""))
            self.update_swap(record.id, status=SwapStatus.FAILED, error=message)
            self._log_error("SWAP_FAILED", message)
        finally:
            self._schedule_reset()

        return self.get_swap(record.id)

    def _run(self, swap_id: str, quote: Quote, direction: SwapDirection, cancel: CancellationToken) -> None:
        record = self._records[swap_id]
        payload = record.payload
        chain = source_chain(direction)

        self.wallet.sign_intent(canonical_json(payload).encode("utf-8"))
        cancel.raise_if_cancelled()

        self.update_swap(swap_id, status=SwapStatus.SENDING)
        tx_field = field_for_chain(chain)
        encoded = encode(payload, tx_field)
        if tx_field == TxField.MESSAGE:
            request = TransactionRequest(to=quote.escrow_address, amount=format_amount_safe(payload.amount_in),
                                         message=encoded)
        else:
            request = TransactionRequest(to=quote.escrow_address, amount=format_amount_safe(payload.amount_in),
                                         data=encoded)
        tx_hash = self.wallet.send_transaction(request)
        self.update_swap(swap_id, source_tx_hash=tx_hash)
        cancel.raise_if_cancelled()

        self.update_swap(swap_id, status=SwapStatus.CONFIRMING)
        result = self.watchers[chain].watch(
            tx_hash,
            on_status=lambda status: self._emit(swap_id, "confirmation", status),
            cancel=cancel,
        )
        if not result.confirmed:
            raise ConfirmationFailure(confirmation_error_message(chain, result.outcome), result.outcome.value)
        cancel.raise_if_cancelled()

        self.update_swap(swap_id, status=SwapStatus.SUBMITTING)
        submitted = self.settlement.submit(direction, tx_hash)
        self.update_swap(swap_id, intent_id=submitted.intent_id)
        self.logger.info(f"Swap {swap_id} submitted as intent {submitted.intent_id} (source tx {truncate_address(tx_hash, 10, 6)})")

        self.update_swap(swap_id, status=SwapStatus.POLLING)
        final = self.settlement.poll_fulfillment(
            submitted.intent_id,
            on_status=lambda status: self._emit(swap_id, "fulfillment", status),
            timeout=self.config.fulfillment_timeout,
            interval=self.config.fulfillment_poll_interval,
            cancel=cancel,
        )
        if final.status != IntentStatus.FULFILLED:
            raise FulfillmentFailure(f"Swap {final.status.value.lower()}", status=final.status.value)

        self.update_swap(
            swap_id,
            target_tx_hash=final.target_tx_hash,
            amount_out=final.amount_out,
            fulfilled_at=now_ms(),
            status=SwapStatus.FULFILLED,
        )

    def start_swap(
        self,
        quote: Quote,
        direction: SwapDirection,
        target_address: str,
        cancel: Optional[CancellationToken] = None
    ) -> "Future[SwapRecord]":
        """Run ``execute_swap`` on the orchestrator's worker pool."""
        return self._executor.submit(self.execute_swap, quote, direction, target_address, cancel)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "SwapOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
