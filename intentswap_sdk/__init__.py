"""
IntentSwap SDK - intent-based OCT <-> ETH swaps.

A swap is expressed as a signed, hash-authenticated intent carried inside the
escrow transaction on the source chain. Once that transaction confirms, the
settlement backend matches the intent and pays out on the target chain.
"""
from .addresses import is_valid_address, normalize_address
from .amounts import format_amount_safe, format_display_amount, parse_amount, validate_amount
from .cancellation import CancellationToken
from .config import NetworkConfig, SwapConfig
from .envelope import TxField, create_envelope, decode, encode, hash_payload, verify_envelope
from .exceptions import (
    ConfirmationFailure, DispatchError, EnvelopeError, FulfillmentFailure, FulfillmentTimeoutError,
    IntentSwapError, InvalidAddressError, InvalidAmountError, QuoteError, SettlementError,
    SwapCancelledError, SwapRecordFinalizedError, SwapValidationError, UserRejectedError,
)
from .models import (
    Asset, Envelope, IntentStatus, Quote, SwapDirection, SwapIntentPayload, SwapRecord,
    SwapStatus, TargetChain,
)
from .orchestrator import StatusEvent, SwapOrchestrator
from .payload import build_payload
from .settlement import SettlementClient
from .version import __version__
from .wallet import Capability, CapabilityWallet, LocalEvmWallet, TransactionRequest, WalletBoundary
from .watchers import ConfirmationOutcome, DirectStatusWatcher, EpochConfirmationWatcher, WatchResult

__all__ = [
    "Asset",
    "build_payload",
    "CancellationToken",
    "Capability",
    "CapabilityWallet",
    "ConfirmationFailure",
    "ConfirmationOutcome",
    "create_envelope",
    "decode",
    "DirectStatusWatcher",
    "DispatchError",
    "encode",
    "Envelope",
    "EnvelopeError",
    "EpochConfirmationWatcher",
    "format_amount_safe",
    "format_display_amount",
    "FulfillmentFailure",
    "FulfillmentTimeoutError",
    "hash_payload",
    "IntentStatus",
    "IntentSwapError",
    "InvalidAddressError",
    "InvalidAmountError",
    "is_valid_address",
    "LocalEvmWallet",
    "NetworkConfig",
    "normalize_address",
    "parse_amount",
    "Quote",
    "QuoteError",
    "SettlementClient",
    "SettlementError",
    "StatusEvent",
    "SwapCancelledError",
    "SwapConfig",
    "SwapDirection",
    "SwapIntentPayload",
    "SwapOrchestrator",
    "SwapRecord",
    "SwapRecordFinalizedError",
    "SwapStatus",
    "SwapValidationError",
    "TargetChain",
    "TransactionRequest",
    "TxField",
    "UserRejectedError",
    "validate_amount",
    "verify_envelope",
    "WalletBoundary",
    "WatchResult",
    "__version__",
]
