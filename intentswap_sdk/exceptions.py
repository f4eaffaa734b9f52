"""
Exceptions for the IntentSwap SDK.

Every failure in a swap flow maps to exactly one of these classes. The
``funds_at_risk`` flag tells callers whether escrow funds may already have
left the user's wallet, in which case the swap needs manual reconciliation
through the settlement backend.
"""
from typing import Optional


class IntentSwapError(Exception):
    """Base exception for all IntentSwap SDK errors."""
    funds_at_risk = False


class SwapValidationError(IntentSwapError):
    """Raised when swap input (address, amount, quote) is rejected before dispatch."""
    pass


class InvalidAddressError(SwapValidationError):
    """Raised when a target address fails the destination chain's grammar."""

    def __init__(self, message: str, address: Optional[str] = None, chain: Optional[str] = None):
        self.address = address
        self.chain = chain
        super().__init__(message)


class InvalidAmountError(SwapValidationError):
    """Raised when an amount is missing, non-finite or out of bounds."""
    pass


class QuoteError(IntentSwapError):
    """Raised when the pricing endpoint cannot produce a quote."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UserRejectedError(IntentSwapError):
    """Raised when the wallet declines to sign or send."""
    pass


class DispatchError(IntentSwapError):
    """Raised when the escrow transaction could not be broadcast."""
    pass


class ConfirmationFailure(IntentSwapError):
    """
    Raised when a source-chain transaction did not confirm.

    The escrow may or may not have received funds, so the swap
    requires reconciliation.
    """
    funds_at_risk = True

    def __init__(self, message: str, outcome: str):
        self.outcome = outcome
        super().__init__(message)


class SettlementError(IntentSwapError):
    """Raised when the settlement backend rejects a request."""
    funds_at_risk = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class FulfillmentFailure(IntentSwapError):
    """Raised when an intent ends EXPIRED/REJECTED or never reaches a terminal state."""
    funds_at_risk = True

    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(message)


class FulfillmentTimeoutError(FulfillmentFailure):
    """Raised when fulfillment polling runs out of time."""

    def __init__(self, message: str = "Timeout waiting for fulfillment"):
        super().__init__(message, status="timeout")


class EnvelopeError(IntentSwapError):
    """Raised when an intent envelope cannot be encoded, decoded or verified."""
    pass


class SwapCancelledError(IntentSwapError):
    """Raised at a suspension point after the caller cancelled the swap."""

    def __init__(self, message: str = "Swap cancelled"):
        super().__init__(message)


class SwapRecordFinalizedError(IntentSwapError):
    """Raised when something tries to mutate a swap record in a terminal state."""
    pass
