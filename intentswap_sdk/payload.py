"""
Swap intent payload construction.
"""
import logging
import time
import uuid
from typing import Optional, Union

from pydantic import ValidationError

from .addresses import normalize_address
from .config import INTENT_EXPIRY_MS
from .models import (
    Asset, Quote, SwapDirection, SwapIntentPayload, TargetChain, PAYLOAD_VERSION,
)
from .amounts import to_decimal, truncate_address
from .exceptions import SwapValidationError

logger = logging.getLogger(__name__)

# direction -> (from asset, to asset, source chain, target chain)
_ROUTES = {
    SwapDirection.OCT_TO_ETH: (Asset.OCT, Asset.ETH, TargetChain.OCTRA_MAINNET, TargetChain.ETHEREUM_SEPOLIA),
    SwapDirection.ETH_TO_OCT: (Asset.ETH, Asset.OCT, TargetChain.ETHEREUM_SEPOLIA, TargetChain.OCTRA_MAINNET),
}


def source_chain(direction: SwapDirection) -> TargetChain:
    """Chain the escrow transaction is sent on."""
    return _ROUTES[SwapDirection(direction)][2]


def target_chain(direction: SwapDirection) -> TargetChain:
    """Chain the backend pays out on."""
    return _ROUTES[SwapDirection(direction)][3]


def to_number(value: Union[int, float, str, None]) -> float:
    """Coerce a number or numeric string to float; anything else becomes 0."""
    num = to_decimal(value) if value is not None else None
    if num is None or not num.is_finite():
        return 0.0
    return float(num)


def now_ms() -> int:
    return int(time.time() * 1000)


def build_payload(
    quote: Quote,
    direction: SwapDirection,
    target_address: str,
    now: Optional[int] = None,
    expiry_ms: int = INTENT_EXPIRY_MS,
) -> SwapIntentPayload:
    """
    Build the intent payload for one swap attempt.

    The target address is checked against the destination chain before anything
    else, since a malformed address cannot be corrected once funds are in
    escrow. A fresh nonce is generated on every call.

    Args:
        quote: Quote the swap is based on; its ``minAmountOut`` already includes slippage
        direction: Swap direction
        target_address: Payout address on the destination chain
        now: Creation time in Unix ms (defaults to the current time)
        expiry_ms: Validity window of the intent

    Returns:
        A validated, immutable payload

    Raises:
        InvalidAddressError: If ``target_address`` fails the destination grammar
    """
    direction = SwapDirection(direction)
    from_asset, to_asset, _, dest_chain = _ROUTES[direction]
    address = normalize_address(target_address, dest_chain.value)

    created = now if now is not None else now_ms()
    try:
        payload = SwapIntentPayload(
            version=PAYLOAD_VERSION,
            intent_type="swap",
            from_asset=from_asset,
            to_asset=to_asset,
            amount_in=to_number(quote.amount_in),
            min_amount_out=to_number(quote.min_amount_out),
            target_chain=dest_chain,
            target_address=address,
            expiry=created + expiry_ms,
            nonce=str(uuid.uuid4()),
        )
    except ValidationError as e:
        raise SwapValidationError(f"Invalid intent payload: {e}") from e
    logger.info(
        f"Created {direction.value} intent payload: amountIn={payload.amount_in} "
        f"minAmountOut={payload.min_amount_out} target={truncate_address(address)}"
    )
    return payload
