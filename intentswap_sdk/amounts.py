"""
Amount formatting and parsing.

Wallet signing components do not accept scientific notation, so every amount
that leaves this SDK is rendered as a plain decimal string. All arithmetic goes
through ``decimal.Decimal``; floats are converted through ``str()`` to keep the
shortest round-trip representation.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Union

from .exceptions import InvalidAmountError

AmountLike = Union[int, float, str, Decimal]

# Minimum representable amounts
MIN_OCT_AMOUNT = Decimal("0.0001")
MIN_ETH_AMOUNT = Decimal("0.000001")

SAFE_AMOUNT_PLACES = 18
_QUANTUM = Decimal(1).scaleb(-SAFE_AMOUNT_PLACES)


def to_decimal(value: AmountLike) -> Optional[Decimal]:
    """
    Convert a number or numeric string to Decimal.

    Returns:
        The Decimal value, or None if the input is not numeric. Non-finite
        values (NaN, Infinity) are returned as-is for the caller to judge.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return Decimal(text)
        except InvalidOperation:
            return None
    return None


def _quantize(num: Decimal, quantum: Decimal) -> Decimal:
    # Large integral parts would overflow the default 28-digit context
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, num.adjusted() - quantum.as_tuple().exponent + 2)
        return num.quantize(quantum, rounding=ROUND_HALF_UP)


def _trim(fixed: str) -> str:
    if "." in fixed:
        fixed = fixed.rstrip("0").rstrip(".")
    if fixed in ("", "-0"):
        return "0"
    return fixed


def format_amount_safe(value: AmountLike) -> str:
    """
    Render an amount as a plain decimal string for the wallet layer.

    The value is fixed at 18 fractional digits, then trailing zeros and a
    dangling decimal point are removed. Zero, non-finite and non-numeric
    input render as ``"0"``.

    Example:
        >>> format_amount_safe(6e-7)
        '0.0000006'
    """
    num = to_decimal(value)
    if num is None or not num.is_finite() or num.is_zero():
        return "0"
    fixed = format(_quantize(num, _QUANTUM), "f")
    return _trim(fixed)


def parse_amount(value: Optional[str], min_amount: AmountLike = 0) -> Optional[Decimal]:
    """
    Parse user input into an amount.

    Args:
        value: Raw input string
        min_amount: Smallest accepted positive amount

    Returns:
        The parsed amount, or None if the input is empty, not a finite
        number, negative, or positive but below ``min_amount``. Zero is
        returned as-is; callers that need a positive amount reject it.
    """
    if value is None:
        return None
    num = to_decimal(value)
    if num is None or not num.is_finite():
        return None
    if num < 0:
        return None
    minimum = to_decimal(min_amount) or Decimal(0)
    if 0 < num < minimum:
        return None
    return num


def format_display_amount(value: AmountLike, decimals: int) -> str:
    """Fixed-decimal rendering for presentation. NaN renders as ``"0"``."""
    num = to_decimal(value)
    if num is None or num.is_nan():
        return "0"
    if not num.is_finite():
        return str(num)
    quantum = Decimal(1).scaleb(-decimals)
    return format(_quantize(num, quantum), "f")


def to_micro_units(amount: AmountLike, decimals: int = 6) -> int:
    """
    Convert an amount to an integer count of its smallest unit.

    1 OCT = 10**6 micro OCT, 1 ETH = 10**18 wei. Digits beyond ``decimals``
    are truncated.
    """
    whole, _, frac = format_amount_safe(amount).partition(".")
    negative = whole.startswith("-")
    whole = whole.lstrip("-")
    frac = frac.ljust(decimals, "0")[:decimals]
    micro = int(whole or "0") * 10 ** decimals + int(frac or "0")
    return -micro if negative else micro


def from_micro_units(micro_amount: int, decimals: int = 6) -> Decimal:
    """Convert an integer count of the smallest unit back to an amount."""
    return Decimal(micro_amount).scaleb(-decimals)


def validate_amount(amount: AmountLike, min_amount: AmountLike, max_amount: AmountLike, asset: str) -> Decimal:
    """
    Check an amount against swap bounds.

    Returns:
        The amount as Decimal

    Raises:
        InvalidAmountError: With a user-facing message describing the violation
    """
    num = to_decimal(amount)
    if num is None or not num.is_finite():
        raise InvalidAmountError("Invalid amount")
    if num <= 0:
        raise InvalidAmountError("Amount must be greater than 0")
    if num < to_decimal(min_amount):
        raise InvalidAmountError(f"Minimum amount is {format_amount_safe(min_amount)} {asset}")
    if num > to_decimal(max_amount):
        raise InvalidAmountError(f"Maximum amount is {format_amount_safe(max_amount)} {asset}")
    return num


def truncate_address(addr: str, start_chars: int = 6, end_chars: int = 4) -> str:
    """Shorten an address or hash for display and log lines."""
    if not addr or len(addr) <= start_chars + end_chars:
        return addr
    return f"{addr[:start_chars]}...{addr[-end_chars:]}"
