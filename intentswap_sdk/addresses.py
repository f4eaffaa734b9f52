"""
Address grammar checks for the two supported chains.
"""
import re
from typing import Callable, Dict

import base58

from .exceptions import InvalidAddressError

OCTRA_MAINNET = "octra_mainnet"
ETHEREUM_SEPOLIA = "ethereum_sepolia"

OCTRA_ADDRESS_PREFIX = "oct"
OCTRA_ADDRESS_BYTES = 32

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_evm_address(address: str) -> bool:
    """Check for ``0x`` followed by exactly 40 hex digits (any case)."""
    return isinstance(address, str) and bool(_EVM_ADDRESS_RE.match(address))


def is_octra_address(address: str) -> bool:
    """
    Check for the ``oct`` prefix followed by a base58 body of a 32-byte key hash.

    Octra addresses are case-sensitive, so no case folding happens here.
    """
    if not isinstance(address, str) or not address.startswith(OCTRA_ADDRESS_PREFIX):
        return False
    body = address[len(OCTRA_ADDRESS_PREFIX):]
    if not body:
        return False
    try:
        decoded = base58.b58decode(body)
    except ValueError:
        return False
    return len(decoded) == OCTRA_ADDRESS_BYTES


def _normalize_evm(address: str) -> str:
    # Backend lookups key on lowercase addresses
    return address.lower()


def _normalize_octra(address: str) -> str:
    return address


_VALIDATORS: Dict[str, Callable[[str], bool]] = {
    ETHEREUM_SEPOLIA: is_evm_address,
    OCTRA_MAINNET: is_octra_address,
}

_NORMALIZERS: Dict[str, Callable[[str], str]] = {
    ETHEREUM_SEPOLIA: _normalize_evm,
    OCTRA_MAINNET: _normalize_octra,
}


def is_valid_address(address: str, chain: str) -> bool:
    """
    Check an address against the grammar of ``chain``.

    Args:
        address: Address string to check
        chain: Target chain name (``octra_mainnet`` or ``ethereum_sepolia``)

    Returns:
        True if the address is well-formed for the chain

    Raises:
        ValueError: If the chain is unknown
    """
    chain = str(getattr(chain, "value", chain))
    if chain not in _VALIDATORS:
        raise ValueError(f"Unsupported chain: {chain}")
    return _VALIDATORS[chain](address)


def normalize_address(address: str, chain: str) -> str:
    """
    Validate ``address`` for ``chain`` and return its canonical form.

    Raises:
        InvalidAddressError: If the address fails the chain's grammar
    """
    chain = str(getattr(chain, "value", chain))
    if not is_valid_address(address, chain):
        if chain == ETHEREUM_SEPOLIA:
            hint = "expected 0x followed by 40 hex characters"
        else:
            hint = f"expected '{OCTRA_ADDRESS_PREFIX}' followed by a base58 public key hash"
        raise InvalidAddressError(
            f"Invalid {chain} address '{address}': {hint}",
            address=address,
            chain=chain,
        )
    return _NORMALIZERS[chain](address)
