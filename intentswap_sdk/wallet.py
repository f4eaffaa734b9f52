"""
Wallet boundary for swap flows.

The orchestrator only needs two things from a wallet: a signature over the
intent payload and a broadcast escrow transaction. ``WalletBoundary`` captures
that; ``CapabilityWallet`` adapts an invoke-style browser wallet SDK and
``LocalEvmWallet`` signs and sends Sepolia transactions in-process.
"""
import json
import logging
import time
import urllib.parse
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.base import BaseAccount
from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from .amounts import truncate_address
from .exceptions import DispatchError, UserRejectedError

SWAP_CIRCLE = "swap_intent_v1"

METHOD_SIGN_INTENT = "sign_intent"
METHOD_SEND_TRANSACTION = "send_transaction"
METHOD_SEND_EVM_TRANSACTION = "send_evm_transaction"


@dataclass
class TransactionRequest:
    """
    Escrow transfer handed to the wallet.

    Exactly one of ``message`` (Octra) or ``data`` (Sepolia calldata) carries
    the encoded intent envelope.
    """
    to: str
    amount: str
    message: Optional[str] = None
    data: Optional[str] = None

    def __post_init__(self):
        if (self.message is None) == (self.data is None):
            raise ValueError("Exactly one of message or data must be set")

    def to_wire(self) -> Dict[str, str]:
        wire = {"to": self.to, "amount": self.amount}
        if self.message is not None:
            wire["message"] = self.message
        else:
            wire["data"] = self.data
        return wire


class WalletBoundary(Protocol):
    """What a swap flow needs from a wallet."""

    def sign_intent(self, payload: bytes) -> Optional[str]:
        """Sign the serialized intent payload. Raises UserRejectedError when declined."""
        ...

    def send_transaction(self, request: TransactionRequest) -> str:
        """Broadcast the escrow transfer and return its hash. Raises UserRejectedError or DispatchError."""
        ...


class Capability(BaseModel):
    """Scoped, time-limited permission to invoke wallet methods."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    circle: str = SWAP_CIRCLE
    methods: List[str] = Field(default_factory=list)
    expires_at: int = Field(..., alias="expiresAt")

    def is_expired(self, now_ms: Optional[int] = None) -> bool:
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        return now_ms >= self.expires_at

    def allows(self, method: str) -> bool:
        return method in self.methods


def parse_invoke_data(data: Any) -> Dict[str, Any]:
    """
    Decode the ``data`` of a wallet invocation result.

    Wallet bridges hand results back as raw bytes, as an already-parsed dict, or
    as a dict of index -> byte (a serialized byte array).

    Raises:
        ValueError: If the data is in none of these forms
    """
    if isinstance(data, (bytes, bytearray)):
        return json.loads(bytes(data).decode("utf-8"))

    if isinstance(data, Mapping):
        if "0" not in data and 0 not in data:
            return dict(data)
        indexed = {int(k): v for k, v in data.items() if str(k).isdigit()}
        raw = bytes(indexed[i] for i in range(len(indexed)))
        return json.loads(raw.decode("utf-8"))

    raise ValueError("Invalid data format")


def _result_field(result: Any, name: str, default: Any = None) -> Any:
    if isinstance(result, Mapping):
        return result.get(name, default)
    return getattr(result, name, default)


class CapabilityWallet:
    """
    Adapter for invoke-style wallet SDKs.

    Args:
        invoke: Callable taking ``capability_id``, ``method`` and ``payload``
            (JSON bytes) and returning a result with ``success``, ``data`` and
            optionally ``error``
        capability: Capability granted by the wallet for this circle
        logger: Optional logger instance
    """

    def __init__(
        self,
        invoke: Callable[..., Any],
        capability: Capability,
        logger: Optional[logging.Logger] = None
    ):
        self.invoke = invoke
        self.capability = capability
        self.logger = logger or logging.getLogger(__name__)

    def _check(self, method: str) -> None:
        if self.capability.is_expired():
            raise UserRejectedError("Wallet capability expired, please re-authorize")
        if not self.capability.allows(method):
            raise UserRejectedError(f"Wallet capability does not grant '{method}'")

    def _invoke(self, method: str, payload: Dict[str, Any]) -> Any:
        self._check(method)
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        self.logger.debug(f"Invoking wallet method {method} ({len(body)} bytes)")
        return self.invoke(capability_id=self.capability.id, method=method, payload=body)

    def sign_intent(self, payload: bytes) -> Optional[str]:
        self._check(METHOD_SIGN_INTENT)
        try:
            result = self.invoke(capability_id=self.capability.id, method=METHOD_SIGN_INTENT, payload=payload)
        except Exception as e:
            self.logger.error(f"Wallet sign_intent failed: {e}")
            raise UserRejectedError("Failed to sign intent") from e
        if not _result_field(result, "success", False):
            raise UserRejectedError("Failed to sign intent")
        data = _result_field(result, "data")
        if data is None:
            return None
        try:
            return parse_invoke_data(data).get("signature")
        except ValueError:
            return None

    def send_transaction(self, request: TransactionRequest) -> str:
        method = METHOD_SEND_EVM_TRANSACTION if request.data is not None else METHOD_SEND_TRANSACTION
        try:
            result = self._invoke(method, request.to_wire())
        except UserRejectedError:
            raise
        except Exception as e:
            self.logger.error(f"Wallet {method} failed: {e}")
            raise DispatchError(f"Failed to send transaction to escrow: {e}") from e

        if not _result_field(result, "success", False):
            error = _result_field(result, "error")
            code = _result_field(error, "code") if error is not None else None
            if code == "USER_REJECTED":
                raise UserRejectedError("Transaction rejected in wallet")
            raise DispatchError("Failed to send transaction to escrow")

        try:
            tx_hash = parse_invoke_data(_result_field(result, "data")).get("txHash")
        except ValueError as e:
            raise DispatchError(f"Unreadable wallet response: {e}") from e
        if not tx_hash:
            raise DispatchError("Wallet did not return a transaction hash")
        self.logger.info(f"Escrow transaction sent: {truncate_address(tx_hash, 10, 6)}")
        return tx_hash


class LocalEvmWallet:
    """
    In-process Sepolia wallet backed by a private key.

    Args:
        rpc_url: Ethereum RPC endpoint URL
        priv_key: Ethereum private key
        gas: Gas limit to use (if None, will be estimated)
        logger: Optional logger instance

    Raises:
        ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
    """

    DEFAULT_GAS = 200000

    def __init__(
        self,
        rpc_url: str,
        priv_key: str,
        gas: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        w3: Optional[Web3] = None
    ):
        parsed = urllib.parse.urlparse(rpc_url)
        is_local = (parsed.hostname or "") in ("localhost", "127.0.0.1")
        if parsed.scheme != "https" and not is_local:
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")

        self.rpc_url = rpc_url
        self.gas = gas
        self.logger = logger or logging.getLogger(__name__)
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self.account: BaseAccount = Account.from_key(priv_key)

    @property
    def address(self) -> str:
        return self.account.address

    def sign_intent(self, payload: bytes) -> Optional[str]:
        try:
            signed = self.account.sign_message(encode_defunct(primitive=payload))
        except Exception as e:
            self.logger.error(f"Intent signing failed: {e}")
            raise UserRejectedError("Failed to sign intent") from e
        return Web3.to_hex(signed.signature)

    def send_transaction(self, request: TransactionRequest) -> str:
        if request.data is None:
            raise DispatchError("Sepolia escrow transfers carry the intent in calldata")

        try:
            to_address = Web3.to_checksum_address(request.to)
            value = Web3.to_wei(Decimal(request.amount), "ether")
            tx = {
                "from": self.address,
                "to": to_address,
                "value": value,
                "data": request.data,
                "nonce": self.w3.eth.get_transaction_count(self.address),
                "chainId": self.w3.eth.chain_id,
                "gasPrice": self.w3.eth.gas_price,
            }

            gas = self.gas
            if gas is None:
                try:
                    gas = int(self.w3.eth.estimate_gas({k: tx[k] for k in ("from", "to", "value", "data")}) * 1.1)
                    self.logger.debug(f"Estimated gas: {gas}")
                except Exception as e:
                    gas = self.DEFAULT_GAS
                    self.logger.warning(f"Gas estimation failed, using default: {gas}. Error: {e}")
            tx["gas"] = gas

            signed = self.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as e:
            self.logger.error(f"Failed to send transaction: {e}")
            raise DispatchError(f"Failed to send transaction to escrow: {e}") from e

        self.logger.info(f"Escrow transaction sent: {truncate_address(tx_hash, 10, 6)}")
        return tx_hash
