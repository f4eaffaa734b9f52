"""
Data models for the IntentSwap SDK.

Wire-facing models use the backend's camelCase field names as aliases, so
``model_dump(by_alias=True)`` produces exactly what goes over the wire.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .addresses import is_valid_address


class Asset(str, Enum):
    OCT = "OCT"
    ETH = "ETH"


class TargetChain(str, Enum):
    OCTRA_MAINNET = "octra_mainnet"
    ETHEREUM_SEPOLIA = "ethereum_sepolia"


class SwapDirection(str, Enum):
    OCT_TO_ETH = "OCT_TO_ETH"
    ETH_TO_OCT = "ETH_TO_OCT"


class IntentStatus(str, Enum):
    """Intent status as reported by the settlement backend."""
    OPEN = "OPEN"
    FULFILLED = "FULFILLED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not IntentStatus.OPEN


class SwapStatus(str, Enum):
    """Local swap state machine tag."""
    IDLE = "idle"
    SIGNING = "signing"
    SENDING = "sending"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    POLLING = "polling"
    FULFILLED = "fulfilled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SwapStatus.FULFILLED, SwapStatus.FAILED)


class TxLookupStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    UNKNOWN = "unknown"


ASSET_CHAIN = {
    Asset.OCT: TargetChain.OCTRA_MAINNET,
    Asset.ETH: TargetChain.ETHEREUM_SEPOLIA,
}

PAYLOAD_VERSION = 1
ENVELOPE_VERSION = 1

Numeric = Union[int, float, str]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def to_wire(self) -> Dict[str, Any]:
        """Dump to the JSON-compatible wire representation."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class QuoteLiquidity(_WireModel):
    available: Optional[float] = None
    required: float = 0
    sufficient: bool = True


class Quote(_WireModel):
    """
    Quote from the pricing endpoint.

    Consumed read-only. Amount fields keep whatever type the backend sent
    (number or numeric string) so the payload builder can coerce them.
    """
    from_asset: Asset = Field(..., alias="from")
    to_asset: Asset = Field(..., alias="to")
    amount_in: Numeric = Field(..., alias="amountIn")
    estimated_out: Numeric = Field(0, alias="estimatedOut")
    min_amount_out: Numeric = Field(..., alias="minAmountOut")
    rate: Numeric = 0
    fee_bps: int = Field(0, alias="feeBps")
    slippage_bps: int = Field(0, alias="slippageBps")
    expires_in: Optional[int] = Field(None, alias="expiresIn")
    escrow_address: str = Field(..., alias="escrowAddress")
    network: Optional[TargetChain] = None
    liquidity: Optional[QuoteLiquidity] = None

    @property
    def has_sufficient_liquidity(self) -> bool:
        return self.liquidity is None or self.liquidity.sufficient


class SwapIntentPayload(_WireModel):
    """Versioned swap intent. Immutable once built."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: int = PAYLOAD_VERSION
    intent_type: str = Field("swap", alias="intentType")
    from_asset: Asset = Field(..., alias="fromAsset")
    to_asset: Asset = Field(..., alias="toAsset")
    amount_in: float = Field(..., alias="amountIn", ge=0)
    min_amount_out: float = Field(..., alias="minAmountOut", ge=0)
    target_chain: TargetChain = Field(..., alias="targetChain")
    target_address: str = Field(..., alias="targetAddress")
    expiry: int
    nonce: str

    @field_validator("version")
    @classmethod
    def _check_version(cls, v: int) -> int:
        if v != PAYLOAD_VERSION:
            raise ValueError(f"Unsupported payload version {v}, expected {PAYLOAD_VERSION}")
        return v

    @field_validator("intent_type")
    @classmethod
    def _check_intent_type(cls, v: str) -> str:
        if v != "swap":
            raise ValueError("intentType must be 'swap'")
        return v

    @field_validator("nonce")
    @classmethod
    def _check_nonce(cls, v: str) -> str:
        if not v:
            raise ValueError("nonce must not be empty")
        return v

    @model_validator(mode="after")
    def _check_pair(self) -> "SwapIntentPayload":
        if self.from_asset == self.to_asset:
            raise ValueError("fromAsset and toAsset must differ")
        if ASSET_CHAIN[self.to_asset] != self.target_chain:
            raise ValueError(
                f"targetChain {self.target_chain.value} does not carry {self.to_asset.value}"
            )
        if not is_valid_address(self.target_address, self.target_chain.value):
            raise ValueError(f"targetAddress is not a valid {self.target_chain.value} address")
        return self


class Envelope(_WireModel):
    """Hash-authenticated wrapper carried inside a transaction field."""
    v: int = ENVELOPE_VERSION
    payload: SwapIntentPayload
    payload_hash: str = Field(..., alias="hash")
    timestamp: int

    @field_validator("payload_hash")
    @classmethod
    def _check_hash(cls, v: str) -> str:
        if len(v) != 64:
            raise ValueError("hash must be a 64-character hex string")
        if not all(c in "0123456789abcdef" for c in v):
            raise ValueError("hash must be a lowercase hex string")
        return v


class TxStatus(_WireModel):
    found: bool = False
    status: TxLookupStatus = TxLookupStatus.UNKNOWN
    epoch: Optional[int] = None


class SubmitResult(_WireModel):
    intent_id: str = Field(..., alias="intentId")
    status: str = "OPEN"
    message: Optional[str] = None


class IntentStatusResponse(_WireModel):
    intent_id: str = Field(..., alias="intentId")
    status: IntentStatus
    direction: Optional[SwapDirection] = None
    target_tx_hash: Optional[str] = Field(None, alias="targetTxHash")
    amount_out: Optional[float] = Field(None, alias="amountOut")


class AssetLiquidity(_WireModel):
    balance: float = 0
    min_required: float = Field(0, alias="minRequired")
    sufficient: bool = False


class LiquidityStatus(_WireModel):
    oct: AssetLiquidity
    eth: AssetLiquidity
    can_swap_oct_to_eth: bool = Field(False, alias="canSwapOctToEth")
    can_swap_eth_to_oct: bool = Field(False, alias="canSwapEthToOct")
    operational: bool = False

    def can_swap(self, direction: SwapDirection) -> bool:
        if direction == SwapDirection.OCT_TO_ETH:
            return self.operational and self.can_swap_oct_to_eth
        return self.operational and self.can_swap_eth_to_oct


class HistoryPayload(_WireModel):
    from_asset: str = Field(..., alias="fromAsset")
    to_asset: str = Field(..., alias="toAsset")
    amount_in: float = Field(..., alias="amountIn")
    min_amount_out: float = Field(..., alias="minAmountOut")
    target_address: str = Field(..., alias="targetAddress")


class HistoryEntry(_WireModel):
    id: str
    direction: SwapDirection
    status: str
    payload: HistoryPayload
    source_tx_hash: Optional[str] = Field(None, alias="sourceTxHash")
    target_tx_hash: Optional[str] = Field(None, alias="targetTxHash")
    amount_out: Optional[float] = Field(None, alias="amountOut")
    created_at: int = Field(..., alias="createdAt")
    fulfilled_at: Optional[int] = Field(None, alias="fulfilledAt")
    error: Optional[str] = None


class SwapHistory(_WireModel):
    address: str
    count: int = 0
    swaps: List[HistoryEntry] = Field(default_factory=list)


class SwapRecord(_WireModel):
    """
    Local tracking entry for one swap attempt.

    Only the orchestrator mutates records; everybody else gets copies.
    """
    id: str
    direction: SwapDirection
    payload: SwapIntentPayload
    status: SwapStatus = SwapStatus.SIGNING
    intent_id: Optional[str] = Field(None, alias="intentId")
    source_tx_hash: Optional[str] = Field(None, alias="sourceTxHash")
    target_tx_hash: Optional[str] = Field(None, alias="targetTxHash")
    amount_out: Optional[float] = Field(None, alias="amountOut")
    created_at: int = Field(..., alias="createdAt")
    fulfilled_at: Optional[int] = Field(None, alias="fulfilledAt")
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class AppError(_WireModel):
    id: str
    code: str
    message: str
    timestamp: int
