"""
Integrity envelope encoding for swap intents.

The envelope carries the payload together with a SHA-256 hash of its canonical
JSON form. The backend recomputes that hash to detect tampering, so the
canonical serialization here must be byte-for-byte reproducible: sorted keys,
compact separators, numbers formatted as JavaScript formats them.

Two transport encodings exist, one per source chain:

* message field (Octra): ``base64(envelope_json)``
* calldata field (EVM):  ``0x`` + hex(``base64(envelope_json)``)

Base64 only makes the JSON text-safe; integrity rests on the hash alone.
"""
import base64
import binascii
import hashlib
import json
import logging
import math
import time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError
from web3 import Web3

from .exceptions import EnvelopeError
from .models import Envelope, SwapDirection, SwapIntentPayload, TargetChain, ENVELOPE_VERSION
from .payload import source_chain

logger = logging.getLogger(__name__)


class TxField(str, Enum):
    """Transaction field an envelope is written into."""
    MESSAGE = "message"
    CALLDATA = "calldata"


_CHAIN_FIELD = {
    TargetChain.OCTRA_MAINNET: TxField.MESSAGE,
    TargetChain.ETHEREUM_SEPOLIA: TxField.CALLDATA,
}


def js_number(value: float) -> str:
    """
    Format a float the way ECMAScript's Number-to-String does.

    ``repr`` already yields the shortest round-tripping digits; only the
    placement of the decimal point and the exponent notation differ.
    """
    if not math.isfinite(value):
        raise ValueError(f"Non-finite number cannot be serialized: {value}")
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped

    k = len(digits)
    n = exponent + k
    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * -n + digits

    e = n - 1
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"


def _dump(value: Any) -> str:
    if isinstance(value, float):
        return js_number(value)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda item: str(item[0]))
        return "{" + ",".join(f"{_dump(str(k))}:{_dump(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_dump(v) for v in value) + "]"
    return json.dumps(value, ensure_ascii=False)


def canonical_json(data: Union[BaseModel, Dict[str, Any]]) -> str:
    """
    Serialize a model or dict to canonical JSON.

    Keys are sorted, separators are compact and numbers are written as
    ``JSON.stringify`` writes them (``10.0 -> 10``, ``5e-05 -> 0.00005``), so
    the bytes match what a JavaScript verifier hashes. Models are dumped in
    their wire (alias) form first.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json", exclude_none=True)
    return _dump(data)


def hash_payload(payload: SwapIntentPayload) -> str:
    """SHA-256 hex digest of the payload's canonical JSON."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def create_envelope(payload: SwapIntentPayload, timestamp_ms: Optional[int] = None) -> Envelope:
    """
    Wrap a payload in a hash-authenticated envelope.

    The hash is computed before the envelope is constructed.
    """
    payload_hash = hash_payload(payload)
    return Envelope(
        v=ENVELOPE_VERSION,
        payload=payload,
        payload_hash=payload_hash,
        timestamp=timestamp_ms if timestamp_ms is not None else int(time.time() * 1000),
    )


def verify_envelope(envelope: Envelope) -> bool:
    """Check that the envelope hash matches its payload."""
    return hash_payload(envelope.payload) == envelope.payload_hash


def encode_envelope(envelope: Envelope, target_field: TxField) -> str:
    """Serialize an existing envelope into a transaction field value."""
    text = base64.b64encode(canonical_json(envelope).encode("utf-8")).decode("ascii")
    if TxField(target_field) == TxField.MESSAGE:
        return text
    return Web3.to_hex(text=text)


def encode(payload: SwapIntentPayload, target_field: TxField, timestamp_ms: Optional[int] = None) -> str:
    """
    Encode a payload for a transaction field.

    Args:
        payload: Intent payload
        target_field: ``TxField.MESSAGE`` for Octra, ``TxField.CALLDATA`` for EVM
        timestamp_ms: Envelope timestamp (defaults to now)

    Returns:
        The encoded field value
    """
    envelope = create_envelope(payload, timestamp_ms)
    encoded = encode_envelope(envelope, target_field)
    logger.debug(f"Encoded intent envelope for {TxField(target_field).value} field, hash={envelope.payload_hash}")
    return encoded


def encode_for_direction(payload: SwapIntentPayload, direction: SwapDirection, timestamp_ms: Optional[int] = None) -> str:
    """Encode a payload into the field type of the direction's source chain."""
    return encode(payload, field_for_chain(source_chain(direction)), timestamp_ms)


def field_for_chain(chain: TargetChain) -> TxField:
    return _CHAIN_FIELD[TargetChain(chain)]


def decode(encoded: str, target_field: Optional[TxField] = None) -> Envelope:
    """
    Decode a transaction field value back into an envelope.

    Args:
        encoded: Message or calldata value
        target_field: Field type; detected from the ``0x`` prefix when omitted

    Returns:
        The parsed envelope (the hash is not checked; see ``verify_envelope``)

    Raises:
        EnvelopeError: If the value is not a well-formed envelope
    """
    if not isinstance(encoded, str) or not encoded:
        raise EnvelopeError("Encoded envelope must be a non-empty string")
    if target_field is None:
        target_field = TxField.CALLDATA if encoded.startswith("0x") else TxField.MESSAGE

    try:
        text = encoded
        if TxField(target_field) == TxField.CALLDATA:
            if not encoded.startswith("0x"):
                raise EnvelopeError("Calldata must start with 0x")
            text = bytes.fromhex(encoded[2:]).decode("utf-8")
        # Raw JSON is accepted for envelopes written before base64 wrapping
        if not text.lstrip().startswith("{"):
            text = base64.b64decode(text, validate=True).decode("utf-8")
        data = json.loads(text)
    except EnvelopeError:
        raise
    except (ValueError, binascii.Error, UnicodeDecodeError) as e:
        raise EnvelopeError(f"Malformed envelope encoding: {e}")

    if not isinstance(data, dict):
        raise EnvelopeError(f"Envelope must be a JSON object, got {type(data).__name__}")
    try:
        return Envelope.model_validate(data)
    except ValidationError as e:
        raise EnvelopeError(f"Invalid envelope: {e}")
