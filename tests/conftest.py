"""
Pytest fixtures for the IntentSwap SDK tests.
"""
import itertools
import time
from typing import Iterable, List, Optional

import base58
import pytest

from intentswap_sdk._rate_limited_log import reset_rate_limits
from intentswap_sdk.models import Quote, TxLookupStatus, TxStatus

TEST_API_URL = "https://api.example.com"
TEST_ESCROW_OCT = "oct" + base58.b58encode(bytes(range(32))).decode("ascii")
TEST_ESCROW_ETH = "0x1234567890123456789012345678901234567890"
TEST_EVM_ADDRESS = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
TEST_OCTRA_ADDRESS = "oct" + base58.b58encode(bytes([7] * 32)).decode("ascii")
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_OCTRA_TX = "a" * 64
TEST_SEPOLIA_TX = "0x" + "b" * 64


@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    """Make time.sleep instantaneous so polling tests don't slow the suite down."""
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_log_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


def make_quote(direction: str = "OCT_TO_ETH", amount_in=10, min_amount_out=0.0049, **overrides) -> Quote:
    """Quote as the pricing endpoint returns it."""
    oct_to_eth = direction == "OCT_TO_ETH"
    data = {
        "from": "OCT" if oct_to_eth else "ETH",
        "to": "ETH" if oct_to_eth else "OCT",
        "amountIn": amount_in,
        "estimatedOut": 0.005,
        "minAmountOut": min_amount_out,
        "rate": 0.0005,
        "feeBps": 30,
        "slippageBps": 50,
        "expiresIn": 60,
        "escrowAddress": TEST_ESCROW_OCT if oct_to_eth else TEST_ESCROW_ETH,
        "network": "octra_mainnet" if oct_to_eth else "ethereum_sepolia",
    }
    data.update(overrides)
    return Quote.model_validate(data)


@pytest.fixture
def oct_to_eth_quote() -> Quote:
    return make_quote("OCT_TO_ETH")


@pytest.fixture
def eth_to_oct_quote() -> Quote:
    return make_quote("ETH_TO_OCT", amount_in=0.01, min_amount_out=19.5)


class FakeClock:
    """Monotonic clock that advances a fixed step on every read."""

    def __init__(self, step: float = 1.0):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


class FakeOctraSource:
    """Scripted Octra lookups: one status and one epoch per poll, the last value repeats."""

    def __init__(self, statuses: Iterable[str], epochs: Iterable[Optional[int]] = (1,)):
        self._statuses = list(statuses)
        self._epochs = list(epochs)
        self.status_calls = 0
        self.epoch_calls = 0

    @staticmethod
    def _pick(values: List, index: int):
        return values[min(index, len(values) - 1)]

    def tx_status(self, tx_hash: str) -> TxStatus:
        status = self._pick(self._statuses, self.status_calls)
        self.status_calls += 1
        if isinstance(status, Exception):
            raise status
        return TxStatus(found=status != "unknown", status=TxLookupStatus(status))

    def current_epoch(self) -> Optional[int]:
        epoch = self._pick(self._epochs, self.epoch_calls)
        self.epoch_calls += 1
        if isinstance(epoch, Exception):
            raise epoch
        return epoch


class FakeSepoliaSource:
    """Scripted Sepolia lookups; each entry is ``(found, status)`` or an exception."""

    def __init__(self, results: Iterable):
        self._results = list(results)
        self.calls = 0

    def tx_status(self, tx_hash: str) -> TxStatus:
        result = self._results[min(self.calls, len(self._results) - 1)]
        self.calls += 1
        if isinstance(result, Exception):
            raise result
        found, status = result
        return TxStatus(found=found, status=TxLookupStatus(status))


class FakeWallet:
    """Wallet that records every call and returns sequential tx hashes."""

    def __init__(self, tx_hash: str = TEST_OCTRA_TX, sign_error: Exception = None, send_error: Exception = None):
        self.tx_hash = tx_hash
        self.sign_error = sign_error
        self.send_error = send_error
        self.signed: List[bytes] = []
        self.sent = []
        self._counter = itertools.count()

    def sign_intent(self, payload: bytes):
        if self.sign_error:
            raise self.sign_error
        self.signed.append(payload)
        return None

    def send_transaction(self, request):
        if self.send_error:
            raise self.send_error
        self.sent.append(request)
        return self.tx_hash


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_wallet() -> FakeWallet:
    return FakeWallet()
