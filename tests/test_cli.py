"""
Tests for the intentswap-cli command.
"""
import base64
import json

import pytest
from typer.testing import CliRunner

from intentswap_sdk.cli import app, payout_url, should_use_color
from intentswap_sdk.envelope import TxField, encode
from intentswap_sdk.models import SwapDirection, SwapIntentPayload
from intentswap_sdk.version import __version__
from conftest import TEST_API_URL, TEST_EVM_ADDRESS, TEST_OCTRA_TX

runner = CliRunner()


@pytest.fixture(autouse=True)
def _default_explorers(monkeypatch):
    monkeypatch.delenv("SEPOLIA_EXPLORER", raising=False)
    monkeypatch.delenv("OCTRA_EXPLORER", raising=False)


@pytest.fixture
def payload():
    return SwapIntentPayload.model_validate(dict(
        fromAsset="OCT", toAsset="ETH", amountIn=10, minAmountOut=0.0049,
        targetChain="ethereum_sepolia", targetAddress=TEST_EVM_ADDRESS.lower(),
        expiry=1700000300000, nonce="n-1",
    ))


def invoke(*args):
    return runner.invoke(app, ["--no-color", "--api-url", TEST_API_URL, *args])


@pytest.mark.parametrize("field", [TxField.MESSAGE, TxField.CALLDATA])
def test_verify_ok(payload, field):
    result = invoke("verify", encode(payload, field))
    assert result.exit_code == 0
    assert "Hash OK" in result.output
    assert '"targetChain": "ethereum_sepolia"' in result.output


def test_verify_small_amount_ok(payload):
    small = payload.model_copy(update={"amount_in": 0.1, "min_amount_out": 0.00005})
    result = invoke("verify", encode(small, TxField.MESSAGE))
    assert result.exit_code == 0
    assert "Hash OK" in result.output


def test_verify_mismatch(payload):
    data = json.loads(base64.b64decode(encode(payload, TxField.MESSAGE)))
    data["payload"]["amountIn"] = 1000
    tampered = base64.b64encode(json.dumps(data).encode()).decode()

    result = invoke("verify", tampered)
    assert result.exit_code == 1
    assert "Hash mismatch" in result.output


def test_verify_garbage():
    result = invoke("verify", "%%%")
    assert result.exit_code == 1
    assert "Invalid envelope" in result.output


def test_status(requests_mock):
    requests_mock.get(f"{TEST_API_URL}/swap/intent-1", json={
        "intentId": "intent-1", "status": "FULFILLED", "direction": "OCT_TO_ETH",
        "targetTxHash": "0xpayout", "amountOut": 0.005,
    })
    result = invoke("status", "intent-1")
    assert result.exit_code == 0
    assert "FULFILLED" in result.output
    assert "0.005000" in result.output
    assert "https://sepolia.etherscan.io/tx/0xpayout" in result.output


def test_status_explorer_override(monkeypatch, requests_mock):
    monkeypatch.setenv("OCTRA_EXPLORER", "https://explorer.local/")
    requests_mock.get(f"{TEST_API_URL}/swap/intent-2", json={
        "intentId": "intent-2", "status": "FULFILLED", "direction": "ETH_TO_OCT",
        "targetTxHash": TEST_OCTRA_TX,
    })
    result = invoke("status", "intent-2")
    assert result.exit_code == 0
    assert f"https://explorer.local/transactions/{TEST_OCTRA_TX}" in result.output


def test_status_error(requests_mock):
    requests_mock.get(f"{TEST_API_URL}/swap/nope", status_code=404, json={"error": "Intent not found"})
    result = invoke("status", "nope")
    assert result.exit_code == 1
    assert "Error: Intent not found" in result.output


def test_history(requests_mock):
    address = TEST_EVM_ADDRESS.lower()
    requests_mock.get(f"{TEST_API_URL}/history/{address}", json={
        "address": address, "count": 1,
        "swaps": [{
            "id": "intent-1", "direction": "OCT_TO_ETH", "status": "FULFILLED",
            "payload": {"fromAsset": "OCT", "toAsset": "ETH", "amountIn": 10,
                        "minAmountOut": 0.0049, "targetAddress": address},
            "sourceTxHash": TEST_OCTRA_TX, "targetTxHash": "0xpayout", "createdAt": 1700000000000,
        }],
    })
    result = invoke("history", address, "--limit", "5")
    assert result.exit_code == 0
    assert "intent-1" in result.output
    assert "10.000000 OCT" in result.output
    assert "payout: https://sepolia.etherscan.io/tx/0xpayout" in result.output
    assert requests_mock.last_request.qs["limit"] == ["5"]


def test_history_empty(requests_mock):
    requests_mock.get(f"{TEST_API_URL}/history/0xabc", json={"address": "0xabc", "count": 0, "swaps": []})
    result = invoke("history", "0xabc")
    assert result.exit_code == 0
    assert "No swaps" in result.output


def test_api_url_from_env(monkeypatch, requests_mock):
    monkeypatch.setenv("INTENTSWAP_API_URL", TEST_API_URL)
    requests_mock.get(f"{TEST_API_URL}/swap/intent-1", json={"intentId": "intent-1", "status": "OPEN"})
    result = runner.invoke(app, ["--no-color", "status", "intent-1"])
    assert result.exit_code == 0
    assert "OPEN" in result.output
    assert "Explorer" not in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_payout_url():
    assert payout_url(SwapDirection.ETH_TO_OCT, "abc") == "https://octrascan.io/transactions/abc"
    assert payout_url(None, "abc") is None
    assert payout_url(SwapDirection.OCT_TO_ETH, None) is None


def test_should_use_color(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    assert should_use_color(no_color=True) is False
    monkeypatch.setenv("NO_COLOR", "1")
    assert should_use_color() is False
