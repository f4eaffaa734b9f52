"""
Tests for the wallet boundary adapters.
"""
import json
import time
from unittest.mock import MagicMock, patch

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from intentswap_sdk.exceptions import DispatchError, UserRejectedError
from intentswap_sdk.wallet import (
    Capability, CapabilityWallet, LocalEvmWallet, SWAP_CIRCLE, TransactionRequest, parse_invoke_data,
)
from conftest import TEST_ESCROW_ETH, TEST_ESCROW_OCT, TEST_PRIV_KEY

ALL_METHODS = ["sign_intent", "send_transaction", "send_evm_transaction"]


def make_capability(methods=ALL_METHODS, expires_in_ms=60_000) -> Capability:
    return Capability(id="cap-1", methods=methods, expires_at=int(time.time() * 1000) + expires_in_ms)


def ok(data) -> dict:
    return {"success": True, "data": data}


def test_transaction_request_requires_one_carrier():
    with pytest.raises(ValueError):
        TransactionRequest(to=TEST_ESCROW_OCT, amount="1")
    with pytest.raises(ValueError):
        TransactionRequest(to=TEST_ESCROW_OCT, amount="1", message="m", data="0x00")
    assert TransactionRequest(to="a", amount="1", data="0x00").to_wire() == {"to": "a", "amount": "1", "data": "0x00"}


class TestParseInvokeData:

    def test_bytes(self):
        assert parse_invoke_data(b'{"txHash": "abc"}') == {"txHash": "abc"}

    def test_dict(self):
        assert parse_invoke_data({"txHash": "abc"}) == {"txHash": "abc"}

    def test_numeric_keyed_bytes(self):
        raw = b'{"txHash":"abc"}'
        assert parse_invoke_data({str(i): b for i, b in enumerate(raw)}) == {"txHash": "abc"}

    @pytest.mark.parametrize("data", [None, 42, "text"])
    def test_invalid(self, data):
        with pytest.raises(ValueError, match="Invalid data format"):
            parse_invoke_data(data)


class TestCapability:

    def test_defaults(self):
        capability = Capability.model_validate({"id": "cap-9", "expiresAt": 10})
        assert capability.circle == SWAP_CIRCLE
        assert capability.is_expired(now_ms=10)
        assert not capability.is_expired(now_ms=9)
        assert not capability.allows("sign_intent")


class TestCapabilityWallet:

    def test_sign_intent(self):
        invoke = MagicMock(return_value=ok({"signature": "0xsig"}))
        wallet = CapabilityWallet(invoke, make_capability())
        assert wallet.sign_intent(b'{"intentType":"swap"}') == "0xsig"
        invoke.assert_called_once_with(capability_id="cap-1", method="sign_intent", payload=b'{"intentType":"swap"}')

    def test_sign_intent_declined(self):
        wallet = CapabilityWallet(MagicMock(return_value={"success": False}), make_capability())
        with pytest.raises(UserRejectedError, match="Failed to sign intent"):
            wallet.sign_intent(b"{}")

    def test_sign_intent_raises(self):
        wallet = CapabilityWallet(MagicMock(side_effect=RuntimeError("popup closed")), make_capability())
        with pytest.raises(UserRejectedError, match="Failed to sign intent"):
            wallet.sign_intent(b"{}")

    def test_send_message_transaction(self):
        invoke = MagicMock(return_value=ok(b'{"txHash":"octtx"}'))
        wallet = CapabilityWallet(invoke, make_capability())
        request = TransactionRequest(to=TEST_ESCROW_OCT, amount="10", message="ZW52")

        assert wallet.send_transaction(request) == "octtx"
        kwargs = invoke.call_args.kwargs
        assert kwargs["method"] == "send_transaction"
        assert json.loads(kwargs["payload"]) == {"to": TEST_ESCROW_OCT, "amount": "10", "message": "ZW52"}

    def test_send_calldata_transaction(self):
        invoke = MagicMock(return_value=ok({"txHash": "0xethtx"}))
        wallet = CapabilityWallet(invoke, make_capability())
        request = TransactionRequest(to=TEST_ESCROW_ETH, amount="0.01", data="0x5a5735")

        assert wallet.send_transaction(request) == "0xethtx"
        assert invoke.call_args.kwargs["method"] == "send_evm_transaction"

    def test_send_rejected_by_user(self):
        invoke = MagicMock(return_value={"success": False, "error": {"code": "USER_REJECTED"}})
        wallet = CapabilityWallet(invoke, make_capability())
        with pytest.raises(UserRejectedError):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_OCT, amount="1", message="m"))

    def test_send_failed(self):
        wallet = CapabilityWallet(MagicMock(return_value={"success": False}), make_capability())
        with pytest.raises(DispatchError, match="Failed to send transaction to escrow"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_OCT, amount="1", message="m"))

    def test_send_raises(self):
        wallet = CapabilityWallet(MagicMock(side_effect=ConnectionError("bridge lost")), make_capability())
        with pytest.raises(DispatchError, match="bridge lost"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_OCT, amount="1", message="m"))

    def test_send_without_hash(self):
        wallet = CapabilityWallet(MagicMock(return_value=ok({})), make_capability())
        with pytest.raises(DispatchError, match="transaction hash"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_OCT, amount="1", message="m"))

    def test_expired_capability(self):
        invoke = MagicMock()
        wallet = CapabilityWallet(invoke, make_capability(expires_in_ms=-1))
        with pytest.raises(UserRejectedError, match="expired"):
            wallet.sign_intent(b"{}")
        with pytest.raises(UserRejectedError, match="expired"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_OCT, amount="1", message="m"))
        invoke.assert_not_called()

    def test_method_not_granted(self):
        invoke = MagicMock()
        wallet = CapabilityWallet(invoke, make_capability(methods=["sign_intent"]))
        with pytest.raises(UserRejectedError, match="send_evm_transaction"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_ETH, amount="1", data="0x00"))
        invoke.assert_not_called()


@pytest.fixture
def mock_w3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.chain_id = 11155111
    w3.eth.gas_price = 10 ** 9
    w3.eth.estimate_gas.return_value = 50000
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
    return w3


class TestLocalEvmWallet:

    def test_rejects_plain_http(self):
        with pytest.raises(ValueError, match="https"):
            LocalEvmWallet("http://rpc.example.com", TEST_PRIV_KEY)

    def test_sign_intent_recoverable(self, mock_w3):
        wallet = LocalEvmWallet("https://rpc.example.com", TEST_PRIV_KEY, w3=mock_w3)
        payload = b'{"intentType":"swap"}'
        signature = wallet.sign_intent(payload)
        recovered = Account.recover_message(encode_defunct(primitive=payload), signature=signature)
        assert recovered == Account.from_key(TEST_PRIV_KEY).address

    def test_send_transaction(self, mock_w3):
        wallet = LocalEvmWallet("https://rpc.example.com", TEST_PRIV_KEY, w3=mock_w3)
        request = TransactionRequest(to=TEST_ESCROW_ETH, amount="0.01", data="0x5a5735")

        tx_hash = wallet.send_transaction(request)

        assert tx_hash == "0x" + "ab" * 32
        estimate = mock_w3.eth.estimate_gas.call_args.args[0]
        assert estimate["value"] == Web3.to_wei("0.01", "ether")
        assert estimate["to"] == Web3.to_checksum_address(TEST_ESCROW_ETH)
        assert estimate["data"] == "0x5a5735"
        mock_w3.eth.send_raw_transaction.assert_called_once()

    def test_gas_estimation_fallback(self, mock_w3):
        mock_w3.eth.estimate_gas.side_effect = ValueError("execution reverted")
        wallet = LocalEvmWallet("https://rpc.example.com", TEST_PRIV_KEY, w3=mock_w3)
        account = MagicMock()
        account.address = wallet.address
        account.sign_transaction.return_value.raw_transaction = b"raw"

        with patch.object(wallet, "account", account):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_ETH, amount="1", data="0x00"))

        tx = account.sign_transaction.call_args.args[0]
        assert tx["gas"] == LocalEvmWallet.DEFAULT_GAS
        assert tx["nonce"] == 7
        assert tx["chainId"] == 11155111
        mock_w3.eth.send_raw_transaction.assert_called_once_with(b"raw")

    def test_send_failure(self, mock_w3):
        mock_w3.eth.send_raw_transaction.side_effect = ValueError("insufficient funds")
        wallet = LocalEvmWallet("https://rpc.example.com", TEST_PRIV_KEY, w3=mock_w3)
        with pytest.raises(DispatchError, match="insufficient funds"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_ETH, amount="1", data="0x00"))

    def test_message_field_not_supported(self, mock_w3):
        wallet = LocalEvmWallet("https://rpc.example.com", TEST_PRIV_KEY, w3=mock_w3)
        with pytest.raises(DispatchError, match="calldata"):
            wallet.send_transaction(TransactionRequest(to=TEST_ESCROW_ETH, amount="1", message="m"))
