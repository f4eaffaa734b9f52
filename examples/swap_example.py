#!/usr/bin/env python3
"""
Simple example of an ETH -> OCT swap with the IntentSwap SDK.
"""
import logging
import os

from intentswap_sdk import (
    Asset, IntentSwapError, LocalEvmWallet, SettlementClient, SwapConfig, SwapDirection,
    SwapOrchestrator, SwapStatus,
)


def main():
    """
    Demonstrate a complete swap.

    This example shows how to:
    1. Get a quote from the settlement backend
    2. Run the swap through the orchestrator with a local Sepolia wallet
    3. Follow progress through a status observer
    """
    logging.basicConfig(level=logging.INFO)

    # Read configuration from environment
    RPC_URL = os.environ.get("SEPOLIA_RPC_URL", "https://rpc.sepolia.org")
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")
    OCTRA_ADDRESS = os.environ.get("OCTRA_ADDRESS")
    AMOUNT = os.environ.get("SWAP_AMOUNT", "0.001")

    if not PRIVATE_KEY:
        print("ERROR: PRIVATE_KEY environment variable is required")
        return
    if not OCTRA_ADDRESS:
        print("ERROR: OCTRA_ADDRESS environment variable is required")
        return

    config = SwapConfig.from_env()
    settlement = SettlementClient(api_url=config.api_url, retry_count=config.retry_count,
                                  timeout=config.request_timeout)
    wallet = LocalEvmWallet(rpc_url=RPC_URL, priv_key=PRIVATE_KEY)

    try:
        quote = settlement.get_quote(Asset.ETH, Asset.OCT, AMOUNT, config.default_slippage_bps)
        print(f"Quote: {quote.amount_in} ETH -> at least {quote.min_amount_out} OCT (fee {quote.fee_bps} bps)")
        if not quote.has_sufficient_liquidity:
            print("ERROR: backend liquidity is insufficient for this swap")
            return

        with SwapOrchestrator(settlement, wallet, config=config) as orchestrator:
            orchestrator.subscribe(lambda event: print(f"  [{event.kind}] {event.status}"))
            record = orchestrator.execute_swap(quote, SwapDirection.ETH_TO_OCT, OCTRA_ADDRESS)

        if record.status == SwapStatus.FULFILLED:
            print("Swap fulfilled!")
            print(f"Source tx: {record.source_tx_hash}")
            print(f"Payout tx: {record.target_tx_hash}")
            print(f"Received:  {record.amount_out} OCT")
        else:
            print(f"Swap failed: {record.error}")

    except IntentSwapError as e:
        print(f"Error: {e}")


if __name__ == "__main__":
    main()
