#!/usr/bin/env python3
"""
Example of minting an NFT with the nft-minter package.
"""
import os
import logging

from nft_minter import MintClient, resolve_config
from nft_minter.exceptions import ConfigurationError, MinterError, TransactionTimeoutError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    """
    Demonstrate basic usage of the MintClient.

    This example shows how to:
    1. Resolve configuration from the environment (and a .env file)
    2. Submit a mint and wait for it separately
    3. Recover from a timeout by re-querying the transaction hash
    """
    TOKEN_URI = os.environ.get(
        "TOKEN_URI",
        "https://gateway.pinata.cloud/ipfs/bafkreiggjzyc5i6kmr2zpcsxez6a3ffpzkaylymtdwtbrcblzq7v6o5vhe",
    )
    NETWORK = os.environ.get("NFT_NETWORK", "mantle-sepolia")

    print("\n=== NFT Minter Example ===\n")

    try:
        config = resolve_config(network=NETWORK)
        client = MintClient.from_config(config, receipt_timeout=60, logger=logger)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return

    print(f"Minting from {client.address} on chain {config.network.chain_id}")
    print(f"Contract: {config.contract.address}")

    try:
        pending = client.submit(client.address, TOKEN_URI)
        print(f"Submitted: {client.tx_url(pending.tx_hash)}")
        client.confirm(pending)
    except TransactionTimeoutError as e:
        print(f"Not mined after {e.timeout}s, checking once more...")
        pending = client.refresh(client.last_transaction)
        print(f"Status: {pending.status.value}")
        return
    except MinterError as e:
        print(f"Error minting: {e}")
        return

    print("NFT minted successfully!")
    print(f"Block number: {pending.receipt.block_number}")
    print(f"Gas used: {pending.receipt.gas_used}")


if __name__ == "__main__":
    main()
