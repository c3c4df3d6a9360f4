"""
nft-mint - mint one NFT from the command line.

Exit codes:
  0  minted and confirmed
  1  submission, revert or chain errors
  2  configuration errors
  3  confirmation timed out; the transaction may still be mined
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from .client import MintClient
from .config import resolve_config
from .exceptions import ConfigurationError, MinterError, TransactionTimeoutError
from .version import __version__

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_TIMEOUT = 3

logger = logging.getLogger("nft_minter")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nft-mint", description="Mint an NFT through a deployed mintNFT contract")
    parser.add_argument("--recipient", help="Address receiving the NFT (default: the signer's address)")
    parser.add_argument("--token-uri", help="Metadata URI, e.g. an IPFS gateway link (default: $TOKEN_URI)")
    parser.add_argument("--network", help="Named network for RPC URL and chain ID defaults")
    parser.add_argument("--artifact", help="Path to the Hardhat artifact with the contract ABI")
    parser.add_argument("--timeout", type=float, default=120, help="Seconds to wait for inclusion (default: 120)")
    parser.add_argument("--poll-interval", type=float, default=2.0, help="Seconds between receipt queries")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = resolve_config(network=args.network, artifact_path=args.artifact)
        client = MintClient.from_config(config, receipt_timeout=args.timeout, poll_interval=args.poll_interval)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    # read after resolve_config so a TOKEN_URI from .env is seen
    token_uri = args.token_uri or os.environ.get("TOKEN_URI")
    if not token_uri:
        print("Configuration error: --token-uri (or TOKEN_URI) is required", file=sys.stderr)
        return EXIT_CONFIG

    recipient = args.recipient or client.address
    try:
        tx_hash = client.mint(recipient, token_uri)
    except TransactionTimeoutError as e:
        print(f"Timed out: {e}", file=sys.stderr)
        if e.tx_hash:
            print(f"Check {client.tx_url(e.tx_hash)} before minting again", file=sys.stderr)
        return EXIT_TIMEOUT
    except ValueError as e:
        print(f"Invalid mint request: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except MinterError as e:
        print(f"Mint failed: {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"NFT Minted! Check it out at: {client.tx_url(tx_hash)}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
