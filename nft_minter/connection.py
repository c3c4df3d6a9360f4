"""
ChainConnection - JSON-RPC access to one EVM chain.
"""
import logging
import threading
import urllib.parse
from typing import Any, Dict, Optional, Union

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from .exceptions import (
    ChainMismatchError,
    ConfigurationError,
    MinterError,
    SubmissionError,
    TransactionTimeoutError,
)
from .models import ContractHandle, NetworkSettings

# Node error fragments that mean the signed chain ID was not accepted.
# An EIP-155 signature for another chain recovers to a different sender.
CHAIN_REJECTION_MARKERS = ("chain id", "chainid", "chain-id", "invalid sender")

EXPLORERS = {
    1: "https://etherscan.io",
    11155111: "https://sepolia.etherscan.io",
    5000: "https://explorer.mantle.xyz",
    5001: "https://explorer.testnet.mantle.xyz",
    5003: "https://explorer.sepolia.mantle.xyz",
}


def to_hex_hash(value: Union[bytes, str]) -> str:
    """Normalize a transaction hash to lowercase 0x-prefixed hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    value = value.lower()
    return value if value.startswith("0x") else "0x" + value


def node_message(error: Exception) -> str:
    """Extract the node's error text from a web3 / JSON-RPC exception."""
    for arg in getattr(error, "args", ()):
        if isinstance(arg, dict) and "message" in arg:
            return str(arg["message"])
    rpc_response = getattr(error, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        return str(rpc_response["error"].get("message", error))
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


class ChainConnection:
    """
    Connection to a single chain through a JSON-RPC endpoint.

    Construction does not contact the node. The configured chain ID is
    checked against the node by ``assert_chain_id``.

    Nonce assignment is centralized here. Sequential mints from one process
    get distinct, gap-free nonces. Concurrent use from several processes with
    the same key is not coordinated.

    A nonce handed out for a transaction the node later drops stays assigned,
    so following mints would queue behind the gap. ``resync_nonce`` forgets
    local assignments and falls back to the node's pending count.
    """

    def __init__(
        self,
        network: NetworkSettings,
        request_timeout: int = 30,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the connection

        Args:
            network: RPC URL and expected chain ID
            request_timeout: Timeout for each JSON-RPC request in seconds
            logger: Optional logger instance

        Raises:
            ConfigurationError: If the RPC URL is not https (unless localhost/127.0.0.1)
        """
        parsed = urllib.parse.urlparse(network.rpc_url)
        host = parsed.hostname or ""
        is_local = host in ("localhost", "127.0.0.1")
        if parsed.scheme != "https" and not is_local:
            raise ConfigurationError(
                f"rpcUrl must use https:// (got: {parsed.scheme}://)", field="rpcUrl"
            )

        self.network = network
        self.logger = logger or logging.getLogger(__name__)
        self.w3 = Web3(
            Web3.HTTPProvider(
                network.rpc_url,
                request_kwargs={"timeout": request_timeout},
                exception_retry_configuration=None,
            )
        )
        self._verified_chain_id: Optional[int] = None
        self._nonce_lock = threading.Lock()
        self._assigned_nonces: Dict[str, int] = {}

    @property
    def chain_id(self) -> int:
        return self.network.chain_id

    @property
    def rpc_url(self) -> str:
        return self.network.rpc_url

    def remote_chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    def assert_chain_id(self) -> None:
        """
        Check that the node serves the configured chain.

        Raises:
            ChainMismatchError: If the node reports a different chain ID
            SubmissionError: If the node cannot be queried
        """
        if self._verified_chain_id is not None:
            return

        try:
            actual = self.remote_chain_id()
        except Exception as e:
            self.logger.error(f"Failed to validate chain ID against {self.rpc_url}: {e}")
            raise SubmissionError(
                f"Failed to validate chain ID: node at {self.rpc_url} unreachable: {e}",
                node_message=node_message(e),
            )

        if actual != self.chain_id:
            self.logger.error(f"Chain ID mismatch: configured {self.chain_id}, node reports {actual}")
            raise ChainMismatchError(
                f"Chain ID mismatch: configured {self.chain_id}, node at {self.rpc_url} reports {actual}",
                expected=self.chain_id,
                actual=actual,
            )
        self._verified_chain_id = actual

    def _call(self, what: str, fn, *args) -> Any:
        try:
            return fn(*args)
        except Exception as e:
            msg = node_message(e)
            self.logger.error(f"{what} failed: {msg}")
            raise SubmissionError(f"{what} failed: {msg}", node_message=msg)

    def gas_price(self) -> int:
        return self._call("Gas price query", lambda: self.w3.eth.gas_price)

    def get_balance(self, address: str) -> int:
        return self._call("Balance query", self.w3.eth.get_balance, address)

    def next_nonce(self, address: str) -> int:
        """
        Assign the next nonce for ``address``.

        Uses the node's pending transaction count but never returns a nonce
        already handed out by this connection.
        """
        with self._nonce_lock:
            pending = self._call("Nonce query", self.w3.eth.get_transaction_count, address, "pending")
            last = self._assigned_nonces.get(address)
            nonce = pending if last is None else max(pending, last + 1)
            self._assigned_nonces[address] = nonce
            self.logger.debug(f"Assigned nonce {nonce} to {address} (node pending count {pending})")
            return nonce

    def release_nonce(self, address: str, nonce: int) -> None:
        """Give back a nonce whose transaction never reached the node."""
        with self._nonce_lock:
            if self._assigned_nonces.get(address) != nonce:
                return
            if nonce == 0:
                del self._assigned_nonces[address]
            else:
                self._assigned_nonces[address] = nonce - 1

    def resync_nonce(self, address: str) -> None:
        """Forget nonces assigned to ``address``; the next one comes from the node."""
        with self._nonce_lock:
            if self._assigned_nonces.pop(address, None) is not None:
                self.logger.info(f"Re-syncing nonce for {address} with the node")

    def contract(self, handle: ContractHandle):
        return self.w3.eth.contract(address=handle.address, abi=handle.abi)

    def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Transaction hash as 0x-prefixed hex

        Raises:
            ChainMismatchError: If the node rejects the transaction's chain ID
            SubmissionError: If the node rejects the transaction or is unreachable
        """
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            msg = node_message(e)
            if any(marker in msg.lower() for marker in CHAIN_REJECTION_MARKERS):
                self.logger.error(f"Node rejected transaction for chain {self.chain_id}: {msg}")
                raise ChainMismatchError(
                    f"Node rejected transaction signed for chain ID {self.chain_id}: {msg}",
                    expected=self.chain_id,
                )
            self.logger.error(f"Failed to send transaction: {msg}")
            raise SubmissionError(f"Failed to send transaction: {msg}", node_message=msg)
        return to_hex_hash(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float, poll_latency: float) -> Any:
        """
        Wait until the transaction is mined.

        web3 sleeps ``poll_latency`` seconds between receipt queries.

        Raises:
            TransactionTimeoutError: If no receipt appears within ``timeout``
            MinterError: If the node fails while waiting
        """
        try:
            return self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=poll_latency
            )
        except TimeExhausted:
            self.logger.warning(f"Transaction {tx_hash} not mined within {timeout}s")
            raise TransactionTimeoutError(
                f"Transaction {tx_hash} was not included within {timeout}s; it may still be "
                f"included later, re-query the hash before resubmitting",
                tx_hash=tx_hash,
                timeout=timeout,
            )
        except Exception as e:
            msg = node_message(e)
            self.logger.error(f"Error while waiting for {tx_hash}: {msg}")
            raise MinterError(f"Error while waiting for transaction {tx_hash}: {msg}", tx_hash=tx_hash)

    def get_receipt(self, tx_hash: str) -> Optional[Any]:
        """Fetch a receipt by hash, or None if the transaction is not mined yet."""
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            msg = node_message(e)
            self.logger.error(f"Receipt query for {tx_hash} failed: {msg}")
            raise MinterError(f"Receipt query for transaction {tx_hash} failed: {msg}", tx_hash=tx_hash)

    def is_known(self, tx_hash: str) -> bool:
        """Whether the node still knows the transaction, mined or pending."""
        try:
            self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return False
        except Exception as e:
            msg = node_message(e)
            self.logger.error(f"Transaction query for {tx_hash} failed: {msg}")
            raise MinterError(f"Transaction query for {tx_hash} failed: {msg}", tx_hash=tx_hash)
        return True

    def revert_reason(self, tx: Dict[str, Any], block_number: int) -> Optional[str]:
        """Replay a reverted call at its block to recover the revert reason."""
        call = {k: tx[k] for k in ("from", "to", "data", "value") if k in tx}
        try:
            self.w3.eth.call(call, block_number)
        except ContractLogicError as e:
            return node_message(e)
        except Exception as e:
            self.logger.debug(f"Could not replay call for revert reason: {e}")
        return None

    def tx_url(self, tx_hash: Union[bytes, str]) -> str:
        """Block explorer link for a transaction."""
        base = self.network.explorer_url or EXPLORERS.get(self.chain_id, "https://etherscan.io")
        return f"{base.rstrip('/')}/tx/{to_hex_hash(tx_hash)}"
