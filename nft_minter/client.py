"""
MintClient - submits a mintNFT transaction and waits for it to be mined.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Union

import requests
from web3.exceptions import ContractLogicError
from web3.types import TxReceipt as Web3TxReceipt

from .connection import ChainConnection, node_message
from .exceptions import MinterError, RevertError, SubmissionError
from .models import (
    MINT_FUNCTION,
    ContractHandle,
    MinterConfig,
    MintRequest,
    PendingTransaction,
    TxReceipt,
)
from .signer import LocalSigner, Signer


class MintClient:
    """
    Client that mints one NFT per call.

    The client is handed a resolved configuration and never reads the
    environment itself. It holds one signer and one contract handle, both
    read-only after construction, so sequential ``mint`` calls may share a
    client. Concurrent mints from the same signer are not coordinated.

    Retries are not idempotent: every ``mint`` call broadcasts a new
    transaction with a new nonce, even after a timeout.
    """

    DEFAULT_GAS_LIMIT = 300000
    GAS_BUFFER = 1.1

    def __init__(
        self,
        config: Optional[MinterConfig] = None,
        *,
        connection: Optional[ChainConnection] = None,
        signer: Optional[Signer] = None,
        contract: Optional[ContractHandle] = None,
        receipt_timeout: float = 120,
        poll_interval: float = 2.0,
        gas_limit: Optional[int] = None,
        request_timeout: int = 30,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the MintClient

        Args:
            config: Resolved configuration (optional if connection, signer and
                contract are all provided)
            connection: Chain connection to use instead of one built from config
            signer: Signer to use instead of the config's private key
            contract: Contract handle to use instead of the config's
            receipt_timeout: Ceiling in seconds for waiting on inclusion
            poll_interval: Seconds between receipt queries while waiting
            gas_limit: Fixed gas limit (skips estimation)
            request_timeout: Timeout for each JSON-RPC request in seconds
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If neither config nor all of connection, signer and contract are given
        """
        if config is None and (connection is None or signer is None or contract is None):
            raise ValueError("Either config or connection, signer and contract must be provided")

        self.logger = logger or logging.getLogger(__name__)
        self.connection = connection or ChainConnection(
            config.network, request_timeout=request_timeout, logger=self.logger
        )
        self.signer = signer or LocalSigner(config.private_key.get_secret_value())
        self.contract = contract or config.contract
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.gas_limit = gas_limit
        self.last_transaction: Optional[PendingTransaction] = None

    @classmethod
    def from_config(cls, config: MinterConfig, **kwargs) -> "MintClient":
        return cls(config, **kwargs)

    @property
    def address(self) -> str:
        return self.signer.address

    def mint(self, recipient: str, token_uri: str) -> str:
        """
        Mint one NFT to ``recipient`` and wait until the transaction is mined.

        Args:
            recipient: Address receiving the token
            token_uri: Metadata URI, passed to the contract unchanged

        Returns:
            Transaction hash (0x-prefixed hex)

        Raises:
            ValueError: If recipient or token_uri is empty or malformed
            ChainMismatchError: If the node serves a different chain
            SubmissionError: If the transaction is rejected before inclusion
            RevertError: If the transaction was mined but reverted
            TransactionTimeoutError: If inclusion was not seen in time (ambiguous)
            MinterError: If the node fails while waiting (transaction stays SUBMITTED)
        """
        pending = self.submit(recipient, token_uri)
        self.confirm(pending)
        return pending.tx_hash

    async def mint_async(self, recipient: str, token_uri: str) -> str:
        """Run ``mint`` in a worker thread so the event loop keeps running while it waits."""
        return await asyncio.to_thread(self.mint, recipient, token_uri)

    def submit(self, recipient: str, token_uri: str) -> PendingTransaction:
        """
        Build, sign and broadcast a mint transaction without waiting for it.

        Returns:
            PendingTransaction in SUBMITTED state
        """
        request = MintRequest(recipient=recipient, token_uri=token_uri)

        # 1. Make sure we are talking to the configured chain before signing
        self.connection.assert_chain_id()

        from_address = self.address
        call = getattr(self.connection.contract(self.contract).functions, MINT_FUNCTION)(*request.as_args())

        # 2. Gas and funds
        gas_price = self.connection.gas_price()
        gas = self._estimate_gas(call, from_address)
        self._check_balance(from_address, gas * gas_price)

        # 3. Build, sign, broadcast
        nonce = self.connection.next_nonce(from_address)
        try:
            tx = self._build_transaction(call, from_address, nonce, gas, gas_price)
            raw_tx = self._sign_transaction(tx)
            tx_hash = self.connection.send_raw_transaction(raw_tx)
        except MinterError:
            # nothing reached the node, the nonce can be reused
            self.connection.release_nonce(from_address, nonce)
            raise

        self.logger.info(f"Mint transaction sent: {tx_hash} (nonce {nonce})")
        pending = PendingTransaction(
            tx_hash=tx_hash,
            nonce=nonce,
            request=request,
            call={k: tx[k] for k in ("from", "to", "data", "value") if k in tx},
        )
        self.last_transaction = pending
        return pending

    def confirm(self, pending: PendingTransaction) -> PendingTransaction:
        """
        Wait for a submitted transaction to be mined.

        On timeout, or when the node fails while we wait, the transaction stays
        SUBMITTED and the error is raised; use ``refresh`` later to find out
        what happened.
        """
        if pending.is_terminal:
            return pending

        raw_receipt = self.connection.wait_for_receipt(
            pending.tx_hash, timeout=self.receipt_timeout, poll_latency=self.poll_interval
        )

        self._apply_receipt(pending, self._convert_receipt(raw_receipt))
        return pending

    def refresh(self, pending: PendingTransaction) -> PendingTransaction:
        """
        Re-query a transaction by hash, e.g. after a timeout.

        Leaves the transaction SUBMITTED if the node still has no receipt. If
        the node has dropped it altogether, its nonce is free again and the
        connection re-syncs to the node's pending count.
        """
        if pending.is_terminal:
            return pending
        receipt = self.get_receipt(pending.tx_hash)
        if receipt is not None:
            self._apply_receipt(pending, receipt)
        elif not self.connection.is_known(pending.tx_hash):
            self.logger.warning(f"Transaction {pending.tx_hash} (nonce {pending.nonce}) is unknown to the node")
            self.connection.resync_nonce(self.address)
        return pending

    def get_receipt(self, tx_hash: Union[bytes, str]) -> Optional[TxReceipt]:
        """Fetch the receipt for a hash, or None if it is not mined (yet)."""
        raw = self.connection.get_receipt(tx_hash)
        return self._convert_receipt(raw) if raw is not None else None

    def tx_url(self, tx_hash: Union[bytes, str]) -> str:
        return self.connection.tx_url(tx_hash)

    def _apply_receipt(self, pending: PendingTransaction, receipt: TxReceipt) -> None:
        if receipt.succeeded:
            pending.mark_included(receipt)
            self.logger.info(f"Transaction {pending.tx_hash} included in block {receipt.block_number}")
            return

        reason = None
        if pending.call is not None:
            reason = self.connection.revert_reason(pending.call, receipt.block_number)
        pending.mark_failed(reason or "execution reverted", receipt)
        self.logger.error(f"Transaction {pending.tx_hash} reverted: {reason or 'no reason given'}")
        raise RevertError(
            f"Mint transaction {pending.tx_hash} reverted" + (f": {reason}" if reason else ""),
            tx_hash=pending.tx_hash,
            reason=reason,
            receipt=receipt,
        )

    def _estimate_gas(self, call: Any, from_address: str) -> int:
        if self.gas_limit is not None:
            return self.gas_limit

        try:
            estimate = call.estimate_gas({"from": from_address})
        except ContractLogicError as e:
            msg = node_message(e)
            self.logger.error(f"Mint call would revert: {msg}")
            raise SubmissionError(f"Mint call would revert: {msg}", node_message=msg)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Gas estimation failed, node unreachable: {e}")
            raise SubmissionError(f"Gas estimation failed, node unreachable: {e}", node_message=str(e))
        except Exception as e:
            msg = node_message(e)
            if "insufficient funds" in msg.lower():
                raise SubmissionError(f"Insufficient funds: {msg}", node_message=msg)
            # Fallback to default gas if estimation fails
            self.logger.warning(f"Gas estimation failed, using default: {self.DEFAULT_GAS_LIMIT}. Error: {msg}")
            return self.DEFAULT_GAS_LIMIT

        gas = int(estimate * self.GAS_BUFFER)
        self.logger.debug(f"Estimated gas: {estimate}, using {gas}")
        return gas

    def _check_balance(self, address: str, required_wei: int) -> None:
        balance = self.connection.get_balance(address)
        if balance < required_wei:
            self.logger.error(f"Insufficient funds for {address}: balance {balance} wei, need {required_wei} wei")
            raise SubmissionError(
                f"Insufficient funds for gas: balance {balance} wei, need {required_wei} wei",
                node_message="insufficient funds for gas * price + value",
            )

    def _build_transaction(self, call: Any, from_address: str, nonce: int, gas: int, gas_price: int) -> Dict[str, Any]:
        tx_params = {
            "from": from_address,
            "nonce": nonce,
            "gas": gas,
            "gasPrice": gas_price,
            "chainId": self.connection.chain_id,
        }
        try:
            tx = call.build_transaction(tx_params)
        except Exception as e:
            self.logger.error(f"Failed to build transaction: {e}")
            raise SubmissionError(f"Failed to build transaction: {e}", node_message=node_message(e))
        self.logger.debug(f"Built {MINT_FUNCTION} transaction: nonce={nonce} gas={gas} gasPrice={gas_price}")
        return tx

    def _sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        """
        Sign with the configured signer and return the raw transaction bytes.

        Accepts signed objects exposing ``raw_transaction`` or the older
        ``rawTransaction`` attribute.
        """
        try:
            signed_tx = self.signer.sign_transaction(tx)
        except Exception as e:
            self.logger.error(f"Transaction signing failed: {e}")
            raise SubmissionError(f"Failed to sign transaction: {e}")

        raw_tx = getattr(signed_tx, "raw_transaction", None)
        if raw_tx is None:
            raw_tx = getattr(signed_tx, "rawTransaction", None)
        if not isinstance(raw_tx, (bytes, bytearray)):
            self.logger.error(f"Signer returned {type(signed_tx).__name__} without raw transaction bytes")
            raise SubmissionError(
                f"Failed to sign transaction: signer returned {type(signed_tx).__name__} without raw transaction bytes"
            )
        return bytes(raw_tx)

    def _convert_receipt(self, web3_receipt: Web3TxReceipt) -> TxReceipt:
        """
        Convert Web3 receipt to our TxReceipt model
        """
        receipt_dict = dict(web3_receipt)

        # Convert bytes to hex strings
        for key, value in list(receipt_dict.items()):
            if isinstance(value, (bytes, bytearray)):
                receipt_dict[key] = "0x" + bytes(value).hex()
        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs") or []]

        return TxReceipt.model_validate(receipt_dict)
