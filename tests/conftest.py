"""
Pytest fixtures for the NFT minter tests.
"""
import hashlib
import json
import pytest
from unittest.mock import MagicMock, PropertyMock

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from nft_minter.connection import ChainConnection
from nft_minter.models import NetworkSettings
from tests.test_helpers import (
    create_test_client,
    MINT_ABI,
    TEST_RPC_URL,
    TEST_CHAIN_ID,
    TEST_PRIV_KEY,
    TEST_CONTRACT,
    TEST_RECIPIENT,
    TEST_TOKEN_URI,
)

TEST_GAS_PRICE = 1_000_000_000  # 1 gwei
TEST_GAS_ESTIMATE = 150_000


@pytest.fixture
def chain_state():
    """
    Mutable state of the simulated node.

    Tests flip these values to drive the mock_w3 fixture.
    """
    return {
        "chain_id": TEST_CHAIN_ID,
        "balance": 10 ** 18,
        "pending_count": 7,
        "mined": True,
        "dropped": False,
        "status": 1,
        "estimate_error": None,
        "send_error": None,
        "revert_reason": "execution reverted: Max supply reached",
        "mint_args": [],
        "built": [],
        "sent": [],
        "receipts": {},
    }


@pytest.fixture
def mock_w3(chain_state):
    """
    Create a mock Web3 instance that models the node behind an RPC endpoint.
    """
    eth = MagicMock()
    type(eth).chain_id = PropertyMock(side_effect=lambda: chain_state["chain_id"])
    eth.gas_price = TEST_GAS_PRICE
    eth.get_balance = MagicMock(side_effect=lambda address: chain_state["balance"])
    eth.get_transaction_count = MagicMock(
        side_effect=lambda address, block_identifier="latest": chain_state["pending_count"]
    )

    def send_raw_transaction(raw_tx):
        if chain_state["send_error"] is not None:
            raise chain_state["send_error"]
        tx_hash = Web3.keccak(bytes(raw_tx))
        chain_state["sent"].append(raw_tx)
        chain_state["receipts"][Web3.to_hex(tx_hash)] = {
            "transactionHash": tx_hash,
            "blockNumber": 12345 + len(chain_state["sent"]),
            "blockHash": bytes.fromhex("abcdef1234567890" * 4),
            "status": chain_state["status"],
            "gasUsed": 85000,
            "from": Account.from_key(TEST_PRIV_KEY).address,
            "to": Web3.to_checksum_address(TEST_CONTRACT),
            "logs": [],
        }
        return tx_hash

    eth.send_raw_transaction = MagicMock(side_effect=send_raw_transaction)

    def get_transaction_receipt(tx_hash):
        key = tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)
        if not chain_state["mined"] or key not in chain_state["receipts"]:
            raise TransactionNotFound(f"Transaction with hash: '{key}' not found.")
        return chain_state["receipts"][key]

    eth.get_transaction_receipt = MagicMock(side_effect=get_transaction_receipt)

    def get_transaction(tx_hash):
        key = tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)
        if chain_state["dropped"] or key not in chain_state["receipts"]:
            raise TransactionNotFound(f"Transaction with hash: '{key}' not found.")
        return {"hash": key}

    eth.get_transaction = MagicMock(side_effect=get_transaction)

    def wait_for_receipt(tx_hash, timeout=120, poll_latency=0.1):
        try:
            return get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            raise TimeExhausted(f"Transaction {tx_hash} is not in the chain after {timeout} seconds")

    eth.wait_for_transaction_receipt = MagicMock(side_effect=wait_for_receipt)

    def call(transaction, block_identifier=None):
        raise ContractLogicError(chain_state["revert_reason"])

    eth.call = MagicMock(side_effect=call)

    def contract(address, abi):
        contract_mock = MagicMock()

        def mint_nft(*args):
            chain_state["mint_args"].append(args)
            fn = MagicMock()
            if chain_state["estimate_error"] is not None:
                fn.estimate_gas = MagicMock(side_effect=chain_state["estimate_error"])
            else:
                fn.estimate_gas = MagicMock(return_value=TEST_GAS_ESTIMATE)

            def build_tx(tx_params):
                tx = {
                    **tx_params,
                    "to": address,
                    "value": 0,
                    "data": "0x" + hashlib.sha256(repr(args).encode()).hexdigest(),
                }
                chain_state["built"].append(tx)
                return tx

            fn.build_transaction = MagicMock(side_effect=build_tx)
            return fn

        contract_mock.functions.mintNFT = MagicMock(side_effect=mint_nft)
        return contract_mock

    eth.contract = MagicMock(side_effect=contract)

    mock = MagicMock(spec=Web3)
    mock.eth = eth
    return mock


@pytest.fixture
def connection(mock_w3):
    """ChainConnection whose Web3 instance is the mocked node"""
    conn = ChainConnection(
        NetworkSettings(
            rpc_url=TEST_RPC_URL,
            chain_id=TEST_CHAIN_ID,
            name="mantle-sepolia",
            explorer_url="https://explorer.sepolia.mantle.xyz",
        )
    )
    conn.w3 = mock_w3
    return conn


@pytest.fixture
def client(connection):
    return create_test_client(connection=connection)


@pytest.fixture
def mock_account():
    """Create a deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def artifact_file(tmp_path):
    """Hardhat-style artifact holding the contract ABI"""
    path = tmp_path / "artifacts" / "contracts" / "MyNFT.sol" / "MyNFT.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"contractName": "MyNFT", "abi": MINT_ABI, "bytecode": "0x"}))
    return path


@pytest.fixture
def base_env(artifact_file):
    """Complete environment for resolve_config"""
    return {
        "RPC_URL": TEST_RPC_URL,
        "CHAIN_ID": str(TEST_CHAIN_ID),
        "PRIVATE_KEY": TEST_PRIV_KEY,
        "CONTRACT_ADDRESS": TEST_CONTRACT,
        "CONTRACT_ARTIFACT": str(artifact_file),
    }
