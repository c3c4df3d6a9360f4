"""
Tests for the ChainConnection class.
"""
import threading
import pytest
from unittest.mock import MagicMock, PropertyMock

from web3.exceptions import TimeExhausted

from nft_minter.connection import ChainConnection, node_message, to_hex_hash
from nft_minter.exceptions import (
    ChainMismatchError,
    ConfigurationError,
    MinterError,
    SubmissionError,
    TransactionTimeoutError,
)
from nft_minter.models import NetworkSettings
from tests.test_helpers import TEST_RPC_URL, TEST_CHAIN_ID

ADDRESS = "0x1234567890123456789012345678901234567890"


@pytest.mark.parametrize(
    "configured, reported, expected_result",
    [
        (5003, 5003, "pass"),
        (5003, 5001, "error"),
        (5001, 1, "error"),
    ]
)
def test_assert_chain_id(configured, reported, expected_result):
    """Test assert_chain_id with different chain ID scenarios."""
    conn = ChainConnection(NetworkSettings(rpc_url=TEST_RPC_URL, chain_id=configured))
    mock_w3 = MagicMock()
    mock_w3.eth.chain_id = reported
    conn.w3 = mock_w3

    if expected_result == "pass":
        conn.assert_chain_id()
    else:
        with pytest.raises(ChainMismatchError, match="Chain ID mismatch") as exc_info:
            conn.assert_chain_id()
        assert exc_info.value.expected == configured
        assert exc_info.value.actual == reported


def test_assert_chain_id_w3_error():
    """Test assert_chain_id when web3 call raises an exception."""
    conn = ChainConnection(NetworkSettings(rpc_url=TEST_RPC_URL, chain_id=TEST_CHAIN_ID))
    mock_w3 = MagicMock()
    type(mock_w3.eth).chain_id = PropertyMock(side_effect=Exception("RPC error"))
    conn.w3 = mock_w3

    with pytest.raises(SubmissionError, match="Failed to validate chain ID"):
        conn.assert_chain_id()


def test_assert_chain_id_cached(connection, mock_w3):
    connection.assert_chain_id()
    type(mock_w3.eth).chain_id = PropertyMock(side_effect=Exception("should not be queried again"))
    connection.assert_chain_id()


def test_rejects_non_https_remote():
    with pytest.raises(ConfigurationError) as exc_info:
        ChainConnection(NetworkSettings(rpc_url="http://rpc.example.com", chain_id=1))
    assert exc_info.value.field == "rpcUrl"


@pytest.mark.parametrize("url", ["http://localhost:8545", "http://127.0.0.1:8545"])
def test_allows_local_http(url):
    conn = ChainConnection(NetworkSettings(rpc_url=url, chain_id=31337))
    assert conn.rpc_url == url


def test_next_nonce_uses_pending_count(connection, mock_w3):
    assert connection.next_nonce(ADDRESS) == 7
    mock_w3.eth.get_transaction_count.assert_called_with(ADDRESS, "pending")


def test_next_nonce_never_repeats(connection, chain_state):
    nonces = [connection.next_nonce(ADDRESS) for _ in range(3)]
    assert nonces == [7, 8, 9]

    chain_state["pending_count"] = 5  # node dropped pending transactions
    assert connection.next_nonce(ADDRESS) == 10


def test_next_nonce_per_address(connection):
    assert connection.next_nonce(ADDRESS) == 7
    assert connection.next_nonce("0x2345678901234567890123456789012345678901") == 7


def test_next_nonce_thread_safe(connection):
    nonces = []
    lock = threading.Lock()

    def worker():
        n = connection.next_nonce(ADDRESS)
        with lock:
            nonces.append(n)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(nonces) == list(range(7, 17))


def test_release_nonce_only_latest(connection):
    first = connection.next_nonce(ADDRESS)
    second = connection.next_nonce(ADDRESS)

    # releasing an older nonce would open a gap, so it is ignored
    connection.release_nonce(ADDRESS, first)
    assert connection.next_nonce(ADDRESS) == second + 1


def test_release_nonce_zero(connection, chain_state):
    chain_state["pending_count"] = 0
    nonce = connection.next_nonce(ADDRESS)
    connection.release_nonce(ADDRESS, nonce)
    assert connection.next_nonce(ADDRESS) == 0


def test_nonce_query_failure(connection, mock_w3):
    mock_w3.eth.get_transaction_count.side_effect = ConnectionError("refused")
    with pytest.raises(SubmissionError, match="Nonce query failed"):
        connection.next_nonce(ADDRESS)


def test_gas_price_and_balance(connection):
    assert connection.gas_price() == 1_000_000_000
    assert connection.get_balance(ADDRESS) == 10 ** 18


def test_send_raw_transaction_returns_hex(connection):
    tx_hash = connection.send_raw_transaction(b"\x01\x02")
    assert tx_hash.startswith("0x")
    assert len(tx_hash) == 66
    assert tx_hash == tx_hash.lower()


@pytest.mark.parametrize(
    "message, expected",
    [
        ("invalid chain id for signer", ChainMismatchError),
        ("invalid sender", ChainMismatchError),
        ("nonce too low", SubmissionError),
        ("insufficient funds for gas * price + value", SubmissionError),
    ]
)
def test_send_raw_transaction_rejections(connection, chain_state, message, expected):
    chain_state["send_error"] = ValueError({"code": -32000, "message": message})
    with pytest.raises(expected) as exc_info:
        connection.send_raw_transaction(b"\x01")
    assert message in str(exc_info.value)


def test_wait_for_receipt_timeout(connection, mock_w3):
    mock_w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("too slow")
    with pytest.raises(TransactionTimeoutError) as exc_info:
        connection.wait_for_receipt("0x" + "00" * 32, timeout=5, poll_latency=1)
    assert exc_info.value.tx_hash == "0x" + "00" * 32
    assert exc_info.value.timeout == 5
    mock_w3.eth.wait_for_transaction_receipt.assert_called_once_with("0x" + "00" * 32, timeout=5, poll_latency=1)


def test_get_receipt_not_found(connection):
    assert connection.get_receipt("0x" + "11" * 32) is None


def test_node_message_variants():
    assert node_message(ValueError({"code": -32000, "message": "nonce too low"})) == "nonce too low"
    assert node_message(RuntimeError("plain")) == "plain"

    class RPCError(Exception):
        rpc_response = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "already known"}}

    assert node_message(RPCError("wrapped")) == "already known"


@pytest.mark.parametrize(
    "value, expected",
    [
        (bytes.fromhex("1234567890abcdef" * 4), "0x" + "1234567890abcdef" * 4),
        ("1234567890ABCDEF" * 4, "0x" + "1234567890abcdef" * 4),
        ("0x" + "1234567890abcdef" * 4, "0x" + "1234567890abcdef" * 4),
    ]
)
def test_to_hex_hash(value, expected):
    assert to_hex_hash(value) == expected


@pytest.mark.parametrize(
    "chain_id, explorer, expected_url",
    [
        (5001, None, "https://explorer.testnet.mantle.xyz/tx/"),
        (5003, None, "https://explorer.sepolia.mantle.xyz/tx/"),
        (11155111, None, "https://sepolia.etherscan.io/tx/"),
        (424242, None, "https://etherscan.io/tx/"),
        (5003, "https://custom.example/", "https://custom.example/tx/"),
    ]
)
def test_tx_url(chain_id, explorer, expected_url):
    conn = ChainConnection(NetworkSettings(rpc_url=TEST_RPC_URL, chain_id=chain_id, explorer_url=explorer))
    tx_hash = "0x" + "ab" * 32
    assert conn.tx_url(tx_hash) == expected_url + tx_hash


def test_resync_nonce_falls_back_to_node(connection):
    assert connection.next_nonce(ADDRESS) == 7
    assert connection.next_nonce(ADDRESS) == 8

    connection.resync_nonce(ADDRESS)
    assert connection.next_nonce(ADDRESS) == 7


def test_resync_nonce_unknown_address(connection):
    connection.resync_nonce(ADDRESS)
    assert connection.next_nonce(ADDRESS) == 7


def test_is_known(connection, chain_state):
    tx_hash = connection.send_raw_transaction(b"\x01\x02")
    assert connection.is_known(tx_hash)
    assert not connection.is_known("0x" + "11" * 32)

    chain_state["dropped"] = True
    assert not connection.is_known(tx_hash)


def test_get_receipt_node_failure(connection, mock_w3):
    mock_w3.eth.get_transaction_receipt.side_effect = ConnectionError("reset")
    with pytest.raises(MinterError, match="Receipt query") as exc_info:
        connection.get_receipt("0x" + "11" * 32)
    assert exc_info.value.tx_hash == "0x" + "11" * 32
