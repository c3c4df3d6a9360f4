"""
Data models for the NFT minter.
"""
from enum import Enum
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from web3 import Web3

from .exceptions import InvalidTransitionError

MINT_FUNCTION = "mintNFT"


def _checksum(value: str, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} must not be empty")
    value = value.strip()
    if not Web3.is_address(value):
        raise ValueError(f"{what} is not a well-formed 20-byte address: {value}")
    # mixed case means an EIP-55 checksum, which must verify
    body = value[2:] if value.lower().startswith("0x") else value
    if body != body.lower() and body != body.upper() and not Web3.is_checksum_address(value):
        raise ValueError(f"{what} has an invalid EIP-55 checksum: {value}")
    return Web3.to_checksum_address(value)


class NetworkSettings(BaseModel):
    """RPC endpoint and chain identifier for one network"""
    model_config = ConfigDict(frozen=True)

    rpc_url: str
    chain_id: int
    name: Optional[str] = None
    explorer_url: Optional[str] = None

    @field_validator("rpc_url")
    @classmethod
    def _rpc_url_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("rpc_url must not be empty")
        return value.strip()

    @field_validator("chain_id")
    @classmethod
    def _chain_id_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("chain_id must be a positive integer")
        return value


class ContractHandle(BaseModel):
    """Deployed contract address plus its ABI"""
    model_config = ConfigDict(frozen=True)

    address: str
    abi: List[Dict[str, Any]]

    @field_validator("address")
    @classmethod
    def _address_checksum(cls, value: str) -> str:
        return _checksum(value, "contract address")

    @field_validator("abi")
    @classmethod
    def _abi_has_mint(cls, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        names = [entry.get("name") for entry in value if entry.get("type") == "function"]
        if MINT_FUNCTION not in names:
            raise ValueError(f"ABI does not define a {MINT_FUNCTION} function")
        return value

    @property
    def function_names(self) -> List[str]:
        return [entry["name"] for entry in self.abi if entry.get("type") == "function"]


class MintRequest(BaseModel):
    """Arguments of a single mintNFT call, in call order"""
    model_config = ConfigDict(frozen=True)

    recipient: str
    token_uri: str

    @field_validator("recipient")
    @classmethod
    def _recipient_checksum(cls, value: str) -> str:
        return _checksum(value, "recipient")

    @field_validator("token_uri")
    @classmethod
    def _token_uri_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("token_uri must not be empty")
        # passed through to the contract unchanged
        return value

    def as_args(self) -> tuple:
        return (self.recipient, self.token_uri)


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class TxStatus(str, Enum):
    SUBMITTED = "submitted"
    INCLUDED = "included"
    FAILED = "failed"


class PendingTransaction(BaseModel):
    """
    A broadcast mint transaction.

    Starts as SUBMITTED and moves exactly once to INCLUDED or FAILED.
    Both end states are terminal.
    """
    tx_hash: str
    nonce: int
    request: MintRequest
    status: TxStatus = TxStatus.SUBMITTED
    receipt: Optional[TxReceipt] = None
    error: Optional[str] = None
    # from/to/data/value of the broadcast call, replayed to recover a revert reason
    call: Optional[Dict[str, Any]] = Field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status is not TxStatus.SUBMITTED

    def _check_open(self, target: TxStatus) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Cannot move transaction {self.tx_hash} from {self.status.value} to {target.value}",
                tx_hash=self.tx_hash,
            )

    def mark_included(self, receipt: TxReceipt) -> None:
        self._check_open(TxStatus.INCLUDED)
        self.receipt = receipt
        self.status = TxStatus.INCLUDED

    def mark_failed(self, error: str, receipt: Optional[TxReceipt] = None) -> None:
        self._check_open(TxStatus.FAILED)
        self.receipt = receipt
        self.error = error
        self.status = TxStatus.FAILED


class MinterConfig(BaseModel):
    """Fully resolved configuration handed to the mint workflow"""
    model_config = ConfigDict(frozen=True)

    network: NetworkSettings
    private_key: SecretStr
    contract: ContractHandle
