"""
NFT minter - mint a single NFT through a deployed contract's mintNFT function.
"""
from .version import __version__
from .client import MintClient
from .config import NetworkConfig, resolve_config
from .connection import ChainConnection
from .models import (
    ContractHandle,
    MinterConfig,
    MintRequest,
    NetworkSettings,
    PendingTransaction,
    TxReceipt,
    TxStatus,
)
from .signer import LocalSigner, Signer
from .exceptions import (
    MinterError,
    ConfigurationError,
    ChainMismatchError,
    SubmissionError,
    RevertError,
    TransactionTimeoutError,
    InvalidTransitionError,
)

__all__ = [
    "MintClient",
    "ChainConnection",
    "NetworkConfig",
    "resolve_config",
    "ContractHandle",
    "MinterConfig",
    "MintRequest",
    "NetworkSettings",
    "PendingTransaction",
    "TxReceipt",
    "TxStatus",
    "LocalSigner",
    "Signer",
    "MinterError",
    "ConfigurationError",
    "ChainMismatchError",
    "SubmissionError",
    "RevertError",
    "TransactionTimeoutError",
    "InvalidTransitionError",
    "__version__",
]
