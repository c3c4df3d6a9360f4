"""
Exceptions for the NFT minter.
"""
from typing import Any, Optional


class MinterError(Exception):
    """Base exception for all minter errors."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class ConfigurationError(MinterError):
    """Raised when required setup is missing or invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ChainMismatchError(MinterError):
    """Raised when the configured chain ID does not match the remote node."""

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        tx_hash: Optional[str] = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(message, tx_hash=tx_hash)


class SubmissionError(MinterError):
    """Raised when a transaction is rejected before it is included in a block."""

    def __init__(
        self,
        message: str,
        node_message: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        self.node_message = node_message
        super().__init__(message, tx_hash=tx_hash)


class RevertError(MinterError):
    """Raised when a transaction was included but contract execution reverted."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        reason: Optional[str] = None,
        receipt: Optional[Any] = None,
    ):
        self.reason = reason
        self.receipt = receipt
        super().__init__(message, tx_hash=tx_hash)


class TransactionTimeoutError(MinterError, TimeoutError):
    """
    Raised when inclusion was not observed within the wait ceiling.

    The outcome is ambiguous: the transaction was broadcast and may still be
    included later. Re-query by ``tx_hash`` before resubmitting.
    """

    ambiguous = True

    def __init__(self, message: str, tx_hash: Optional[str] = None, timeout: Optional[float] = None):
        self.timeout = timeout
        super().__init__(message, tx_hash=tx_hash)


class InvalidTransitionError(MinterError):
    """Raised on an illegal PendingTransaction state change."""
    pass
