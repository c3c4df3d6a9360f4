"""
Signer backed by a private key held in process memory.
"""
from typing import Any, Dict

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..exceptions import ConfigurationError


class LocalSigner:
    """
    Sign transactions with an in-memory private key.

    The key is never persisted and never appears in ``repr`` or logs.
    """

    def __init__(self, private_key: str):
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except Exception as e:
            # the error text may echo the key, keep it out of the message
            raise ConfigurationError(f"privateKey is not a valid secp256k1 key ({type(e).__name__})", field="privateKey")

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        return self._account.sign_transaction(transaction_dict)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
