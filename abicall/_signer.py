from abc import ABC, abstractmethod
from collections.abc import Iterable
from functools import cached_property

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_account.types import TransactionDictType
from ethereum_rpc import Address


class Signer(ABC):
    """The base class for transaction signers."""

    @property
    @abstractmethod
    def address(self) -> Address:
        """Returns the address corresponding to the signer's private key."""

    @abstractmethod
    def sign_transaction(self, tx_dict: TransactionDictType) -> bytes:
        """
        Signs the given transaction and returns the RLP-packed transaction
        along with the signature.
        """


class AccountSigner(Signer):
    """A signer wrapper for ``LocalAccount`` from ``eth-account`` package."""

    def __init__(self, account: LocalAccount):
        self._account = account

    @classmethod
    def from_key(cls, private_key: str | bytes) -> "AccountSigner":
        """Creates a signer from a hex-encoded or raw private key."""
        return cls(Account.from_key(private_key))

    @staticmethod
    def create() -> "AccountSigner":
        """Creates an account with a random private key."""
        return AccountSigner(Account.create())

    @property
    def account(self) -> LocalAccount:
        """Returns the account object used to create this signer."""
        return self._account

    @cached_property
    def address(self) -> Address:
        return Address.from_hex(self._account.address)

    def sign_transaction(self, tx_dict: TransactionDictType) -> bytes:
        return bytes(self._account.sign_transaction(tx_dict).raw_transaction)


class AccountSource(ABC):
    """
    The source of connected accounts.
    State-mutating functions can only be dispatched when at least one account is connected.
    """

    @abstractmethod
    def accounts(self) -> list[Address]:
        """Returns the currently connected accounts, the first one being the active account."""

    @abstractmethod
    def signer(self, address: Address) -> Signer:
        """Returns the signer for one of the connected accounts."""

    @property
    def active_account(self) -> None | Address:
        """The account used for simulations and transactions, if any is connected."""
        accounts = self.accounts()
        return accounts[0] if accounts else None


class LocalAccounts(AccountSource):
    """An account source holding signers in memory."""

    def __init__(self, signers: Iterable[Signer] = ()):
        self._signers = {signer.address: signer for signer in signers}

    def connect(self, signer: Signer) -> None:
        """Adds a signer. The first connected signer becomes the active account."""
        self._signers[signer.address] = signer

    def disconnect(self, address: Address) -> None:
        self._signers.pop(address, None)

    def accounts(self) -> list[Address]:
        return list(self._signers)

    def signer(self, address: Address) -> Signer:
        try:
            return self._signers[address]
        except KeyError:
            raise KeyError(f"No signer is connected for {address}") from None
