"""Interfaces between the dispatch controller and a chain node."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from ethereum_rpc import Address, Amount, TxHash

from ._catalog import FunctionDescriptor
from ._chains import ChainDescriptor
from ._signer import Signer


class TransportFailure(Exception):
    """Raised by transport sessions when a remote operation fails."""


class Reverted(TransportFailure):
    """Raised when the node reports that the call would revert."""

    reason: None | str
    """The decoded revert reason, if the node supplied one."""

    def __init__(self, message: str, reason: None | str = None):
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class TransportConfig:
    """Where to send requests."""

    chain: ChainDescriptor
    rpc_url: str


@dataclass(frozen=True)
class CallRequest:
    """A contract function call with already coerced arguments."""

    address: Address
    function: FunctionDescriptor
    args: Sequence[Any]

    @property
    def function_name(self) -> str:
        return self.function.name


@dataclass(frozen=True)
class PreparedTransaction:
    """
    The outcome of a successful simulation:
    a request that can be signed and submitted as is.
    """

    request: CallRequest
    account: Address
    chain_id: int
    gas: int
    max_fee_per_gas: Amount
    max_priority_fee_per_gas: Amount
    nonce: int
    value: Amount = field(default_factory=lambda: Amount(0))
    result: Any = None
    """The return value the function produced during the simulation."""


class Transport(ABC):
    """The base class for chain transports."""

    @abstractmethod
    @asynccontextmanager
    async def session(self, config: TransportConfig) -> AsyncIterator["TransportSession"]:
        """Opens a session to the node described by ``config``."""
        # mypy does not work with abstract generators correctly.
        # See https://github.com/python/mypy/issues/5070
        yield  # type: ignore[misc]


class TransportSession(ABC):
    """
    The read, simulate and write primitives.

    The methods of this class raise :py:class:`TransportFailure` on failure.
    """

    @abstractmethod
    async def call(self, request: CallRequest) -> Any:
        """Performs a stateless call and returns the decoded return value."""

    @abstractmethod
    async def simulate(self, request: CallRequest, account: Address) -> PreparedTransaction:
        """Dry-runs a state-mutating call on behalf of ``account`` without submitting it."""

    @abstractmethod
    async def submit(self, prepared: PreparedTransaction, signer: Signer) -> TxHash:
        """Signs and submits a simulated request, returning the transaction hash."""

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: TxHash, poll_latency: float) -> Any:
        """Waits until the transaction is processed and returns its receipt."""
