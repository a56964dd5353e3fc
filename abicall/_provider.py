from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass

from ethereum_rpc import RPCError

RPC_JSON = None | bool | int | float | str | Sequence["RPC_JSON"] | Mapping[str, "RPC_JSON"]
"""RPC requests and responses serializable to JSON."""


class InvalidResponse(Exception):
    """Raised when the remote server's response is not of an expected format."""


class Unreachable(Exception):
    """Raised when there is a problem connecting to the provider."""


class ProtocolError(ABC, Exception):
    """
    A protocol-specific error, indicating that the provider returned an error status
    with no additional information allowing to categorize the error further.
    """


@dataclass
class ProviderError(Exception):
    """Describes an error on the provider's side."""

    error: RPCError | Unreachable | InvalidResponse | ProtocolError
    """The specific error."""

    def __str__(self) -> str:
        return f"Provider error: {self.error}"


class Provider(ABC):
    """The base class for JSON RPC providers."""

    @abstractmethod
    @asynccontextmanager
    async def session(self) -> AsyncIterator["ProviderSession"]:
        """
        Opens a session to the provider
        (allowing the backend to perform multiple operations faster).
        """
        # mypy does not work with abstract generators correctly.
        # See https://github.com/python/mypy/issues/5070
        yield  # type: ignore[misc]


class ProviderSession(ABC):
    """
    The base class for provider sessions.

    The methods of this class may raise :py:class:`ProviderError`
    indicating a problem on the provider's side.
    """

    @abstractmethod
    async def rpc(self, method: str, *args: RPC_JSON) -> RPC_JSON:
        """Calls the given RPC method with the already json-ified arguments."""
        ...
