from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ethereum_rpc import TxHash

from ._errors import InteractError


@dataclass(frozen=True)
class InvocationResult:
    """The outcome of a completed invocation."""

    function_name: str
    """The function key the invocation was dispatched for."""

    args: Sequence[Any]
    """The coerced arguments."""

    outcome: Any
    """
    The decoded return value for reads,
    the :py:class:`~abicall.PreparedTransaction` for simulations,
    or the transaction receipt for writes.
    """

    note: str
    is_simulation: bool = False
    transaction_hash: None | TxHash = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class DispatchFailure:
    """The most recent failed invocation."""

    function_name: str
    error: InteractError
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def message(self) -> str:
        return str(self.error)


class InvocationStore(Mapping[str, InvocationResult]):
    """
    Holds the latest result per function key and the last error, for the current session only.
    Writing a slot replaces whatever was there (the last invocation to finish wins).
    """

    def __init__(self) -> None:
        self._results: dict[str, InvocationResult] = {}
        self.last_error: None | DispatchFailure = None

    def put(self, result: InvocationResult) -> None:
        self._results[result.function_name] = result

    def __getitem__(self, function_key: str) -> InvocationResult:
        return self._results[function_key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def clear(self) -> None:
        """Drops all results and the last error."""
        self._results.clear()
        self.last_error = None
