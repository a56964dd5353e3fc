"""The state machine taking a function call from raw inputs to a stored result."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import anyio
from ethereum_rpc import Address, TxHash

from ._catalog import FunctionDescriptor
from ._chains import ChainDescriptor
from ._coercion import coerce, is_address
from ._errors import (
    CallError,
    InteractError,
    InvalidAddressError,
    MissingAddressError,
    NoChainSelectedError,
    NoSignerError,
    SimulationError,
    TransactionError,
    UnknownFunctionError,
)
from ._signer import AccountSource
from ._store import DispatchFailure, InvocationResult, InvocationStore
from ._transport import (
    CallRequest,
    PreparedTransaction,
    Reverted,
    Transport,
    TransportConfig,
    TransportFailure,
    TransportSession,
)

logger = logging.getLogger(__name__)

READ_NOTE = "Function call completed successfully"
SIMULATION_NOTE = "Simulation successful. Ready to execute."
WRITE_NOTE = "Transaction executed successfully"


class DispatchState(Enum):
    """The states an invocation goes through."""

    IDLE = "idle"
    VALIDATING = "validating"
    READING = "reading"
    SIMULATING = "simulating"
    WRITING = "writing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchConfig:
    poll_latency: float = 1.0
    """Delay between transaction receipt queries, in seconds."""

    receipt_timeout: None | float = None
    """If set, the maximum time to wait for a transaction receipt, in seconds."""


@dataclass(frozen=True)
class DispatchRequest:
    """Everything the user has selected and entered for a single invocation."""

    function_key: str
    contract_address: None | str
    chain: None | ChainDescriptor
    values: Mapping[str, str] = field(default_factory=dict)
    """Raw input values keyed by input name."""

    rpc_url: None | str = None
    """Overrides the default RPC URL of the chain."""

    simulate: bool = False
    """For state-mutating functions, only dry-run the call."""


@dataclass
class Invocation:
    """The record of a single dispatch."""

    function_key: str
    states: list[DispatchState] = field(default_factory=lambda: [DispatchState.IDLE])
    result: None | InvocationResult = None
    error: None | InteractError = None

    @property
    def state(self) -> DispatchState:
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        return self.state == DispatchState.COMPLETED

    def advance(self, state: DispatchState) -> None:
        logger.debug("`%s`: %s -> %s", self.function_key, self.state.value, state.value)
        self.states.append(state)


class DispatchController:
    """
    Validates, coerces and dispatches function calls,
    recording the outcomes in an :py:class:`InvocationStore`.

    Several invocations may run concurrently;
    for the same function the one finishing last owns the store slot.
    """

    def __init__(
        self,
        transport: Transport,
        accounts: AccountSource,
        store: None | InvocationStore = None,
        config: None | DispatchConfig = None,
    ):
        self._transport = transport
        self._accounts = accounts
        self._store = store if store is not None else InvocationStore()
        self._config = config if config is not None else DispatchConfig()

    @property
    def store(self) -> InvocationStore:
        return self._store

    async def invoke(
        self, catalog: Mapping[str, FunctionDescriptor], request: DispatchRequest
    ) -> Invocation:
        """
        Runs the invocation to completion.
        Raises the :py:class:`~abicall.InteractError` it failed with, after recording it.
        """
        invocation = Invocation(request.function_key)
        await self._run(invocation, catalog, request)
        return invocation

    async def dispatch(
        self, catalog: Mapping[str, FunctionDescriptor], request: DispatchRequest
    ) -> Invocation:
        """
        Same as :py:meth:`invoke`, but never raises engine errors:
        a failure is recorded in the returned invocation and in the store's ``last_error``.
        """
        invocation = Invocation(request.function_key)
        try:
            await self._run(invocation, catalog, request)
        except InteractError as exc:
            logger.warning("`%s` failed: %s", request.function_key, exc)
        return invocation

    async def _run(
        self,
        invocation: Invocation,
        catalog: Mapping[str, FunctionDescriptor],
        request: DispatchRequest,
    ) -> None:
        self._store.last_error = None
        try:
            result = await self._execute(invocation, catalog, request)
        except InteractError as exc:
            invocation.error = exc
            invocation.advance(DispatchState.FAILED)
            self._store.last_error = DispatchFailure(request.function_key, exc)
            raise

        invocation.result = result
        invocation.advance(DispatchState.COMPLETED)
        self._store.put(result)
        logger.info("`%s`: %s", request.function_key, result.note)

    async def _execute(
        self,
        invocation: Invocation,
        catalog: Mapping[str, FunctionDescriptor],
        request: DispatchRequest,
    ) -> InvocationResult:
        invocation.advance(DispatchState.VALIDATING)

        if not request.contract_address:
            raise MissingAddressError
        if not is_address(request.contract_address):
            raise InvalidAddressError(request.contract_address)
        rpc_url = request.rpc_url or (request.chain.default_rpc_url if request.chain else None)
        if request.chain is None or rpc_url is None:
            raise NoChainSelectedError
        function = catalog.get(request.function_key)
        if function is None:
            raise UnknownFunctionError(request.function_key)
        account = None
        if not function.is_read:
            account = self._accounts.active_account
            if account is None:
                raise NoSignerError(function.name)

        args = coerce(function, request.values)
        call_request = CallRequest(Address.from_hex(request.contract_address), function, args)
        config = TransportConfig(chain=request.chain, rpc_url=rpc_url)

        async with self._transport.session(config) as session:
            if account is None:
                invocation.advance(DispatchState.READING)
                value = await self._read(session, call_request)
                return InvocationResult(
                    function_name=request.function_key, args=args, outcome=value, note=READ_NOTE
                )

            if request.simulate:
                invocation.advance(DispatchState.SIMULATING)
                prepared = await self._simulate(session, call_request, account)
                return InvocationResult(
                    function_name=request.function_key,
                    args=args,
                    outcome=prepared,
                    note=SIMULATION_NOTE,
                    is_simulation=True,
                )

            invocation.advance(DispatchState.WRITING)
            tx_hash, receipt = await self._write(session, call_request, account)
            return InvocationResult(
                function_name=request.function_key,
                args=args,
                outcome=receipt,
                note=WRITE_NOTE,
                transaction_hash=tx_hash,
            )

    async def _read(self, session: TransportSession, request: CallRequest) -> Any:
        try:
            return await session.call(request)
        except TransportFailure as exc:
            raise CallError(f"Call to `{request.function_name}` failed: {exc}") from exc

    async def _simulate(
        self, session: TransportSession, request: CallRequest, account: Address
    ) -> PreparedTransaction:
        try:
            return await session.simulate(request, account)
        except TransportFailure as exc:
            reason = exc.reason if isinstance(exc, Reverted) else None
            raise SimulationError(
                f"Simulation of `{request.function_name}` failed: {exc}", reason
            ) from exc

    async def _write(
        self, session: TransportSession, request: CallRequest, account: Address
    ) -> tuple[TxHash, Any]:
        # The simulation doubles as the last validation before spending gas.
        prepared = await self._simulate(session, request, account)
        try:
            signer = self._accounts.signer(account)
        except KeyError as exc:
            raise NoSignerError(request.function_name) from exc

        try:
            tx_hash = await session.submit(prepared, signer)
            logger.info("`%s`: submitted transaction %s", request.function_name, tx_hash)
            receipt = await self._wait_for_receipt(session, tx_hash)
        except TransportFailure as exc:
            raise TransactionError(
                f"Transaction for `{request.function_name}` failed: {exc}"
            ) from exc

        if not receipt.succeeded:
            raise TransactionError(f"Transaction {tx_hash} failed (receipt: {receipt})")
        return tx_hash, receipt

    async def _wait_for_receipt(self, session: TransportSession, tx_hash: TxHash) -> Any:
        timeout = self._config.receipt_timeout
        if timeout is None:
            return await session.wait_for_receipt(tx_hash, self._config.poll_latency)
        try:
            with anyio.fail_after(timeout):
                return await session.wait_for_receipt(tx_hash, self._config.poll_latency)
        except TimeoutError as exc:
            raise TransactionError(
                f"No receipt for transaction {tx_hash} after {timeout} seconds"
            ) from exc
