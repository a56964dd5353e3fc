"""A transport performing calls and transactions via Ethereum JSON RPC."""

import logging
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from typing import TYPE_CHECKING, Any, TypeVar, cast

import anyio
from compages import StructuringError
from ethereum_rpc import (
    Address,
    Amount,
    BlockLabel,
    EstimateGasParams,
    EthCallParams,
    RPCError,
    RPCErrorCode,
    TxHash,
    TxReceipt,
    Type2Transaction,
    keccak,
    structure,
    unstructure,
)

from ._abi_types import (
    ABIDecodingError,
    ABIEncodingError,
    String,
    UInt,
    decode_args,
    dispatch_type,
    encode_args,
)
from ._catalog import FunctionDescriptor
from ._http_provider import HTTPProvider
from ._provider import Provider, ProviderError, ProviderSession
from ._signer import Signer
from ._transport import (
    CallRequest,
    PreparedTransaction,
    Reverted,
    Transport,
    TransportConfig,
    TransportFailure,
    TransportSession,
)

if TYPE_CHECKING:  # pragma: no cover
    from eth_account.types import TransactionDictType

logger = logging.getLogger(__name__)

SELECTOR_LENGTH = 4

LEGACY_ERROR_SELECTOR = keccak(b"Error(string)")[:SELECTOR_LENGTH]
"""The selector of errors raised by ``require()`` and ``revert()`` with a message."""

PANIC_ERROR_SELECTOR = keccak(b"Panic(uint256)")[:SELECTOR_LENGTH]
"""The selector of compiler-inserted panics."""

PANIC_REASONS = {
    0x00: "generic compiler panic",
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "incorrectly encoded storage byte array",
    0x31: "pop() on an empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to a zero-initialized internal function",
}


class BadResponseFormat(Exception):
    """Raised if the RPC provider returned an unexpectedly formatted response."""


RetType = TypeVar("RetType")


async def rpc_call(
    provider_session: ProviderSession, method_name: str, ret_type: type[RetType], *args: Any
) -> RetType:
    """Catches various response formatting errors and returns them in a unified way."""
    try:
        result = await provider_session.rpc(method_name, *(unstructure(arg) for arg in args))
        return structure(ret_type, result)
    except StructuringError as exc:
        raise BadResponseFormat(f"{method_name}: {exc}") from exc


def decode_revert(exc: RPCError) -> None | Reverted:
    """
    Returns a :py:class:`Reverted` if the RPC error describes a reverted execution,
    decoding the ``Error(string)`` and ``Panic(uint256)`` payloads where present.
    """
    # Nodes report a `revert()` without a message this way.
    if exc.parsed_code == RPCErrorCode.SERVER_ERROR and exc.message == "execution reverted":
        return Reverted(exc.message)
    if exc.parsed_code != RPCErrorCode.EXECUTION_ERROR:
        return None

    data = exc.data or b""
    selector, payload = data[:SELECTOR_LENGTH], data[SELECTOR_LENGTH:]
    try:
        if selector == LEGACY_ERROR_SELECTOR:
            (message,) = decode_args([String()], payload)
            return Reverted(f"execution reverted: {message}", message)
        if selector == PANIC_ERROR_SELECTOR:
            (code,) = decode_args([UInt(256)], payload)
            description = PANIC_REASONS.get(code, "unknown panic code")
            reason = f"Panic({code:#04x}): {description}"
            return Reverted(f"execution reverted: {reason}", reason)
    except ABIDecodingError:
        logger.debug("Could not decode revert data %s", data.hex())

    # A custom error, or undecodable data; the node's message is the best we have.
    return Reverted(exc.message)


@contextmanager
def convert_errors() -> Iterator[None]:
    """Converts provider-level and ABI-level exceptions to :py:class:`TransportFailure`."""
    try:
        yield
    except ProviderError as exc:
        if isinstance(exc.error, RPCError):
            reverted = decode_revert(exc.error)
            if reverted is not None:
                raise reverted from exc
        raise TransportFailure(str(exc)) from exc
    except (BadResponseFormat, ABIEncodingError, ABIDecodingError) as exc:
        raise TransportFailure(str(exc)) from exc


def encode_call(request: CallRequest) -> bytes:
    """Returns the calldata: the function selector followed by the packed arguments."""
    function = request.function
    selector = keccak(function.signature.encode())[:SELECTOR_LENGTH]
    try:
        types = [dispatch_type(function_input) for function_input in function.inputs]
    except ValueError as exc:
        raise ABIEncodingError(f"Unsupported argument type: {exc}") from exc
    return selector + encode_args(types, request.args)


def decode_output(function: FunctionDescriptor, output_bytes: bytes) -> Any:
    """
    Decodes the output from ABI-packed bytes.

    If the function declares no outputs, ``None`` is returned.
    If there is only a single output, its value is returned.
    If all the outputs are named, they are returned as a dictionary,
    otherwise as a list of values.
    """
    if not function.has_return_value:
        return None

    try:
        types = [dispatch_type(output) for output in function.outputs]
    except ValueError as exc:
        raise ABIDecodingError(f"Unsupported return type: {exc}") from exc
    values = decode_args(types, output_bytes)

    if len(values) == 1:
        return values[0]
    names = [output.name for output in function.outputs]
    if all(name is not None for name in names):
        return dict(zip(cast("Sequence[str]", names), values, strict=True))
    return list(values)


class RPCTransport(Transport):
    """
    A transport sending JSON RPC requests to the node at the configured URL.

    ``provider_factory`` creates a provider for a given RPC URL.
    ``priority_fee`` is the maximum tip offered for transactions
    (capped by the current gas price).
    """

    def __init__(
        self,
        provider_factory: Callable[[str], Provider] = HTTPProvider,
        priority_fee: Amount = Amount.gwei(1),
    ):
        self._provider_factory = provider_factory
        self._priority_fee = priority_fee

    @asynccontextmanager
    async def session(self, config: TransportConfig) -> AsyncIterator["RPCTransportSession"]:
        provider = self._provider_factory(config.rpc_url)
        async with provider.session() as provider_session:
            yield RPCTransportSession(provider_session, config, self._priority_fee)


class RPCTransportSession(TransportSession):
    def __init__(
        self, provider_session: ProviderSession, config: TransportConfig, priority_fee: Amount
    ):
        self._provider_session = provider_session
        self._config = config
        self._priority_fee = priority_fee

    async def _eth_call(self, request: CallRequest, sender_address: None | Address) -> Any:
        params = EthCallParams(
            to=request.address, data=encode_call(request), from_=sender_address
        )
        encoded_output = await rpc_call(
            self._provider_session, "eth_call", bytes, params, BlockLabel.LATEST
        )
        return decode_output(request.function, encoded_output)

    async def call(self, request: CallRequest) -> Any:
        with convert_errors():
            return await self._eth_call(request, None)

    async def simulate(self, request: CallRequest, account: Address) -> PreparedTransaction:
        with convert_errors():
            result = await self._eth_call(request, account)
            params = EstimateGasParams(
                from_=account, to=request.address, data=encode_call(request), value=Amount(0)
            )
            gas = await rpc_call(
                self._provider_session, "eth_estimateGas", int, params, BlockLabel.LATEST
            )
            max_gas_price = await rpc_call(self._provider_session, "eth_gasPrice", Amount)
            nonce = await rpc_call(
                self._provider_session,
                "eth_getTransactionCount",
                int,
                account,
                BlockLabel.PENDING,
            )

        max_tip = min(self._priority_fee, max_gas_price)
        logger.debug(
            "Simulated `%s`: gas=%d, max fee=%s, nonce=%d",
            request.function.signature,
            gas,
            max_gas_price,
            nonce,
        )
        return PreparedTransaction(
            request=request,
            account=account,
            chain_id=self._config.chain.chain_id,
            gas=gas,
            max_fee_per_gas=max_gas_price,
            max_priority_fee_per_gas=max_tip,
            nonce=nonce,
            result=result,
        )

    async def submit(self, prepared: PreparedTransaction, signer: Signer) -> TxHash:
        with convert_errors():
            tx = cast(
                "TransactionDictType",
                unstructure(
                    Type2Transaction(
                        chain_id=prepared.chain_id,
                        to=prepared.request.address,
                        value=prepared.value,
                        gas=prepared.gas,
                        max_fee_per_gas=prepared.max_fee_per_gas,
                        max_priority_fee_per_gas=prepared.max_priority_fee_per_gas,
                        nonce=prepared.nonce,
                        data=encode_call(prepared.request),
                    )
                ),
            )
            try:
                signed_tx = signer.sign_transaction(tx)
            except (TypeError, ValueError) as exc:
                raise TransportFailure(f"Could not sign the transaction: {exc}") from exc
            return await rpc_call(
                self._provider_session, "eth_sendRawTransaction", TxHash, signed_tx
            )

    async def wait_for_receipt(self, tx_hash: TxHash, poll_latency: float) -> TxReceipt:
        """Queries the transaction receipt waiting for ``poll_latency`` between each attempt."""
        with convert_errors():
            while True:
                receipt = await rpc_call(
                    self._provider_session,
                    "eth_getTransactionReceipt",
                    None | TxReceipt,  # type: ignore[arg-type]
                    tx_hash,
                )
                if receipt is not None:
                    return receipt
                await anyio.sleep(poll_latency)
