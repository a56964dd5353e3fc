"""ABI-driven contract function invocation."""

from ._abi_types import ABIDecodingError, ABIEncodingError
from ._catalog import (
    FunctionCatalog,
    FunctionDescriptor,
    FunctionInput,
    FunctionOutput,
    InputValueTable,
    Mutability,
    parse,
)
from ._chains import (
    BUILTIN_CHAINS,
    ChainDescriptor,
    ChainRegistry,
    NativeCurrency,
    list_chains,
    resolve,
)
from ._coercion import coerce, coerce_value, is_address
from ._dispatch import (
    DispatchConfig,
    DispatchController,
    DispatchRequest,
    DispatchState,
    Invocation,
)
from ._errors import (
    CallError,
    ChainNotFound,
    CoercionError,
    EmptyInputError,
    InteractError,
    InvalidAddressArgumentError,
    InvalidAddressError,
    InvalidArgumentError,
    MalformedEntryError,
    MalformedJsonError,
    MissingAddressError,
    NoChainSelectedError,
    NoFunctionsError,
    NoSignerError,
    NotArrayError,
    ParseError,
    SimulationError,
    TransactionError,
    TransportError,
    UnknownFunctionError,
    UnknownInputError,
    ValidationError,
)
from ._http_provider import HTTPError, HTTPProvider
from ._interaction import Interaction
from ._provider import InvalidResponse, Provider, ProviderError, ProviderSession, Unreachable
from ._render import (
    EmptySequence,
    Items,
    Labeled,
    Leaf,
    Node,
    NoValue,
    Record,
    format_tree,
    render,
)
from ._rpc_transport import BadResponseFormat, RPCTransport
from ._signer import AccountSigner, AccountSource, LocalAccounts, Signer
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

__all__ = [
    "BUILTIN_CHAINS",
    "ABIDecodingError",
    "ABIEncodingError",
    "AccountSigner",
    "AccountSource",
    "BadResponseFormat",
    "CallError",
    "CallRequest",
    "ChainDescriptor",
    "ChainNotFound",
    "ChainRegistry",
    "CoercionError",
    "DispatchConfig",
    "DispatchController",
    "DispatchFailure",
    "DispatchRequest",
    "DispatchState",
    "EmptyInputError",
    "EmptySequence",
    "FunctionCatalog",
    "FunctionDescriptor",
    "FunctionInput",
    "FunctionOutput",
    "HTTPError",
    "HTTPProvider",
    "InputValueTable",
    "InteractError",
    "Interaction",
    "InvalidAddressArgumentError",
    "InvalidAddressError",
    "InvalidArgumentError",
    "InvalidResponse",
    "Invocation",
    "InvocationResult",
    "InvocationStore",
    "Items",
    "Labeled",
    "Leaf",
    "LocalAccounts",
    "MalformedEntryError",
    "MalformedJsonError",
    "MissingAddressError",
    "Mutability",
    "NativeCurrency",
    "NoChainSelectedError",
    "NoFunctionsError",
    "NoSignerError",
    "NoValue",
    "Node",
    "NotArrayError",
    "ParseError",
    "PreparedTransaction",
    "Provider",
    "ProviderError",
    "ProviderSession",
    "RPCTransport",
    "Record",
    "Reverted",
    "Signer",
    "SimulationError",
    "TransactionError",
    "Transport",
    "TransportConfig",
    "TransportError",
    "TransportFailure",
    "TransportSession",
    "UnknownFunctionError",
    "UnknownInputError",
    "Unreachable",
    "ValidationError",
    "coerce",
    "coerce_value",
    "format_tree",
    "is_address",
    "list_chains",
    "parse",
    "render",
    "resolve",
]
