import logging
from typing import Any

from ._catalog import FunctionCatalog, InputValueTable, parse
from ._chains import BUILTIN_CHAINS, ChainDescriptor, ChainRegistry
from ._dispatch import DispatchConfig, DispatchController, DispatchRequest, Invocation
from ._errors import ParseError, UnknownFunctionError
from ._render import Node, format_tree, render
from ._rpc_transport import RPCTransport
from ._signer import AccountSource, LocalAccounts
from ._store import DispatchFailure, InvocationResult, InvocationStore
from ._transport import PreparedTransaction, Transport

logger = logging.getLogger(__name__)


class Interaction:
    """
    A single contract interaction session: the selected chain, the RPC URL,
    the contract address, the parsed ABI with its input values, and the invocation results.

    ``transport`` defaults to :py:class:`RPCTransport`,
    ``accounts`` to an empty :py:class:`LocalAccounts` (only read functions can be dispatched).
    """

    def __init__(
        self,
        transport: None | Transport = None,
        accounts: None | AccountSource = None,
        registry: ChainRegistry = BUILTIN_CHAINS,
        config: None | DispatchConfig = None,
    ):
        self._registry = registry
        self._store = InvocationStore()
        self._controller = DispatchController(
            transport if transport is not None else RPCTransport(),
            accounts if accounts is not None else LocalAccounts(),
            store=self._store,
            config=config,
        )
        self.chain: None | ChainDescriptor = None
        self.rpc_url: None | str = None
        """The RPC URL to use; seeded by :py:meth:`select_chain`, may be overridden."""
        self.contract_address: None | str = None
        self._catalog: None | FunctionCatalog = None
        self._inputs: None | InputValueTable = None

    def select_chain(self, chain_id: str) -> ChainDescriptor:
        """Selects a chain from the registry and resets the RPC URL to its default one."""
        chain = self._registry.resolve(chain_id)
        self.chain = chain
        self.rpc_url = chain.default_rpc_url
        logger.debug("Selected chain `%s` (RPC URL: %s)", chain.id, self.rpc_url)
        return chain

    @property
    def catalog(self) -> None | FunctionCatalog:
        return self._catalog

    @property
    def inputs(self) -> None | InputValueTable:
        return self._inputs

    @property
    def store(self) -> InvocationStore:
        return self._store

    @property
    def last_error(self) -> None | DispatchFailure:
        return self._store.last_error

    def load_abi(self, raw_text: str) -> FunctionCatalog:
        """
        Parses the ABI and creates an empty input table for it.
        On failure both are cleared and the :py:class:`~abicall.ParseError` is raised.
        Results of the previously loaded ABI are dropped either way.
        """
        self._store.clear()
        try:
            catalog = parse(raw_text)
        except ParseError:
            self._catalog = None
            self._inputs = None
            raise
        self._catalog = catalog
        self._inputs = InputValueTable(catalog)
        return catalog

    def set_input(self, function_key: str, input_name: str, value: str) -> None:
        if self._inputs is None:
            raise UnknownFunctionError(function_key)
        self._inputs.set(function_key, input_name, value)

    def _request(self, function_key: str, *, simulate: bool) -> DispatchRequest:
        values = (
            self._inputs.row(function_key)
            if self._inputs is not None and function_key in self._inputs
            else {}
        )
        return DispatchRequest(
            function_key=function_key,
            contract_address=self.contract_address,
            chain=self.chain,
            values=values,
            rpc_url=self.rpc_url,
            simulate=simulate,
        )

    async def dispatch(self, function_key: str, *, simulate: bool = False) -> Invocation:
        """
        Dispatches the function with the current input values.
        Never raises engine errors; see :py:attr:`last_error` and the returned invocation.
        """
        return await self._controller.dispatch(
            self._catalog or {}, self._request(function_key, simulate=simulate)
        )

    async def invoke(self, function_key: str, *, simulate: bool = False) -> Invocation:
        """Same as :py:meth:`dispatch`, but raises the error the invocation failed with."""
        return await self._controller.invoke(
            self._catalog or {}, self._request(function_key, simulate=simulate)
        )

    def result(self, function_key: str) -> None | InvocationResult:
        return self._store.get(function_key)

    def render_result(self, function_key: str) -> None | Node:
        """
        Renders the stored outcome of the function.
        Simulation outcomes are rendered as the simulated return value.
        """
        result = self._store.get(function_key)
        if result is None:
            return None
        if result.transaction_hash is not None:
            # A receipt, not described by the function outputs.
            return render(result.outcome)
        outputs = None
        if self._catalog is not None and function_key in self._catalog:
            outputs = self._catalog[function_key].outputs
        outcome: Any = result.outcome
        if isinstance(outcome, PreparedTransaction):
            outcome = outcome.result
        return render(outcome, outputs)

    def format_result(self, function_key: str) -> None | str:
        node = self.render_result(function_key)
        return None if node is None else format_tree(node)
