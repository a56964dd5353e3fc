import pytest
import trio
from abis import OWNER_ADDRESS, TOKEN_ADDRESS
from fake_transport import FAKE_TX_HASH, FakeReceipt, FakeTransport

from abicall import (
    AccountSigner,
    CallError,
    CallRequest,
    ChainDescriptor,
    DispatchConfig,
    DispatchController,
    DispatchRequest,
    DispatchState,
    FunctionCatalog,
    InvalidAddressArgumentError,
    InvalidAddressError,
    InvalidArgumentError,
    InvocationStore,
    LocalAccounts,
    MissingAddressError,
    NoChainSelectedError,
    NoSignerError,
    PreparedTransaction,
    Reverted,
    SimulationError,
    TransactionError,
    TransportFailure,
    UnknownFunctionError,
)


def make_request(
    chain: ChainDescriptor, function_key: str, values: dict[str, str], **kwargs: object
) -> DispatchRequest:
    return DispatchRequest(
        function_key=function_key,
        contract_address=TOKEN_ADDRESS,
        chain=chain,
        values=values,
        **kwargs,  # type: ignore[arg-type]
    )


async def test_read(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    store: InvocationStore,
) -> None:
    transport.call_results["balanceOf"] = 1000
    request = make_request(chain, "balanceOf", {"owner": OWNER_ADDRESS})

    invocation = await controller.invoke(catalog, request)

    assert invocation.succeeded
    assert invocation.states == [
        DispatchState.IDLE,
        DispatchState.VALIDATING,
        DispatchState.READING,
        DispatchState.COMPLETED,
    ]
    assert invocation.result is not None
    assert invocation.result.outcome == 1000
    assert invocation.result.note == "Function call completed successfully"
    assert not invocation.result.is_simulation
    assert invocation.result.transaction_hash is None

    # The address is passed through unchanged as the sole argument
    assert invocation.result.args == [OWNER_ADDRESS]
    assert [name for name, _ in transport.operations] == ["call"]
    call_request = transport.operations[0][1]
    assert isinstance(call_request, CallRequest)
    assert call_request.args == [OWNER_ADDRESS]

    assert transport.configs[0].rpc_url == chain.default_rpc_url
    assert transport.configs[0].chain == chain
    assert store["balanceOf"] is invocation.result
    assert store.last_error is None


async def test_read_does_not_need_a_signer(
    transport: FakeTransport, catalog: FunctionCatalog, chain: ChainDescriptor
) -> None:
    controller = DispatchController(transport, LocalAccounts())
    transport.call_results["name"] = "Token"

    invocation = await controller.invoke(catalog, make_request(chain, "name", {}))

    assert invocation.succeeded
    assert DispatchState.WRITING not in invocation.states
    assert DispatchState.SIMULATING not in invocation.states


async def test_read_ignores_simulate_flag(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    invocation = await controller.invoke(catalog, make_request(chain, "name", {}, simulate=True))
    assert invocation.states[2] == DispatchState.READING
    assert [name for name, _ in transport.operations] == ["call"]


async def test_rpc_url_override(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    request = make_request(chain, "name", {}, rpc_url="http://node.example:8545")
    await controller.invoke(catalog, request)
    assert transport.configs[0].rpc_url == "http://node.example:8545"


async def test_call_error(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    store: InvocationStore,
) -> None:
    transport.call_error = TransportFailure("connection refused")
    request = make_request(chain, "balanceOf", {"owner": OWNER_ADDRESS})

    with pytest.raises(CallError, match="Call to `balanceOf` failed: connection refused") as exc:
        await controller.invoke(catalog, request)
    assert isinstance(exc.value.__cause__, TransportFailure)

    assert "balanceOf" not in store
    assert store.last_error is not None
    assert store.last_error.function_name == "balanceOf"
    assert store.last_error.error is exc.value


async def test_simulate(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    signer: AccountSigner,
) -> None:
    transport.simulation_result = True
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "10"}, simulate=True)

    invocation = await controller.invoke(catalog, request)

    assert invocation.states[2:] == [DispatchState.SIMULATING, DispatchState.COMPLETED]
    result = invocation.result
    assert result is not None
    assert result.is_simulation
    assert result.note == "Simulation successful. Ready to execute."
    assert isinstance(result.outcome, PreparedTransaction)
    assert result.outcome.account == signer.address
    assert result.outcome.chain_id == chain.chain_id
    assert result.outcome.result is True
    assert result.args == [OWNER_ADDRESS, 10]
    # Nothing is submitted
    assert [name for name, _ in transport.operations] == ["simulate"]


async def test_simulation_error(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    transport.simulate_error = Reverted("execution reverted: not enough funds", "not enough funds")
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "10"}, simulate=True)

    with pytest.raises(SimulationError, match="Simulation of `transfer` failed") as exc:
        await controller.invoke(catalog, request)
    assert exc.value.revert_reason == "not enough funds"

    transport.simulate_error = TransportFailure("node is down")
    with pytest.raises(SimulationError) as exc:
        await controller.invoke(catalog, request)
    assert exc.value.revert_reason is None


async def test_write(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    signer: AccountSigner,
    store: InvocationStore,
) -> None:
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "0x10"})

    invocation = await controller.invoke(catalog, request)

    assert invocation.states[2:] == [DispatchState.WRITING, DispatchState.COMPLETED]
    result = invocation.result
    assert result is not None
    assert result.note == "Transaction executed successfully"
    assert result.transaction_hash == FAKE_TX_HASH
    assert result.outcome == FakeReceipt()
    assert not result.is_simulation
    # Simulated first, then submitted
    assert [name for name, _ in transport.operations] == ["simulate", "submit"]
    assert transport.signers == [signer]
    assert store["transfer"] is result


async def test_write_submit_error(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    transport.submit_error = TransportFailure("nonce too low")
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "1"})

    with pytest.raises(TransactionError, match="Transaction for `transfer` failed: nonce too low"):
        await controller.invoke(catalog, request)


async def test_write_simulation_error(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    transport.simulate_error = Reverted("execution reverted")
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "1"})

    with pytest.raises(SimulationError):
        await controller.invoke(catalog, request)
    assert [name for name, _ in transport.operations] == ["simulate"]


async def test_failed_receipt(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    store: InvocationStore,
) -> None:
    transport.receipt = FakeReceipt(succeeded=False)
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "1"})

    with pytest.raises(TransactionError, match="failed"):
        await controller.invoke(catalog, request)
    assert "transfer" not in store


async def test_receipt_timeout(
    transport: FakeTransport,
    accounts: LocalAccounts,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    controller = DispatchController(
        transport, accounts, config=DispatchConfig(poll_latency=0.01, receipt_timeout=0.1)
    )
    transport.receipt = None
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "1"})

    with pytest.raises(TransactionError, match="No receipt for transaction"):
        await controller.invoke(catalog, request)


async def test_receipt_wait_is_unbounded_by_default(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    transport.receipt = None
    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "1"})

    with trio.move_on_after(0.2) as cancel_scope:
        await controller.invoke(catalog, request)
    assert cancel_scope.cancelled_caught


@pytest.mark.parametrize(
    ("address", "error"),
    [(None, MissingAddressError), ("", MissingAddressError), ("0x1234", InvalidAddressError)],
)
async def test_address_validation(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    address: None | str,
    error: type[Exception],
) -> None:
    request = DispatchRequest(function_key="name", contract_address=address, chain=chain)
    with pytest.raises(error):
        await controller.invoke(catalog, request)
    assert transport.operations == []


async def test_validation_order(
    transport: FakeTransport, catalog: FunctionCatalog, chain: ChainDescriptor
) -> None:
    controller = DispatchController(transport, LocalAccounts())

    request = DispatchRequest(function_key="transfer", contract_address=TOKEN_ADDRESS, chain=None)
    with pytest.raises(NoChainSelectedError, match="Please select a network"):
        await controller.invoke(catalog, request)

    request = DispatchRequest(function_key="approve", contract_address=TOKEN_ADDRESS, chain=chain)
    with pytest.raises(UnknownFunctionError):
        await controller.invoke(catalog, request)

    request = DispatchRequest(function_key="transfer", contract_address=TOKEN_ADDRESS, chain=chain)
    with pytest.raises(NoSignerError, match="Please connect your wallet to execute `transfer`"):
        await controller.invoke(catalog, request)

    assert transport.operations == []
    assert transport.configs == []


async def test_coercion_errors_precede_transport(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
) -> None:
    request = make_request(chain, "transfer", {"to": "0xnope", "amount": "1"})
    with pytest.raises(InvalidAddressArgumentError) as exc:
        await controller.invoke(catalog, request)
    assert exc.value.field == "to"

    request = make_request(chain, "transfer", {"to": OWNER_ADDRESS, "amount": "lots"})
    with pytest.raises(InvalidArgumentError) as exc:
        await controller.invoke(catalog, request)
    assert exc.value.field == "amount"

    assert transport.configs == []


async def test_dispatch_records_errors(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    store: InvocationStore,
) -> None:
    bad_request = make_request(chain, "balanceOf", {"owner": "0x12"})
    invocation = await controller.dispatch(catalog, bad_request)

    assert not invocation.succeeded
    assert invocation.state == DispatchState.FAILED
    assert isinstance(invocation.error, InvalidAddressArgumentError)
    assert store.last_error is not None
    assert store.last_error.error is invocation.error
    assert "Invalid value for owner (address)" in store.last_error.message

    # Starting a new dispatch clears the last error
    transport.call_results["balanceOf"] = 1
    good_request = make_request(chain, "balanceOf", {"owner": OWNER_ADDRESS})
    invocation = await controller.dispatch(catalog, good_request)
    assert invocation.succeeded
    assert store.last_error is None


async def test_last_to_finish_wins(
    controller: DispatchController,
    transport: FakeTransport,
    catalog: FunctionCatalog,
    chain: ChainDescriptor,
    store: InvocationStore,
) -> None:
    transport.call_results["balanceOf"] = lambda request: request.args[0]
    # The first dispatch takes longer than the second one
    transport.delays["balanceOf"] = [0.2, 0.05]
    slow = make_request(chain, "balanceOf", {"owner": OWNER_ADDRESS})
    fast = make_request(chain, "balanceOf", {"owner": TOKEN_ADDRESS})

    async with trio.open_nursery() as nursery:
        nursery.start_soon(controller.dispatch, catalog, slow)
        await trio.sleep(0.01)
        nursery.start_soon(controller.dispatch, catalog, fast)

    assert store["balanceOf"].outcome == OWNER_ADDRESS
