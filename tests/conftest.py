import json

import pytest
from abis import TOKEN_ABI
from fake_transport import FakeTransport

from abicall import (
    AccountSigner,
    ChainDescriptor,
    DispatchConfig,
    DispatchController,
    FunctionCatalog,
    InvocationStore,
    LocalAccounts,
    parse,
    resolve,
)


@pytest.fixture
def token_abi_text() -> str:
    return json.dumps(TOKEN_ABI)


@pytest.fixture
def catalog(token_abi_text: str) -> FunctionCatalog:
    return parse(token_abi_text)


@pytest.fixture
def chain() -> ChainDescriptor:
    return resolve("anvil")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def signer() -> AccountSigner:
    return AccountSigner.create()


@pytest.fixture
def accounts(signer: AccountSigner) -> LocalAccounts:
    return LocalAccounts([signer])


@pytest.fixture
def store() -> InvocationStore:
    return InvocationStore()


@pytest.fixture
def controller(
    transport: FakeTransport, accounts: LocalAccounts, store: InvocationStore
) -> DispatchController:
    return DispatchController(
        transport, accounts, store=store, config=DispatchConfig(poll_latency=0.01)
    )
