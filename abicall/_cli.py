import logging
import os
from functools import partial
from typing import TextIO

import anyio
import click

from ._catalog import parse
from ._chains import list_chains
from ._errors import InteractError
from ._interaction import Interaction
from ._signer import AccountSigner, LocalAccounts


DEFAULT_PRIVATE_KEY_ENV = "ABICALL_PRIVATE_KEY"


def _parse_assignment(value: str) -> tuple[str, str]:
    name, separator, text = value.partition("=")
    if not separator or not name:
        raise click.BadParameter(f"Expected `name=value`, got `{value}`", param_hint="VALUES")
    return name, text


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def cli(log_level: str) -> None:
    """Call functions of any contract given its ABI."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
def chains() -> None:
    """Lists the known chains."""
    for chain in list_chains():
        click.echo(f"{chain.id}\t{chain.chain_id}\t{chain.name}\t{chain.default_rpc_url}")


@cli.command()
@click.argument("abi_file", type=click.File("r"))
def functions(abi_file: TextIO) -> None:
    """Lists the functions declared in an ABI file."""
    try:
        catalog = parse(abi_file.read())
    except InteractError as exc:
        raise click.ClickException(str(exc)) from exc
    for key, function in catalog.items():
        click.echo(f"{key}: {function}")


@cli.command()
@click.option("--chain", "chain_id", required=True, help="Chain id, see `abicall chains`.")
@click.option("--address", required=True, help="Contract address.")
@click.option("--abi", "abi_file", type=click.File("r"), required=True, help="ABI JSON file.")
@click.option("--rpc-url", default=None, help="Overrides the default RPC URL of the chain.")
@click.option("--simulate", is_flag=True, default=False, help="Only dry-run a transaction.")
@click.option(
    "--private-key-env",
    default=DEFAULT_PRIVATE_KEY_ENV,
    show_default=True,
    help="Environment variable holding the signer's private key.",
)
@click.argument("function_key")
@click.argument("values", nargs=-1)
@click.pass_context
def call(  # noqa: PLR0913
    ctx: click.Context,
    chain_id: str,
    address: str,
    abi_file: TextIO,
    rpc_url: None | str,
    simulate: bool,  # noqa: FBT001
    private_key_env: str,
    function_key: str,
    values: tuple[str, ...],
) -> None:
    """
    Calls FUNCTION_KEY with VALUES given as `name=value`
    (unnamed inputs are called `param_<index>`).
    """
    accounts = LocalAccounts()
    private_key = os.environ.get(private_key_env)
    if private_key:
        try:
            accounts.connect(AccountSigner.from_key(private_key))
        except ValueError as exc:
            raise click.ClickException(f"Invalid private key in `{private_key_env}`") from exc

    # A custom transport can be passed via the context object.
    options = ctx.obj or {}
    interaction = Interaction(transport=options.get("transport"), accounts=accounts)

    try:
        interaction.select_chain(chain_id)
        if rpc_url:
            interaction.rpc_url = rpc_url
        interaction.contract_address = address
        interaction.load_abi(abi_file.read())
        for value in values:
            name, text = _parse_assignment(value)
            interaction.set_input(function_key, name, text)
    except InteractError as exc:
        raise click.ClickException(str(exc)) from exc

    invocation = anyio.run(partial(interaction.dispatch, function_key, simulate=simulate))
    if invocation.error is not None:
        raise click.ClickException(str(invocation.error))

    result = interaction.result(function_key)
    if result is None:  # pragma: no cover
        raise click.ClickException(f"No result recorded for `{function_key}`")
    click.echo(result.note)
    if result.transaction_hash is not None:
        click.echo(f"Transaction hash: {result.transaction_hash}")
    click.echo(interaction.format_result(function_key))


def main() -> None:
    cli()
