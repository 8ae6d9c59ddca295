"""
casper_clients.cli.main
=======================

`casper-clients`: inspect contract state and deploys from the command line.

Examples
--------
    $ casper-clients --node http://127.0.0.1:7777/rpc state-root
    $ casper-clients named-keys 01aa...ff
    $ casper-clients balance hash-0a1b... 01aa...ff
    $ casper-clients balance --family cep78 hash-0a1b... account-hash-9c...
    $ casper-clients allowance hash-0a1b... 01aa...ff 02bb...ee
    $ casper-clients deploy-status 5e7c...
    $ casper-clients listen hash-0a1b...         # CEP-47 events as JSON lines

Configuration
-------------
- Node URL   : `--node` or env `CSPR_NODE_URL` (default: http://127.0.0.1:7777/rpc)
- Events URL : `--events` or env `CSPR_EVENTS_URL` (default: node host, port 9999)
- Chain name : `--chain` or env `CSPR_CHAIN_NAME`
- Timeout    : `--timeout` or env `CSPR_TIMEOUT` seconds
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from ..config import ClientConfig
from ..contracts.base import ContractHandle
from ..contracts.cep47 import CEP47Client
from ..contracts.cep78 import CEP78Client
from ..contracts.erc20 import ERC20Client
from ..errors import CasperClientError
from ..keys import PublicKey
from ..rpc.http import NodeRpcClient
from ..rpc.sse import EventStreamClient
from ..types.results import AccountRecord, ContractRecord
from ..version import __version__

app = typer.Typer(
    name="casper-clients",
    help="Casper contract clients CLI: query named keys, balances and deploys.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main", "run"]

T = TypeVar("T")


class Family(str, Enum):
    erc20 = "erc20"
    cep47 = "cep47"
    cep78 = "cep78"


_FAMILIES = {
    Family.erc20: ERC20Client,
    Family.cep47: CEP47Client,
    Family.cep78: CEP78Client,
}


@dataclass
class Ctx:
    config: ClientConfig


def _print_json(obj: Any, compact: bool = False) -> None:
    if compact:
        typer.echo(json.dumps(obj, separators=(",", ":"), ensure_ascii=False))
    else:
        typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def open_node(config: ClientConfig) -> NodeRpcClient:
    return NodeRpcClient.from_config(config)


def open_stream(config: ClientConfig) -> EventStreamClient:
    return EventStreamClient.from_config(config)


def _run(ctx: typer.Context, fn: Callable[[NodeRpcClient], Awaitable[T]]) -> T:
    config: ClientConfig = ctx.obj.config

    async def _go() -> T:
        async with open_node(config) as node:
            return await fn(node)

    try:
        return asyncio.run(_go())
    except CasperClientError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1) from e


async def _bind(
    node: NodeRpcClient,
    config: ClientConfig,
    family: Family,
    contract: str,
) -> ContractHandle:
    handle = _FAMILIES[family](node, config=config)
    await handle.bind_by_hash(contract, skip_eager_load=True)
    return handle


@app.callback()
def _root(
    ctx: typer.Context,
    node: Optional[str] = typer.Option(None, "--node", help="Node JSON-RPC URL.", envvar="CSPR_NODE_URL"),
    events: Optional[str] = typer.Option(None, "--events", help="Node event stream URL.", envvar="CSPR_EVENTS_URL"),
    chain: Optional[str] = typer.Option(None, "--chain", help="Chain name.", envvar="CSPR_CHAIN_NAME"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds.", envvar="CSPR_TIMEOUT"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests and stream activity."),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        config = ClientConfig.with_overrides(
            None,
            node_url=node,
            events_url=events,
            chain_name=chain,
            request_timeout=timeout,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    ctx.obj = Ctx(config=config)


@app.command("version")
def version() -> None:
    """Print the package version."""
    typer.echo(f"casper-clients {__version__}")


@app.command("state-root")
def state_root(ctx: typer.Context) -> None:
    """Print the latest state root hash."""
    typer.echo(_run(ctx, lambda node: node.get_state_root_hash()))


@app.command("named-keys")
def named_keys(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Account public key (hex) or contract hash (hash-...)."),
) -> None:
    """List the named keys of an account or a contract."""

    async def _go(node: NodeRpcClient) -> Any:
        if target.lower().startswith(("hash-", "contract-")):
            stored = await node.query_state(target)
        else:
            stored = await node.get_account_info(PublicKey.from_hex(target))
        if not isinstance(stored, (AccountRecord, ContractRecord)):
            raise typer.BadParameter(f"{target} holds {stored.kind.value}, not an account or contract")
        return stored.named_keys

    _print_json(_run(ctx, _go))


@app.command("balance")
def balance(
    ctx: typer.Context,
    contract: str = typer.Argument(..., help="Token contract hash (hash-...)."),
    owner: str = typer.Argument(..., help="Owner public key (hex) or account-hash-..."),
    family: Family = typer.Option(Family.erc20, "--family", "-f", help="Contract family."),
) -> None:
    """Print an owner's token balance."""

    async def _go(node: NodeRpcClient) -> int:
        handle = await _bind(node, ctx.obj.config, family, contract)
        if isinstance(handle, ERC20Client):
            return await handle.get_balance(owner)
        return await handle.get_balance_of(owner)  # type: ignore[attr-defined]

    typer.echo(str(_run(ctx, _go)))


@app.command("allowance")
def allowance(
    ctx: typer.Context,
    contract: str = typer.Argument(..., help="ERC-20 contract hash (hash-...)."),
    owner: str = typer.Argument(..., help="Owner public key (hex) or account-hash-..."),
    spender: str = typer.Argument(..., help="Spender public key (hex) or account-hash-..."),
) -> None:
    """Print the ERC-20 allowance `owner` granted `spender`."""

    async def _go(node: NodeRpcClient) -> int:
        handle = await _bind(node, ctx.obj.config, Family.erc20, contract)
        return await handle.get_allowance(owner, spender)  # type: ignore[attr-defined]

    typer.echo(str(_run(ctx, _go)))


@app.command("deploy-status")
def deploy_status(
    ctx: typer.Context,
    deploy_hash: str = typer.Argument(..., help="Deploy hash (hex)."),
) -> None:
    """Print a deploy's execution result, or `pending` if it has none yet."""
    outcome = _run(ctx, lambda node: node.fetch_deploy_outcome(deploy_hash))
    if outcome is None:
        typer.echo("pending")
        return
    _print_json(
        {
            "deploy_hash": deploy_hash,
            "success": outcome.success,
            "cost": str(outcome.cost),
            "error_message": outcome.error_message,
            "block_hash": outcome.block_hash,
        }
    )


@app.command("listen")
def listen(
    ctx: typer.Context,
    contract: str = typer.Argument(..., help="CEP-47 contract hash (hash-...)."),
    count: int = typer.Option(0, "--count", "-n", help="Stop after this many events (0 = run until Ctrl+C)."),
) -> None:
    """Print the contract's events as JSON lines."""
    config: ClientConfig = ctx.obj.config

    async def _go(node: NodeRpcClient) -> None:
        handle = await _bind(node, config, Family.cep47, contract)
        done = asyncio.Event()
        seen = 0

        def _on_event(event: Any) -> None:
            nonlocal seen
            _print_json(event.to_dict(), compact=True)
            seen += 1
            if count and seen >= count:
                done.set()

        subscriber = handle.subscriber(open_stream(config))
        subscriber.add_listener(_on_event)
        await subscriber.listen()
        try:
            await done.wait()
        finally:
            await subscriber.close()

    try:
        _run(ctx, _go)
    except KeyboardInterrupt:
        typer.echo("bye")


def main(argv: Optional[list[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    try:
        rv = app(prog_name="casper-clients", standalone_mode=False, args=argv)
        return rv if isinstance(rv, int) else 0
    except typer.Exit as e:
        return int(e.exit_code)
    except Exception as e:
        typer.echo(f"error: {e}", err=True)
        return 1


def run(argv: Optional[list[str]] = None) -> int:
    """Alias for :func:`main`."""
    return main(argv)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
