"""CLI for eth-node-client - operate the custodial wallet from the terminal."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="eth-node-client",
    help="Custodial Ethereum client: deposit addresses, sends, sweeps and deposit replay.",
    no_args_is_help=True,
)
console = Console()

_config_path: Optional[Path] = None


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"eth-node-client {version('eth-node-client')}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the YAML configuration file",
        envvar="ETH_NODE_CLIENT_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Custodial Ethereum client: deposit addresses, sends, sweeps and deposit replay."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _client():
    """Load the configuration and build a client for it."""
    from eth_node_client.client import EthereumClient
    from eth_node_client.config import default_config_path, load_config

    path = _config_path or default_config_path()
    if not path.exists():
        console.print(f"[red]No configuration found at {path}.[/red]")
        raise typer.Exit(1)
    return EthereumClient.from_config(load_config(path))


@contextmanager
def _errors():
    """Print client errors in red and exit with status 1."""
    from eth_node_client.errors import EthereumClientError

    try:
        yield
    except EthereumClientError as e:
        console.print(f"[red]{type(e).__name__}: {e.message}[/red]")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Addresses
# ------------------------------------------------------------------


@app.command("init-collection")
def init_collection():
    """Derive the collection key and import it into the node (one-time setup)."""
    with _errors():
        addr = _client().init_collection_address()
    console.print(Panel(
        f"[bold green]Collection address registered![/bold green]\n\n"
        f"Address: [cyan]{addr}[/cyan]",
        title="Collection Address",
    ))


@app.command("collection-address")
def collection_address():
    """Show the collection address (derived locally)."""
    with _errors():
        addr = _client().get_collection_address()
    console.print(f"[cyan]{addr}[/cyan]")


@app.command("new-address")
def new_address(
    index: int = typer.Argument(help="Derivation index of the user address"),
):
    """Derive a user deposit address and import its key into the node."""
    with _errors():
        derived = _client().get_new_address(index)
    console.print(Panel(
        f"Address: [cyan]{derived.address}[/cyan]\n"
        f"Path:    {derived.derivation_path}\n"
        f"Index:   {derived.derivation_index}",
        title="Deposit Address",
    ))


@app.command("validate")
def validate(address: str = typer.Argument(help="Address to check (0x...)")):
    """Check whether an address is a well-formed 0x-prefixed 20-byte hex string."""
    from eth_node_client.units import is_valid_address

    if is_valid_address(address):
        console.print(f"[green]valid[/green] {address}")
    else:
        console.print(f"[red]invalid[/red] {address}")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Balances and transfers
# ------------------------------------------------------------------


@app.command("balance")
def balance(
    address: str = typer.Argument(help="Address to query"),
    pending: bool = typer.Option(False, "--pending", help="Include pending transactions"),
):
    """Show the ether balance of an address."""
    with _errors():
        result = _client().get_address_balance(address, confirmed=not pending)
    console.print(f"[bold]{address}:[/bold] {result} ETH")


@app.command("send")
def send(
    amount: str = typer.Argument(help="Amount to send in ETH (e.g. 0.5)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
    fee: str = typer.Option(..., "--fee", "-f", help="Maximum fee in ETH"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Send ether from the collection address."""
    console.print(f"\n[bold]Send {amount} ETH from the collection address[/bold]")
    console.print(f"  To:  {to}")
    console.print(f"  Fee: {fee} ETH\n")
    if not yes:
        typer.confirm("Confirm this transaction?", abort=True)

    with _errors():
        tx_hash = _client().send_from_collection_address(to, amount, fee)
    console.print(Panel(
        f"[bold green]Transaction sent![/bold green]\n\nTx: [cyan]{tx_hash}[/cyan]",
        title="Transaction Sent",
    ))


@app.command("sweep")
def sweep(
    address: str = typer.Argument(help="Deposit address to sweep"),
    fee: str = typer.Option(..., "--fee", "-f", help="Fee in ETH deducted from the balance"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Sweep the confirmed balance of a deposit address to the collection address."""
    if not yes:
        typer.confirm(f"Sweep {address} to the collection address?", abort=True)

    with _errors():
        tx_hash = _client().sweep_total_balance_to_collection_account(address, fee)
    console.print(Panel(
        f"[bold green]Balance swept![/bold green]\n\nTx: [cyan]{tx_hash}[/cyan]",
        title="Sweep Sent",
    ))


@app.command("fee")
def fee(
    price: Optional[int] = typer.Option(None, "--price", "-p", help="Gas price in wei (default: node's)"),
):
    """Estimate the fee of a plain ether transfer."""
    from eth_node_client.fees import FeeEstimator

    with _errors():
        estimator = FeeEstimator() if price is not None else _client().fees
        estimate = estimator.estimate(price)

    table = Table(title="Fee Estimate")
    table.add_column("Gas price (wei)", justify="right")
    table.add_column("Gas limit", justify="right")
    table.add_column("Fee (ETH)", justify="right", style="cyan")
    table.add_row(str(estimate.gas_price), str(estimate.gas_limit), str(estimate.fee))
    console.print(table)


# ------------------------------------------------------------------
# Transactions
# ------------------------------------------------------------------


@app.command("tx")
def tx(tx_hash: str = typer.Argument(help="Transaction hash")):
    """Show a transaction with its current confirmation count."""
    with _errors():
        t = _client().get_transaction(tx_hash)
    console.print(Panel(
        f"From:          {t.from_address}\n"
        f"To:            {t.to_address or '[dim]contract creation[/dim]'}\n"
        f"Amount:        [bold]{t.amount} ETH[/bold]\n"
        f"Block:         {t.block_number if t.block_number is not None else 'pending'}\n"
        f"Confirmations: {t.confirmations if t.confirmations is not None else '-'}\n"
        f"Timestamp:     {t.timestamp.isoformat() if t.timestamp else '-'}",
        title=t.hash,
    ))


@app.command("receipt")
def receipt(tx_hash: str = typer.Argument(help="Transaction hash")):
    """Show the receipt of a mined transaction."""
    with _errors():
        r = _client().get_transaction_receipt(tx_hash)
    console.print(Panel(
        f"From:          {r.from_address}\n"
        f"To:            {r.to_address}\n"
        f"Block:         {r.block_number}\n"
        f"Gas used:      {r.gas_used}\n"
        f"Status:        {r.status}\n"
        f"Confirmations: {r.confirmations}",
        title=r.hash,
    ))


@app.command("tx-fee")
def tx_fee(tx_hash: str = typer.Argument(help="Transaction hash")):
    """Show the fee paid by a mined transaction."""
    with _errors():
        paid = _client().get_transaction_fee(tx_hash)
    console.print(f"[bold]{tx_hash}:[/bold] {paid} ETH")


# ------------------------------------------------------------------
# ERC-20
# ------------------------------------------------------------------


@app.command("token")
def token(contract: str = typer.Argument(help="Token contract address")):
    """Show ERC-20 token metadata."""
    with _errors():
        meta = _client().get_erc20_contract(contract).metadata()

    table = Table(title=f"ERC-20 {contract}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for label, value in (
        ("Name", meta.name),
        ("Symbol", meta.symbol),
        ("Decimals", meta.decimals),
        ("Total supply", meta.total_supply),
    ):
        table.add_row(label, "-" if value is None else str(value))
    console.print(table)


@app.command("decode-input")
def decode_input(data: str = typer.Argument(help="Transaction input data (0x...)")):
    """Decode the call data of an ERC-20 transfer."""
    from eth_node_client.erc20 import decode_transfer_input

    decoded = decode_transfer_input(data)
    console.print(f"Method:   {decoded.method_id or '-'}{' (transfer)' if decoded.is_transfer else ''}")
    console.print(f"To:       {decoded.to or '[yellow]undecodable[/yellow]'}")
    console.print(f"Value:    {decoded.value if decoded.value is not None else '[yellow]undecodable[/yellow]'}")


# ------------------------------------------------------------------
# Replay
# ------------------------------------------------------------------


@app.command("watch-blocks")
def watch_blocks(
    replay: Optional[int] = typer.Option(None, "--replay", "-r", help="Blocks to replay before following the head"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Stop after this many blocks"),
):
    """Print transactions of replayed and newly mined blocks."""
    with _errors():
        stream = _client().replay_block_transactions(replay)
        try:
            for count, transactions in enumerate(stream, start=1):
                height = stream.next_height - 1
                console.print(f"[bold]Block {height}[/bold] [dim]{len(transactions)} txs[/dim]")
                for t in transactions:
                    console.print(
                        f"  {t.hash} {t.from_address} -> {t.to_address or 'create'} "
                        f"{t.amount} ETH [dim]({t.confirmations} conf)[/dim]"
                    )
                if limit is not None and count >= limit:
                    break
        except KeyboardInterrupt:
            pass
        finally:
            stream.close()


@app.command("watch-logs")
def watch_logs(
    replay: Optional[int] = typer.Option(None, "--replay", "-r", help="Blocks to replay before following the head"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Stop after this many events"),
):
    """Print ERC-20 Transfer events from replayed and new blocks."""
    with _errors():
        stream = _client().replay_log_erc20_transactions(replay)
        try:
            for count, event in enumerate(stream, start=1):
                flag = " [red]removed[/red]" if event.removed else ""
                console.print(
                    f"[dim]{event.block_number}[/dim] {event.transaction_hash} "
                    f"[cyan]{event.contract_address}[/cyan]{flag}"
                )
                if limit is not None and count >= limit:
                    break
        except KeyboardInterrupt:
            pass
        finally:
            stream.close()


if __name__ == "__main__":
    app()
