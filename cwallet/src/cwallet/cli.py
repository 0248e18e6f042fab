"""
Colored-coin wallet CLI - create wallets, show balances, send funds and mint assets.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from cwcore.constants import BASE_COLOR, WALLET_STORAGE_KEY
from cwcore.crypto import CryptoError
from loguru import logger

from cwallet.backends.http import HttpLedgerClient
from cwallet.config import Settings, get_settings
from cwallet.storage import FileJsonStorage
from cwallet.wallet.errors import WalletError
from cwallet.wallet.service import WalletService

T = TypeVar("T")

app = typer.Typer(
    name="cw-wallet",
    help="Colored-coin wallet",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def build_settings(
    api_endpoint: str | None, data_dir: Path | None, log_level: str | None
) -> Settings:
    settings = get_settings()
    overrides = {
        "api_endpoint": api_endpoint,
        "data_dir": data_dir,
        "log_level": log_level,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    setup_logging(settings.log_level)
    return settings


def run_with_wallet(
    settings: Settings,
    action: Callable[[WalletService], Awaitable[T]],
    require_wallet: bool = True,
) -> T:
    """Load the wallet (if any), run `action`, then close everything."""

    async def _run() -> T:
        client = HttpLedgerClient(settings.api_endpoint, timeout=settings.request_timeout)
        service = WalletService(
            client, FileJsonStorage(settings.data_dir), settings.session_config()
        )
        try:
            if require_wallet and await service.get() is None:
                logger.error(f"No wallet found in {settings.data_dir}. Run 'create' first")
                raise typer.Exit(1)
            return await action(service)
        finally:
            await service.close()
            await client.close()

    try:
        return asyncio.run(_run())
    except (WalletError, CryptoError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)


ApiEndpoint = Annotated[
    str | None, typer.Option("--api-endpoint", "-a", help="Ledger API endpoint")
]
DataDir = Annotated[Path | None, typer.Option("--data-dir", "-d", help="Wallet data directory")]
LogLevel = Annotated[str | None, typer.Option("--log-level", "-l")]


def print_wallet(service: WalletService) -> None:
    print("\nBalances:")
    balances = service.balances()
    if not balances:
        print("  (none)")
    for balance in balances:
        asset = balance.asset
        print(
            f"  {asset.symbol:<6} {asset.name:<20} confirmed: {balance.confirmed:>15,}  "
            f"unconfirmed: {balance.unconfirmed:>15,}  ({asset.color})"
        )

    print("\nAddresses:")
    for address in service.addresses():
        state = "spent" if address.is_spent else "unspent"
        print(f"  #{address.index:<4} {address.address}  {state}")


@app.command()
def create(
    seed: str | None = typer.Option(None, "--seed", help="Import an existing base58 seed"),
    force: bool = typer.Option(False, "--force", help="Replace an existing wallet"),
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Create a new wallet."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _create(service: WalletService) -> str:
        if not force and await service.storage.get(WALLET_STORAGE_KEY) is not None:
            raise ValueError("A wallet already exists, use --force to replace it")
        wallet = await service.create(seed)
        return wallet.seed

    wallet_seed = run_with_wallet(settings, _create, require_wallet=False)

    typer.echo("\n" + "=" * 80)
    typer.echo("WALLET SEED - WRITE THIS DOWN AND KEEP IT SAFE!")
    typer.echo("=" * 80)
    typer.echo(f"\n{wallet_seed}\n")
    typer.echo("=" * 80 + "\n")


@app.command()
def info(
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Display wallet balances and addresses."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _info(service: WalletService) -> None:
        print_wallet(service)

    run_with_wallet(settings, _info)


@app.command()
def receive(
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Show the address to receive funds on."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _receive(service: WalletService) -> str:
        address = service.receive_address()
        await service.session.save()
        return address

    typer.echo(run_with_wallet(settings, _receive))


@app.command()
def send(
    address: str = typer.Argument(..., help="Destination address"),
    amount: int = typer.Argument(..., help="Amount to send"),
    color: str = typer.Option(BASE_COLOR, "--color", "-c", help="Color of the asset to send"),
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Send funds to an address."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _send(service: WalletService) -> str:
        return await service.send_funds(address, color, amount)

    tx_id = run_with_wallet(settings, _send)
    typer.echo(f"Transaction: {tx_id}")


@app.command("create-asset")
def create_asset(
    name: str = typer.Argument(..., help="Asset name"),
    symbol: str = typer.Argument(..., help="Asset symbol"),
    amount: int = typer.Argument(..., help="Number of tokens to mint"),
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Mint a new colored asset from base funds."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _create_asset(service: WalletService) -> str:
        asset = await service.create_asset(name, symbol, amount)
        return asset.color

    color = run_with_wallet(settings, _create_asset)
    typer.echo(f"Asset color: {color}")


@app.command()
def faucet(
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Request funds from the network faucet."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _faucet(service: WalletService) -> str:
        return await service.request_funds()

    request_id = run_with_wallet(settings, _faucet)
    typer.echo(f"Faucet request: {request_id}")


@app.command()
def delete(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Delete the wallet (the seed is lost unless backed up)."""
    settings = build_settings(None, data_dir, log_level)

    if not yes:
        typer.confirm("Delete the wallet? Funds are lost without the seed", abort=True)

    async def _delete(service: WalletService) -> None:
        await service.delete()

    run_with_wallet(settings, _delete, require_wallet=False)
    typer.echo("Wallet deleted")


@app.command()
def watch(
    api_endpoint: ApiEndpoint = None,
    data_dir: DataDir = None,
    log_level: LogLevel = None,
) -> None:
    """Keep the wallet in sync and print balances on every refresh."""
    settings = build_settings(api_endpoint, data_dir, log_level)

    async def _watch(service: WalletService) -> None:
        service.subscribe(lambda: print_wallet(service))
        print_wallet(service)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            logger.info("Stopping watch")

    try:
        run_with_wallet(settings, _watch)
    except KeyboardInterrupt:
        pass


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
