"""
Command-line interface for the multi-chain wallet.
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from chainwallet.accessors import get_accessor
from chainwallet.config import Settings, get_settings
from chainwallet.exceptions import WalletError
from chainwallet.explorer import get_explorer_url
from chainwallet.fees import FeeEstimator, fee_unit
from chainwallet.keys import derive_bitcoin_keys
from chainwallet.models import ChainId, ChainKind, FeeTier, TransactionRequest, parse_chain
from chainwallet.orchestrator import TransferOrchestrator
from chainwallet.units import btc_to_sats

app = typer.Typer(
    name="chainwallet",
    help="Multi-chain wallet: balances, fee rates and Bitcoin transfers",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_mnemonic(mnemonic: str | None, mnemonic_file: Path | None) -> str:
    """
    Load mnemonic from argument, file, or environment variable.

    Priority:
    1. --mnemonic argument (or MNEMONIC env var through typer)
    2. --mnemonic-file argument
    3. MNEMONIC_FILE environment variable
    """
    if mnemonic:
        return mnemonic.strip()

    actual_file = mnemonic_file
    if not actual_file and os.environ.get("MNEMONIC_FILE"):
        actual_file = Path(os.environ["MNEMONIC_FILE"])

    if actual_file:
        if not actual_file.exists():
            raise ValueError(f"Mnemonic file not found: {actual_file}")
        return actual_file.read_text().strip()

    raise ValueError("Mnemonic required. Use --mnemonic, --mnemonic-file, or MNEMONIC env var")


def _parse_network(network: str) -> ChainId:
    try:
        return parse_chain(network)
    except WalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except WalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)


MnemonicOption = Annotated[
    str | None, typer.Option("--mnemonic", envvar="MNEMONIC", help="Wallet mnemonic phrase")
]
MnemonicFileOption = Annotated[
    Path | None, typer.Option("--mnemonic-file", "-f", help="Path to mnemonic file")
]
PassphraseOption = Annotated[
    str, typer.Option("--passphrase", envvar="MNEMONIC_PASSPHRASE", help="BIP39 passphrase")
]
LogLevelOption = Annotated[
    str | None,
    typer.Option("--log-level", "-l", help="Log level (default: CHAINWALLET_LOG_LEVEL or INFO)"),
]


@app.command()
def addresses(
    mnemonic: MnemonicOption = None,
    mnemonic_file: MnemonicFileOption = None,
    passphrase: PassphraseOption = "",
    account: Annotated[int, typer.Option("--account", help="BIP84 account index")] = 0,
    log_level: LogLevelOption = None,
) -> None:
    """Show the wallet's Bitcoin receive addresses."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    try:
        resolved = load_mnemonic(mnemonic, mnemonic_file)
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    for chain in (ChainId.BTC, ChainId.BTC_TESTNET):
        keys = derive_bitcoin_keys(resolved, chain, account=account, passphrase=passphrase)
        typer.echo(f"{chain.value.upper():<12} {keys.address}")


@app.command()
def balance(
    network: Annotated[
        str, typer.Option("--network", "-n", help="btc, btctestnet, eth, base, xrp, xrptestnet")
    ] = "btc",
    address: Annotated[
        str | None, typer.Option("--address", "-a", help="Address to query")
    ] = None,
    mnemonic: MnemonicOption = None,
    mnemonic_file: MnemonicFileOption = None,
    passphrase: PassphraseOption = "",
    log_level: LogLevelOption = None,
) -> None:
    """Check an address balance."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    chain = _parse_network(network)

    if not address:
        if chain.kind != ChainKind.UTXO:
            logger.error(f"--address is required for {chain.value}")
            raise typer.Exit(1)
        try:
            resolved = load_mnemonic(mnemonic, mnemonic_file)
        except ValueError as e:
            logger.error(str(e))
            raise typer.Exit(1)
        address = derive_bitcoin_keys(resolved, chain, passphrase=passphrase).address

    _run(_show_balance(chain, address, settings))


async def _show_balance(chain: ChainId, address: str, settings: Settings) -> None:
    typer.echo(f"\nFetching balance for {chain.value.upper()} address: {address}")
    accessor = get_accessor(chain, settings)
    try:
        await accessor.initialize()
        amount = await accessor.fetch_balance(address)
    finally:
        await accessor.disconnect()

    if chain.kind == ChainKind.UTXO:
        typer.echo(f"\nBalance: {btc_to_sats(amount)} satoshis ({amount:.8f} BTC)")
    elif chain in (ChainId.XRP, ChainId.XRP_TESTNET):
        typer.echo(f"\nBalance: {amount:.6f} XRP")
    else:
        typer.echo(f"\nBalance: {amount} {chain.symbol}")


@app.command()
def gas(
    network: Annotated[str, typer.Option("--network", "-n", help="Network")] = "btc",
    log_level: LogLevelOption = None,
) -> None:
    """Check current fee rates."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    chain = _parse_network(network)
    _run(_show_fees(chain, settings))


async def _show_fees(chain: ChainId, settings: Settings) -> None:
    estimator = FeeEstimator(settings)
    try:
        fees = await estimator.fetch_gas_fees(chain)
    finally:
        await estimator.close()

    unit = fee_unit(chain)
    typer.echo(f"\nCurrent {chain.value.upper()} Fees:")
    typer.echo(f"Low: {fees.low} {unit}")
    typer.echo(f"Medium: {fees.medium} {unit}")
    typer.echo(f"High: {fees.high} {unit}")


@app.command()
def send(
    to: Annotated[str, typer.Option("--to", "-t", help="Recipient address")],
    amount: Annotated[float, typer.Option("--amount", "-a", help="Amount in BTC")],
    network: Annotated[str, typer.Option("--network", "-n", help="btc | btctestnet")] = "btc",
    fee: Annotated[FeeTier, typer.Option("--fee", help="Fee level")] = FeeTier.MEDIUM,
    mnemonic: MnemonicOption = None,
    mnemonic_file: MnemonicFileOption = None,
    passphrase: PassphraseOption = "",
    account: Annotated[int, typer.Option("--account", help="BIP84 account index")] = 0,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    log_level: LogLevelOption = None,
) -> None:
    """Send bitcoin."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    chain = _parse_network(network)

    if chain.kind != ChainKind.UTXO:
        logger.error(f"Sending on {chain.value} is not supported")
        raise typer.Exit(1)
    if amount <= 0:
        logger.error("Amount must be greater than 0")
        raise typer.Exit(1)

    try:
        resolved = load_mnemonic(mnemonic, mnemonic_file)
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    keys = derive_bitcoin_keys(resolved, chain, account=account, passphrase=passphrase)

    divider = "-" * 50
    typer.echo(f"\n{divider}\nTransaction Details\n{divider}")
    typer.echo(f" Network:   {chain.value.upper()}")
    typer.echo(f" From:      {keys.address}")
    typer.echo(f" To:        {to}")
    typer.echo(f" Amount:    {amount} BTC")
    typer.echo(f" Fee Level: {fee.value}")
    typer.echo(f"{divider}\n")

    if not yes and not typer.confirm("Proceed with transaction?", default=False):
        typer.echo("Transaction cancelled")
        return

    request = TransactionRequest(
        network=chain,
        sender_address=keys.address,
        recipient_address=to,
        amount=amount,
    )
    _run(_send(request, keys.private_key, keys.public_key, fee, settings))


async def _send(
    request: TransactionRequest,
    private_key: str,
    public_key: str,
    fee: FeeTier,
    settings: Settings,
) -> None:
    orchestrator = TransferOrchestrator(settings)
    result = await orchestrator.send_transaction(request, private_key, public_key, fee)

    typer.echo("\nTransaction sent successfully!")
    typer.echo(f"Transaction Hash: {result.tx_hash}")
    typer.echo(f"Fee Rate: {result.fee_rate} sat/vB")
    typer.echo(f"Total Fee: {result.total_fee} sats")
    explorer_url = get_explorer_url(request.network, result.tx_hash)
    if explorer_url:
        typer.echo(f"\nView transaction: {explorer_url}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
