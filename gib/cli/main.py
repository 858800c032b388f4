"""CLI entry point for the Solana holder, minter and metadata snapshot tool.

Usage:
    gib get-hashlist CREATOR_ADDRESS --rpc-url https://api.mainnet-beta.solana.com
    gib get-hashlist CANDY_MACHINE_ID --candy-machine
    gib snapshot-holders --vault-address VAULT
    gib snapshot-metadata --hashlist hashlist.json
    gib get-minters-information --fresh
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..core.config import Settings
from ..core.exceptions import ConfigurationError, GibError
from ..output.audit_trail import AuditTrailFormatter
from ..output.formatters import ProgressReporter, SummaryFormatter
from ..pipeline.hashlist import HashlistGenerator
from ..pipeline.holders import HolderSnapshotter
from ..pipeline.metadata import MetadataCache
from ..pipeline.minters import MinterScanner
from ..providers.base import BaseProvider
from ..providers.metaplex import is_valid_address
from ..providers.offchain import OffChainJSONProvider
from ..providers.solana_rpc import SolanaRPCProvider
from ..resolution.custody_resolver import CustodyResolver
from ..storage.csv_store import MINTERS_FILE, MinterReport
from ..storage.json_store import (
    HASHLIST_FILE,
    HOLDERS_FILE,
    METADATA_FILE,
    MetadataStore,
    load_hashlist,
    save_hashlist,
)

# Initialize app
app = typer.Typer(
    name="gib",
    help="Solana NFT hashlist, holder, minter and metadata snapshots",
    add_completion=False,
)

console = Console()

logger = logging.getLogger(__name__)

# Shared options
RPC_URL_OPTION = typer.Option(
    None,
    "--rpc-url", "-r",
    help="Solana JSON-RPC endpoint (default: GIB_RPC_URL)",
)
CONCURRENCY_OPTION = typer.Option(
    None,
    "--concurrency", "-j",
    help="Tokens processed at once (default: 1, sequential)",
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Path to a YAML settings file",
)
HASHLIST_OPTION = typer.Option(
    Path(HASHLIST_FILE),
    "--hashlist",
    help="Hashlist JSON file (array of mint addresses)",
)
AUDIT_OPTION = typer.Option(
    False,
    "--audit", "-a",
    help="Show a summary of the RPC and HTTP calls made",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose", "-v",
    help="Enable verbose logging",
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_settings(config: Optional[Path], **overrides: Any) -> Settings:
    """Load settings and apply command-line overrides."""
    try:
        return Settings.load(config_file=config).merge(overrides, origin="command line")
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)


def build_ledger(settings: Settings) -> SolanaRPCProvider:
    try:
        rpc_url = settings.require_rpc_url()
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)

    return SolanaRPCProvider(
        rpc_url,
        rate_limit_calls=settings.rate_limit_calls,
        rate_limit_period=settings.rate_limit_period,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )


def read_hashlist(path: Path) -> list[str]:
    try:
        hashlist = load_hashlist(path)
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)

    if not hashlist:
        console.print(f"[red]No tokens found in {path}[/]")
        raise typer.Exit(1)
    return hashlist


def run_async(
    coro: Coroutine[Any, Any, Any],
    providers: list[BaseProvider],
    audit: bool = False,
    verbose: bool = False,
) -> Any:
    """Run a command coroutine, turning tool errors into exit status 1."""
    try:
        return asyncio.run(coro)
    except GibError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)
    finally:
        if audit:
            entries = [entry for provider in providers for entry in provider.get_audit_trail()]
            console.print(AuditTrailFormatter().format_table(entries))


@app.command("get-hashlist")
def get_hashlist(
    address: str = typer.Argument(..., help="Creator address, or Candy Machine ID with --candy-machine"),
    candy_machine: bool = typer.Option(
        False,
        "--candy-machine", "-c",
        help="Treat ADDRESS as a Candy Machine v2 ID",
    ),
    creator_position: int = typer.Option(
        1,
        "--creator-position", "-p",
        min=1,
        max=5,
        help="Position of ADDRESS in the creators list",
    ),
    output: Path = typer.Option(
        Path(HASHLIST_FILE),
        "--output", "-o",
        help="Output file",
    ),
    rpc_url: Optional[str] = RPC_URL_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    audit: bool = AUDIT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """
    Build the hashlist of a collection.

    Lists every mint whose metadata names ADDRESS as a creator, or, with
    --candy-machine, every mint of a Candy Machine v2.
    """
    setup_logging(verbose)

    if not is_valid_address(address):
        console.print(f"[red]Invalid address: {address}[/]")
        raise typer.Exit(1)

    settings = load_settings(config, rpc_url=rpc_url)
    ledger = build_ledger(settings)
    generator = HashlistGenerator(ledger)

    if candy_machine:
        coro = generator.from_candy_machine(address)
    else:
        coro = generator.from_creator(address, position=creator_position)

    hashlist = run_async(coro, [ledger], audit=audit, verbose=verbose)

    save_hashlist(output, hashlist)
    console.print(f"[green]Saved {len(hashlist)} mints to {output}[/]")


@app.command("snapshot-holders")
def snapshot_holders(
    hashlist_path: Path = HASHLIST_OPTION,
    vault_address: Optional[str] = typer.Option(
        None,
        "--vault-address",
        help="Custody vault whose tokens are attributed to the depositor (default: GIB_VAULT_ADDRESS)",
    ),
    output: Path = typer.Option(
        Path(HOLDERS_FILE),
        "--output", "-o",
        help="Output file",
    ),
    top: int = typer.Option(
        0,
        "--top",
        help="Print the N largest holders",
    ),
    rpc_url: Optional[str] = RPC_URL_OPTION,
    concurrency: Optional[int] = CONCURRENCY_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    audit: bool = AUDIT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """
    Snapshot the owner of every token in the hashlist.

    Writes {owner: {amount, mints}} to the output file. Tokens whose
    owner cannot be resolved are skipped and listed with --verbose.
    """
    setup_logging(verbose)

    settings = load_settings(
        config,
        rpc_url=rpc_url,
        vault_address=vault_address,
        concurrency=concurrency,
    )
    hashlist = read_hashlist(hashlist_path)
    ledger = build_ledger(settings)

    snapshotter = HolderSnapshotter(
        ledger,
        resolver=CustodyResolver(ledger, vault_address=settings.vault_address),
        concurrency=settings.concurrency,
    )

    with ProgressReporter(console, "Fetching owners", enabled=not verbose) as reporter:
        snapshot, summary = run_async(
            snapshotter.run(hashlist, output, progress=reporter.update),
            [ledger],
            audit=audit,
            verbose=verbose,
        )

    formatter = SummaryFormatter()
    formatter.print(console, summary, verbose=verbose)
    console.print(f"Total mints: {snapshot.total_mints}")
    console.print(f"Total holders: {snapshot.total_holders}")
    if top > 0:
        console.print(formatter.format_holders(snapshot, top=top))


@app.command("snapshot-metadata")
def snapshot_metadata(
    hashlist_path: Path = HASHLIST_OPTION,
    output: Path = typer.Option(
        Path(METADATA_FILE),
        "--output", "-o",
        help="Metadata cache file; existing entries are kept and not fetched again",
    ),
    strict_json: bool = typer.Option(
        False,
        "--strict-json",
        help="Stop on metadata JSON that cannot be fetched instead of storing null",
    ),
    rpc_url: Optional[str] = RPC_URL_OPTION,
    concurrency: Optional[int] = CONCURRENCY_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    audit: bool = AUDIT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """
    Cache the on-chain and off-chain metadata of every token.

    The run can be interrupted and restarted: tokens already in the cache
    file are skipped without any network call.
    """
    setup_logging(verbose)

    settings = load_settings(config, rpc_url=rpc_url, concurrency=concurrency)
    hashlist = read_hashlist(hashlist_path)
    ledger = build_ledger(settings)
    json_provider = OffChainJSONProvider(
        rate_limit_calls=settings.rate_limit_calls,
        rate_limit_period=settings.rate_limit_period,
        timeout=settings.request_timeout,
    )

    try:
        store = MetadataStore(output)
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)

    cache = MetadataCache(
        ledger,
        json_provider,
        store,
        concurrency=settings.concurrency,
        strict_json=strict_json,
    )

    with ProgressReporter(console, "Fetching metadata", enabled=not verbose) as reporter:
        summary = run_async(
            cache.run(hashlist, progress=reporter.update),
            [ledger, json_provider],
            audit=audit,
            verbose=verbose,
        )

    SummaryFormatter().print(console, summary, verbose=verbose)
    console.print(f"Cached entries: {len(store)}")


@app.command("get-minters-information")
def get_minters_information(
    hashlist_path: Path = HASHLIST_OPTION,
    output: Path = typer.Option(
        Path(MINTERS_FILE),
        "--output", "-o",
        help="CSV report; tokens already in it are not scanned again",
    ),
    fresh: bool = typer.Option(
        False,
        "--fresh",
        help="Discard an existing report and start over",
    ),
    rpc_url: Optional[str] = RPC_URL_OPTION,
    concurrency: Optional[int] = CONCURRENCY_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    audit: bool = AUDIT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """
    Report the minter, mint price and mint date of every token.

    The earliest finalized transaction of each mint is taken as its mint
    transaction and its fee payer as the minter.
    """
    setup_logging(verbose)

    settings = load_settings(config, rpc_url=rpc_url, concurrency=concurrency)
    hashlist = read_hashlist(hashlist_path)
    ledger = build_ledger(settings)
    report = MinterReport(output, fresh=fresh)

    scanner = MinterScanner(ledger, report, concurrency=settings.concurrency)

    with ProgressReporter(console, "Fetching minters", enabled=not verbose) as reporter:
        summary = run_async(
            scanner.scan(hashlist, progress=reporter.update),
            [ledger],
            audit=audit,
            verbose=verbose,
        )

    SummaryFormatter().print(console, summary, verbose=verbose)


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    console.print(f"gib v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
