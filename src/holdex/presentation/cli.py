import asyncio, logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import click
import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.cursor_json import JsonCursorStore
from ..adapters.epoch_store_json import signature_store, transaction_store
from ..adapters.parquet_sink import write_holders_parquet
from ..adapters.rpc_httpx import HttpxSolanaRPC
from ..adapters.sql_storage import SqlHolderStorage, create_storage
from ..application.committer import commit_cached_epochs
from ..application.holders import build_holders, seed_from_json, write_holders_json
from ..application.indexer import index_all, index_epoch, sync_latest
from ..application.queries import epochs_frame, holder_page
from ..application.resolver import resolve_all
from ..application.sync import sync_signatures
from ..core.config import DEFAULT_GROUP_ADDRESS, DEFAULT_START_EPOCH, DEFAULT_TRACKED_ACCOUNT, IndexerConfig
from ..domain.errors import CommitError, RetriesExhausted
from ..domain.value_types import Pubkey

app = typer.Typer(help="holdex: epoch-partitioned NFT holder indexer for one Solana account.", no_args_is_help=True)
console = Console()

T = TypeVar("T")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    rpc_url: Optional[str] = typer.Option(None, "--rpc", envvar="SOLANA_ENDPOINT", help="Solana RPC endpoint URL"),
    data_dir: Path = typer.Option(Path("data"), envvar="HOLDEX_DATA_DIR", help="Cursor and epoch cache directory"),
    database_url: Optional[str] = typer.Option(None, "--db", envvar="HOLDEX_DATABASE_URL",
                                               help="SQLAlchemy URL (default: SQLite under --data-dir)"),
    account: str = typer.Option(DEFAULT_TRACKED_ACCOUNT, envvar="HOLDEX_TRACKED_ACCOUNT", help="Tracked account"),
    group: str = typer.Option(DEFAULT_GROUP_ADDRESS, envvar="HOLDEX_GROUP_ADDRESS", help="Membership group address"),
    page_delay: float = typer.Option(0.2, help="Seconds between signature pages"),
    tx_delay: float = typer.Option(0.05, help="Seconds between transaction fetches"),
    max_retries: int = typer.Option(3, help="Attempts per upstream call"),
    log_level: str = typer.Option("INFO", help="DEBUG, INFO, WARNING, ERROR"),
):
    _setup_logging(log_level)
    ctx.obj = IndexerConfig(
        rpc_url=rpc_url,
        tracked_account=account,
        group_address=group,
        data_dir=data_dir,
        database_url=database_url,
        page_delay_s=page_delay,
        tx_delay_s=tx_delay,
        max_retries=max_retries,
    )


def _cfg(ctx: typer.Context) -> IndexerConfig:
    return ctx.obj


def _storage(cfg: IndexerConfig) -> SqlHolderStorage:
    return create_storage(cfg.storage_url)


def _run_with_rpc(cfg: IndexerConfig, fn: Callable[[HttpxSolanaRPC], Awaitable[T]]) -> T:
    if not cfg.rpc_url:
        raise click.UsageError("SOLANA_ENDPOINT env var not set (or pass --rpc).")

    async def run() -> T:
        rpc = HttpxSolanaRPC(cfg.rpc_url, timeout_s=cfg.timeout_s)
        try:
            return await fn(rpc)
        finally:
            await rpc.aclose()

    try:
        return asyncio.run(run())
    except (CommitError, RetriesExhausted) as e:
        raise click.ClickException(str(e))


def _print_stats(title: str, stats: dict[str, Any]) -> None:
    console.print(f"[bold]{title}[/]: " + "  ".join(f"{k}={v}" for k, v in stats.items()))


@app.command()
def sync(ctx: typer.Context):
    """Forward-sync new signatures, then continue the backfill."""
    cfg = _cfg(ctx)
    cursor = _run_with_rpc(cfg, lambda rpc: sync_signatures(
        rpc, JsonCursorStore(cfg.cursor_path), signature_store(cfg.signatures_dir),
        account=Pubkey(cfg.tracked_account), pacing=cfg.pacing(),
    ))
    _print_stats("sync", {"backfill_complete": cursor.backfill_complete, "version": cursor.version})


@app.command()
def resolve(ctx: typer.Context):
    """Resolve every cached signature not yet processed."""
    cfg = _cfg(ctx)
    stats = _run_with_rpc(cfg, lambda rpc: resolve_all(
        rpc, signature_store(cfg.signatures_dir), transaction_store(cfg.transactions_dir),
        group=cfg.group_address, pacing=cfg.pacing(),
    ))
    _print_stats("resolve", stats)


@app.command()
def commit(ctx: typer.Context, epoch: Optional[List[int]] = typer.Option(None, "--epoch", help="Repeat to select epochs")):
    """Commit cached mints to the database, one transaction per epoch."""
    cfg = _cfg(ctx)
    try:
        summaries = commit_cached_epochs(_storage(cfg), transaction_store(cfg.transactions_dir), epochs=epoch or None)
    except CommitError as e:
        raise click.ClickException(str(e))
    _print_stats("commit", {"epochs": len(summaries), "holders": sum(s.holder_count for s in summaries)})


def _summary_table(genesis: str, cfg: IndexerConfig) -> Table:
    t = Table(title="Summary", show_header=False)
    t.add_row("genesis", genesis)
    t.add_row("account", cfg.tracked_account)
    t.add_row("group", cfg.group_address)
    return t


@app.command()
def run(ctx: typer.Context):
    """Full pipeline: sync → resolve → commit."""
    cfg = _cfg(ctx)
    pacing = cfg.pacing()
    sigs, txs = signature_store(cfg.signatures_dir), transaction_store(cfg.transactions_dir)

    async def pipeline(rpc: HttpxSolanaRPC) -> dict[str, Any]:
        console.print(_summary_table(await rpc.genesis_hash(), cfg))
        await sync_signatures(rpc, JsonCursorStore(cfg.cursor_path), sigs,
                              account=Pubkey(cfg.tracked_account), pacing=pacing)
        return await resolve_all(rpc, sigs, txs, group=cfg.group_address, pacing=pacing)

    stats = _run_with_rpc(cfg, pipeline)
    try:
        summaries = commit_cached_epochs(_storage(cfg), txs)
    except CommitError as e:
        raise click.ClickException(str(e))
    _print_stats("run", {**stats, "committed_epochs": len(summaries)})


@app.command("index-epoch")
def index_epoch_cmd(ctx: typer.Context, epoch: int):
    """Re-index one epoch straight from upstream into the database."""
    cfg = _cfg(ctx)
    storage = _storage(cfg)
    summary = _run_with_rpc(cfg, lambda rpc: index_epoch(
        rpc, storage, epoch, account=Pubkey(cfg.tracked_account), group=cfg.group_address, pacing=cfg.pacing(),
    ))
    _print_stats(f"epoch {epoch}", {"holders": summary.holder_count})


@app.command("index-all")
def index_all_cmd(
    ctx: typer.Context,
    start_epoch: int = typer.Option(DEFAULT_START_EPOCH, help="First epoch to index"),
    end_epoch: Optional[int] = typer.Option(None, help="Last epoch (default: current)"),
):
    """Index every missing epoch in a range; the current epoch is always refreshed."""
    cfg = _cfg(ctx)
    storage = _storage(cfg)
    total = _run_with_rpc(cfg, lambda rpc: index_all(
        rpc, storage, account=Pubkey(cfg.tracked_account), group=cfg.group_address, pacing=cfg.pacing(),
        start_epoch=start_epoch, end_epoch=end_epoch,
    ))
    _print_stats("index-all", {"holders": total})


@app.command("sync-latest")
def sync_latest_cmd(ctx: typer.Context):
    """Catch the database up to the current epoch."""
    cfg = _cfg(ctx)
    storage = _storage(cfg)
    total = _run_with_rpc(cfg, lambda rpc: sync_latest(
        rpc, storage, account=Pubkey(cfg.tracked_account), group=cfg.group_address, pacing=cfg.pacing(),
        start_epoch=cfg.start_epoch,
    ))
    _print_stats("sync-latest", {"holders": total})


@app.command("build-holders")
def build_holders_cmd(
    ctx: typer.Context,
    out: Optional[Path] = typer.Option(None, help="JSON output (default: <data-dir>/holders.json)"),
    parquet: Optional[Path] = typer.Option(None, help="Also write a Parquet file here"),
):
    """Export cached mints as a holders list."""
    cfg = _cfg(ctx)
    holders = build_holders(transaction_store(cfg.transactions_dir))
    write_holders_json(str(out or cfg.holders_json_path), holders)
    if parquet:
        write_holders_parquet(str(parquet), holders)
    _print_stats("build-holders", {"holders": len(holders)})


@app.command()
def seed(ctx: typer.Context, path: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Load a holders JSON export into the database."""
    cfg = _cfg(ctx)
    try:
        summaries = seed_from_json(_storage(cfg), str(path))
    except CommitError as e:
        raise click.ClickException(str(e))
    _print_stats("seed", {"epochs": len(summaries), "holders": sum(s.holder_count for s in summaries)})


@app.command()
def status(ctx: typer.Context):
    """Show the sync cursor and per-epoch cache progress."""
    cfg = _cfg(ctx)
    cursor = JsonCursorStore(cfg.cursor_path).load()
    _print_stats("cursor", {
        "newest": cursor.newest_signature, "oldest": cursor.oldest_signature,
        "backfill_complete": cursor.backfill_complete, "last_synced_at": cursor.last_synced_at,
        "version": cursor.version,
    })
    sigs, txs = signature_store(cfg.signatures_dir), transaction_store(cfg.transactions_dir)
    table = Table("epoch", "signatures", "processed", "mints")
    for e in sigs.epochs():
        t = txs.get(e)
        table.add_row(str(e), str(len(sigs.get(e))), str(len(t.processed)), str(len(t.mints)))
    console.print(table)


@app.command()
def holders(
    ctx: typer.Context,
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(20, min=1, max=100),
):
    """List committed holders, paginated."""
    res = holder_page(_storage(_cfg(ctx)), page, limit)
    table = Table("holder", "mint", "epoch", "slot", title=f"page {res.page}/{res.pages} ({res.total} holders)")
    for h in res.holders:
        table.add_row(h.holder, h.mint, str(h.epoch), str(h.slot))
    console.print(table)


@app.command()
def holder(ctx: typer.Context, wallet: str):
    """Look up the mints held by one wallet."""
    rows = _storage(_cfg(ctx)).holders_by_wallet(wallet)
    if not rows:
        console.print(f"{wallet} is not a holder")
        raise typer.Exit(code=1)
    table = Table("mint", "ata", "epoch", "slot", "block_time", "signature")
    for h in rows:
        table.add_row(h.mint, h.ata, str(h.epoch), str(h.slot), str(h.block_time), h.signature)
    console.print(table)


@app.command()
def epochs(ctx: typer.Context):
    """Indexed epochs with holder counts and running totals."""
    df = epochs_frame(_storage(_cfg(ctx)))
    table = Table(*df.columns)
    for row in df.itertuples(index=False):
        table.add_row(*("" if pd.isna(v) else str(v) for v in row))
    console.print(table)


if __name__ == "__main__":
    app()
