from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from ..domain.models import EpochSummary, HolderRecord, MintRecord, utc_now_iso
from ..ports.storage import HolderStorage
from .resolver import TransactionStore

logger = logging.getLogger(__name__)

Clock = Callable[[], str]


def canonical_mints(epoch: int, mints: Iterable[MintRecord]) -> list[MintRecord]:
    """Order by (slot, signature) and keep the earliest event per signature and per mint."""
    out: list[MintRecord] = []
    seen_sigs: set[str] = set()
    seen_mints: set[str] = set()
    for m in sorted(mints, key=lambda m: (m.slot, m.signature)):
        if m.signature in seen_sigs or m.mint in seen_mints:
            logger.warning("[commit] Epoch %d: dropping duplicate event %s (mint %s)", epoch, m.signature, m.mint)
            continue
        seen_sigs.add(m.signature); seen_mints.add(m.mint)
        out.append(m)
    return out


def summarize_epoch(epoch: int, mints: Sequence[MintRecord], indexed_at: str) -> EpochSummary:
    times = [m.block_time for m in mints if m.block_time is not None]
    return EpochSummary(
        epoch=epoch,
        holder_count=len(mints),
        first_block_time=min(times) if times else None,
        last_block_time=max(times) if times else None,
        indexed_at=indexed_at,
    )


def commit_epoch(
    storage: HolderStorage,
    epoch: int,
    mints: Iterable[MintRecord],
    *,
    clock: Clock = utc_now_iso,
) -> EpochSummary:
    """
    Make storage hold exactly `mints` for `epoch`.

    Delete, insert and summary upsert run as one storage transaction, so a
    failure leaves the previous state intact (CommitError) and a re-run with
    the same input converges to the same rows.
    """
    rows = canonical_mints(epoch, mints)
    summary = summarize_epoch(epoch, rows, clock())
    storage.replace_epoch(summary, [HolderRecord.from_mint(m, epoch) for m in rows])
    logger.info("[commit] Epoch %d: committed %d holders to database", epoch, summary.holder_count)
    return summary


def commit_cached_epochs(
    storage: HolderStorage,
    transactions: TransactionStore,
    *,
    epochs: Iterable[int] | None = None,
    clock: Clock = utc_now_iso,
) -> list[EpochSummary]:
    """Commit every cached epoch in ascending order; the first CommitError propagates."""
    todo = sorted(epochs) if epochs is not None else transactions.epochs()
    return [commit_epoch(storage, e, transactions.get(e).mints, clock=clock) for e in todo]
