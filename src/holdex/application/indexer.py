"""
Direct-to-storage indexing: re-derive one epoch's signatures and mints from
upstream and commit them, bypassing the file caches. Used for targeted
re-indexing and for the catch-up sweep.
"""

from __future__ import annotations

import logging

from ..domain.epochs import epoch_of, epoch_slot_range
from ..domain.errors import RetriesExhausted
from ..domain.models import EpochSummary, MintRecord, SignatureRecord, utc_now_iso
from ..domain.value_types import Pubkey, Signature
from ..ports.rpc import LedgerRPC
from ..ports.storage import HolderStorage
from .committer import Clock, commit_epoch
from .pacing import Pacing
from .resolver import resolve_signature

logger = logging.getLogger(__name__)


async def fetch_signatures_for_epoch(
    rpc: LedgerRPC,
    epoch: int,
    *,
    account: Pubkey,
    pacing: Pacing,
) -> list[SignatureRecord]:
    start_slot, end_slot = epoch_slot_range(epoch)
    logger.info("[index] Epoch %d: fetching signatures (slots %d-%d)", epoch, start_slot, end_slot)

    found: list[SignatureRecord] = []
    before: Signature | None = None
    while True:
        # no partial epochs: RetriesExhausted propagates instead of ending the scan early
        page = await pacing.retry.run(
            lambda: rpc.get_signatures_for_address(account, before=before, limit=pacing.page_limit),
            label=f"epoch {epoch} signatures",
        )
        if not page:
            break
        found.extend(r for r in page if start_slot <= r.slot <= end_slot)
        if page[-1].slot < start_slot:
            break
        before = page[-1].signature
        logger.info("[index] Epoch %d: fetched page of %d (%d in range)", epoch, len(page), len(found))
        await pacing.sleep(pacing.page_delay_s)

    logger.info("[index] Epoch %d: found %d signatures", epoch, len(found))
    return found


async def fetch_mint_records(
    rpc: LedgerRPC,
    signatures: list[SignatureRecord],
    epoch: int,
    *,
    group: str,
    pacing: Pacing,
) -> list[MintRecord]:
    valid = [s for s in signatures if not s.failed]
    logger.info("[index] Epoch %d: processing %d transactions", epoch, len(valid))

    mints: list[MintRecord] = []
    for i, record in enumerate(valid, start=1):
        mint = await resolve_signature(rpc, record, group=group, retry=pacing.retry, tag="index")
        if mint is not None:
            mints.append(mint)
        if i % 50 == 0:
            logger.info("[index] Epoch %d: %d/%d processed (%d mints found)", epoch, i, len(valid), len(mints))
        await pacing.sleep(pacing.tx_delay_s)

    logger.info("[index] Epoch %d: found %d mints", epoch, len(mints))
    return mints


async def index_epoch(
    rpc: LedgerRPC,
    storage: HolderStorage,
    epoch: int,
    *,
    account: Pubkey,
    group: str,
    pacing: Pacing,
    clock: Clock = utc_now_iso,
) -> EpochSummary:
    signatures = await fetch_signatures_for_epoch(rpc, epoch, account=account, pacing=pacing)
    mints = await fetch_mint_records(rpc, signatures, epoch, group=group, pacing=pacing)
    return commit_epoch(storage, epoch, mints, clock=clock)


async def index_all(
    rpc: LedgerRPC,
    storage: HolderStorage,
    *,
    account: Pubkey,
    group: str,
    pacing: Pacing,
    start_epoch: int,
    end_epoch: int | None = None,
    clock: Clock = utc_now_iso,
) -> int:
    """
    Index `start_epoch..end_epoch` ascending, skipping epochs already in storage.
    The still-open current epoch is always re-indexed. Returns holders committed.
    """
    current_epoch = epoch_of(await rpc.get_slot())
    last = end_epoch if end_epoch is not None else current_epoch
    logger.info("[index] Indexing epochs %d to %d", start_epoch, last)

    indexed = storage.indexed_epochs()
    total = 0
    for epoch in range(start_epoch, last + 1):
        if epoch in indexed and epoch != current_epoch:
            logger.info("[index] Epoch %d: already indexed, skipping", epoch)
            continue
        try:
            summary = await index_epoch(rpc, storage, epoch, account=account, group=group, pacing=pacing, clock=clock)
        except RetriesExhausted as e:
            logger.error("[index] Epoch %d: not indexed, will retry on the next sweep: %s", epoch, e)
            continue
        total += summary.holder_count

    logger.info("[index] Done. Indexed %d holders.", total)
    return total


async def sync_latest(
    rpc: LedgerRPC,
    storage: HolderStorage,
    *,
    account: Pubkey,
    group: str,
    pacing: Pacing,
    start_epoch: int,
    clock: Clock = utc_now_iso,
) -> int:
    """Fill in missing epochs and refresh the current one."""
    return await index_all(rpc, storage, account=account, group=group, pacing=pacing,
                           start_epoch=start_epoch, clock=clock)
