"""Signature crawl: forward sync from the cursor tip, then one-time backfill to genesis."""

from __future__ import annotations

import logging

from ..domain.errors import RetriesExhausted
from ..domain.models import SignatureRecord, SyncCursor
from ..domain.value_types import Pubkey, Signature
from ..ports.cache import CursorStore
from ..ports.rpc import LedgerRPC
from .pacing import Pacing
from .signature_cache import SignatureStore, append_signatures, prepend_signatures
from .utils import short

logger = logging.getLogger(__name__)


async def fetch_page(
    rpc: LedgerRPC,
    account: Pubkey,
    pacing: Pacing,
    *,
    before: Signature | None = None,
    until: Signature | None = None,
) -> list[SignatureRecord] | None:
    """One signature page under the retry policy; None when retries ran out."""
    try:
        return await pacing.retry.run(
            lambda: rpc.get_signatures_for_address(account, before=before, until=until, limit=pacing.page_limit),
            label=f"signatures before={before and short(before)} until={until and short(until)}",
        )
    except RetriesExhausted as e:
        logger.error("%s", e)
        return None


async def forward_sync(
    rpc: LedgerRPC,
    cursors: CursorStore,
    signatures: SignatureStore,
    cursor: SyncCursor,
    *,
    account: Pubkey,
    pacing: Pacing,
) -> SyncCursor:
    if not cursor.newest_signature:
        logger.info("[forward] No previous cursor, skipping forward sync.")
        return cursor

    until = cursor.newest_signature
    logger.info("[forward] Fetching signatures newer than %s", short(until))
    found: list[SignatureRecord] = []
    before: Signature | None = None

    while True:
        page = await fetch_page(rpc, account, pacing, before=before, until=until)
        if page is None:
            # nothing written yet; the next run re-pages the same gap
            logger.error("[forward] Aborted after %d signatures, cursor left at %s", len(found), short(until))
            return cursor
        if not page:
            break
        found.extend(page)
        before = page[-1].signature
        logger.info("[forward] Fetched %d signatures (total new: %d)", len(page), len(found))
        await pacing.sleep(pacing.page_delay_s)

    if not found:
        logger.info("[forward] No new signatures found.")
        return cursor

    # pages arrive newest first, so one prepend of the whole run keeps each epoch file newest first
    added = prepend_signatures(signatures, found)
    cursor = cursor.with_newest(found[0].signature)
    cursors.save(cursor)
    logger.info("[forward] Added %d new signatures.", added)
    return cursor


async def backfill(
    rpc: LedgerRPC,
    cursors: CursorStore,
    signatures: SignatureStore,
    cursor: SyncCursor,
    *,
    account: Pubkey,
    pacing: Pacing,
) -> SyncCursor:
    if cursor.backfill_complete:
        logger.info("[backfill] Already complete, skipping.")
        return cursor

    logger.info("[backfill] Starting backfill from %s", short(cursor.oldest_signature) if cursor.oldest_signature else "tip")
    before = cursor.oldest_signature
    total_added = 0

    while True:
        page = await fetch_page(rpc, account, pacing, before=before)
        if page is None:
            logger.error("[backfill] Stopped early; resume from %s next run", before and short(before))
            return cursor
        if not page:
            cursor = cursor.completed()
            cursors.save(cursor)
            logger.info("[backfill] Complete. Total added this run: %d", total_added)
            return cursor

        total_added += append_signatures(signatures, page)
        oldest = page[-1]
        # persisted before the next request: a crash loses at most the page in flight
        cursor = cursor.with_backfill_page(page[0].signature, oldest.signature)
        cursors.save(cursor)
        before = oldest.signature
        logger.info(
            "[backfill] Fetched %d signatures (total this run: %d, oldest slot: %d)",
            len(page), total_added, oldest.slot,
        )
        await pacing.sleep(pacing.page_delay_s)


async def sync_signatures(
    rpc: LedgerRPC,
    cursors: CursorStore,
    signatures: SignatureStore,
    *,
    account: Pubkey,
    pacing: Pacing,
) -> SyncCursor:
    cursor = cursors.load()
    cursor = await forward_sync(rpc, cursors, signatures, cursor, account=account, pacing=pacing)
    cursor = await backfill(rpc, cursors, signatures, cursor, account=account, pacing=pacing)
    logger.info("[sync] Done. Backfill complete: %s, last synced: %s", cursor.backfill_complete, cursor.last_synced_at)
    return cursor
