from __future__ import annotations

import logging

from ..domain.errors import RetriesExhausted, TransactionParseError
from ..domain.extraction import extract_mint
from ..domain.models import EpochTransactions, MintRecord, SignatureRecord
from ..ports.cache import EpochStore
from ..ports.rpc import LedgerRPC
from .pacing import Pacing
from .retry import RetryPolicy
from .signature_cache import SignatureStore
from .utils import Progress, short

logger = logging.getLogger(__name__)

TransactionStore = EpochStore[EpochTransactions]


async def resolve_signature(
    rpc: LedgerRPC,
    record: SignatureRecord,
    *,
    group: str,
    retry: RetryPolicy,
    tag: str = "tx-fetch",
) -> MintRecord | None:
    """
    Fetch one transaction and apply the mint predicate.

    Every outcome other than a match returns None, and the caller marks the
    signature processed either way. Skips are logged by cause so they can be
    followed up by hand.
    """
    label = short(record.signature)
    try:
        tx = await retry.run(lambda: rpc.get_transaction(record.signature), label=label)
    except RetriesExhausted as e:
        logger.error("[%s] Epoch %d: skipping %s after %d failures: %s",
                     tag, record.epoch, label, e.attempts, e.last_error)
        return None
    except TransactionParseError as e:
        logger.warning("[%s] Epoch %d: skipping %s, unparseable payload: %s", tag, record.epoch, label, e)
        return None

    if tx is None:
        logger.warning("[%s] Epoch %d: skipping %s, transaction not found", tag, record.epoch, label)
        return None
    return extract_mint(tx, group, record)


def pending_signatures(signatures: list[SignatureRecord], txs: EpochTransactions) -> list[SignatureRecord]:
    """Signatures still to resolve: not yet processed and not failed on-ledger."""
    return [s for s in signatures if not s.failed and not txs.is_processed(s.signature)]


async def resolve_epoch(
    rpc: LedgerRPC,
    signatures: SignatureStore,
    transactions: TransactionStore,
    epoch: int,
    *,
    group: str,
    pacing: Pacing,
    progress: Progress | None = None,
) -> EpochTransactions:
    sigs = signatures.get(epoch)
    txs = transactions.get(epoch)
    todo = pending_signatures(sigs, txs)
    if progress is None:
        progress = Progress(total=len(todo))

    if not todo:
        logger.info("[tx-fetch] Epoch %d: all %d signatures already processed", epoch, len(sigs))
        return txs

    logger.info("[tx-fetch] Epoch %d: %d signatures to process (%d already done)",
                epoch, len(todo), len(txs.processed))

    since_save = 0
    for record in todo:
        mint = await resolve_signature(rpc, record, group=group, retry=pacing.retry)
        txs.mark_processed(record.signature, mint)
        since_save += 1
        progress.processed += 1

        if since_save >= pacing.save_interval:
            transactions.put(epoch, txs)
            since_save = 0
            logger.info(
                "[tx-fetch] Epoch %d: saved progress (%d processed, %d mints) | %.1f%% overall, ETA %s",
                epoch, len(txs.processed), len(txs.mints), progress.pct(), progress.eta(),
            )

        await pacing.sleep(pacing.tx_delay_s)

    transactions.put(epoch, txs)
    logger.info("[tx-fetch] Epoch %d: complete (%d processed, %d mints)", epoch, len(txs.processed), len(txs.mints))
    return txs


async def resolve_all(
    rpc: LedgerRPC,
    signatures: SignatureStore,
    transactions: TransactionStore,
    *,
    group: str,
    pacing: Pacing,
) -> dict[str, int]:
    epochs = signatures.epochs()
    total = sum(len(pending_signatures(signatures.get(e), transactions.get(e))) for e in epochs)
    progress = Progress(total=total)
    logger.info("[tx-fetch] Found %d epochs, %d signatures to resolve", len(epochs), total)

    mints = 0
    for i, epoch in enumerate(epochs, start=1):
        logger.info("[tx-fetch] [%d/%d %d%%] Starting epoch %d", i, len(epochs), round(100 * i / len(epochs)), epoch)
        txs = await resolve_epoch(rpc, signatures, transactions, epoch, group=group, pacing=pacing, progress=progress)
        mints += len(txs.mints)

    logger.info("[tx-fetch] All epochs processed")
    return {"epochs": len(epochs), "resolved": progress.processed, "mints": mints}
