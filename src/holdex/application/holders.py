from __future__ import annotations

import json
import logging
from collections import defaultdict

from ..adapters._atomic import atomic_write_text
from ..domain.models import EpochSummary, HolderRecord, utc_now_iso
from ..ports.storage import HolderStorage
from .committer import Clock, commit_epoch
from .resolver import TransactionStore

logger = logging.getLogger(__name__)


def build_holders(transactions: TransactionStore) -> list[HolderRecord]:
    """Flatten every cached epoch's mints into holder rows ordered by slot."""
    holders: list[HolderRecord] = []
    for epoch in transactions.epochs():
        holders.extend(HolderRecord.from_mint(m, epoch) for m in transactions.get(epoch).mints)
    holders.sort(key=lambda h: (h.slot, h.signature))
    return holders


def write_holders_json(path: str, holders: list[HolderRecord]) -> None:
    atomic_write_text(path, json.dumps([h.to_dict() for h in holders], indent=2))
    logger.info("[build-holders] Wrote %d holders to %s", len(holders), path)


def read_holders_json(path: str) -> list[HolderRecord]:
    with open(path, "r", encoding="utf-8") as f:
        return [HolderRecord.from_dict(d) for d in json.load(f)]


def seed_from_json(storage: HolderStorage, path: str, *, clock: Clock = utc_now_iso) -> list[EpochSummary]:
    """Commit a holders.json export epoch by epoch through the regular committer."""
    records = read_holders_json(path)
    logger.info("[seed] Found %d holders", len(records))
    by_epoch: dict[int, list[HolderRecord]] = defaultdict(list)
    for r in records:
        by_epoch[r.epoch].append(r)
    logger.info("[seed] %d epochs to insert", len(by_epoch))
    return [
        commit_epoch(storage, epoch, [r.to_mint() for r in by_epoch[epoch]], clock=clock)
        for epoch in sorted(by_epoch)
    ]
