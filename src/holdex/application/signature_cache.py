from __future__ import annotations
from collections import defaultdict
from typing import Iterable

from ..domain.models import SignatureRecord
from ..ports.cache import EpochStore

SignatureStore = EpochStore[list[SignatureRecord]]


def group_by_epoch(records: Iterable[SignatureRecord]) -> dict[int, list[SignatureRecord]]:
    out: dict[int, list[SignatureRecord]] = defaultdict(list)
    for r in records:
        out[r.epoch].append(r)
    return dict(out)


def _merge(store: SignatureStore, records: Iterable[SignatureRecord], *, at_head: bool) -> int:
    added = 0
    for epoch, recs in group_by_epoch(records).items():
        existing = store.get(epoch)
        seen = {r.signature for r in existing}
        fresh = []
        for r in recs:
            if r.signature in seen: continue
            seen.add(r.signature); fresh.append(r)
        if not fresh:
            continue
        store.put(epoch, fresh + existing if at_head else existing + fresh)
        added += len(fresh)
    return added


def prepend_signatures(store: SignatureStore, records: Iterable[SignatureRecord]) -> int:
    """Insert newer records ahead of each epoch file's head. Returns how many were new."""
    return _merge(store, records, at_head=True)


def append_signatures(store: SignatureStore, records: Iterable[SignatureRecord]) -> int:
    """Continue each epoch file's tail with older records. Returns how many were new."""
    return _merge(store, records, at_head=False)
