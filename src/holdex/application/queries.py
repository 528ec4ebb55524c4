"""Read-only views over committed holders and epoch summaries."""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from ..domain.models import HolderRecord
from ..ports.storage import HolderStorage

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(slots=True, frozen=True)
class HolderPage:
    holders: list[HolderRecord]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.limit))


def clamp_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    p = page if page and page > 0 else 1
    lim = limit if limit and limit > 0 else DEFAULT_LIMIT
    return p, min(lim, MAX_LIMIT)


def holder_page(storage: HolderStorage, page: int | None = None, limit: int | None = None) -> HolderPage:
    p, lim = clamp_paging(page, limit)
    return HolderPage(
        holders=storage.list_holders(offset=(p - 1) * lim, limit=lim),
        page=p, limit=lim, total=storage.count_holders(),
    )


def epochs_frame(storage: HolderStorage) -> pd.DataFrame:
    """Epoch summaries with a running holder total, one row per epoch."""
    cols = ["epoch", "holder_count", "first_block_time", "last_block_time", "indexed_at"]
    df = pd.DataFrame([{c: getattr(s, c) for c in cols} for s in storage.epoch_summaries()], columns=cols)
    df = df.astype({"holder_count": "int64", "first_block_time": "Int64", "last_block_time": "Int64"})
    df["cumulative"] = df["holder_count"].cumsum()
    return df
