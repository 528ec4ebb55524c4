# holdex/ports/storage.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import EpochSummary, HolderRecord


class HolderStorage(Protocol):
    """Port for the system of record: holder rows plus one summary row per epoch."""

    def indexed_epochs(self) -> set[int]:
        """Return epochs that have a summary row."""

    def replace_epoch(self, summary: EpochSummary, holders: Sequence[HolderRecord]) -> None:
        """In one transaction: delete the epoch's holders, insert `holders`, upsert `summary`."""

    def epoch_holders(self, epoch: int) -> list[HolderRecord]:
        """Return holder rows for one epoch ordered by slot."""

    def epoch_summaries(self) -> list[EpochSummary]:
        """Return all summary rows ordered by epoch."""

    def count_holders(self) -> int: ...

    def list_holders(self, *, offset: int, limit: int) -> list[HolderRecord]: ...

    def holders_by_wallet(self, wallet: str) -> list[HolderRecord]: ...
