# holdex/ports/cache.py
from __future__ import annotations

from typing import Protocol, TypeVar
from ..domain.models import SyncCursor

T = TypeVar("T")


class EpochStore(Protocol[T]):
    """Key-value store addressed by epoch number."""

    def get(self, epoch: int) -> T:
        """Return the stored value, or an empty value if absent or unreadable."""

    def put(self, epoch: int, value: T) -> None:
        """Replace the value for `epoch` atomically."""

    def epochs(self) -> list[int]:
        """Return stored epoch numbers, ascending."""


class CursorStore(Protocol):
    def load(self) -> SyncCursor:
        """Return the persisted cursor, or a fresh default."""

    def save(self, cursor: SyncCursor) -> None:
        """Persist the cursor atomically (never a partial write)."""
