from __future__ import annotations

SLOTS_PER_EPOCH = 432_000


def epoch_of(slot: int) -> int:
    return int(slot) // SLOTS_PER_EPOCH


def epoch_slot_range(epoch: int) -> tuple[int, int]:
    """Inclusive [first, last] slot of `epoch`."""
    start = epoch * SLOTS_PER_EPOCH
    return start, start + SLOTS_PER_EPOCH - 1
