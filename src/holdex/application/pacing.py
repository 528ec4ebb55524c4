from __future__ import annotations
import asyncio
from dataclasses import dataclass, field

from .retry import RetryPolicy, Sleep


@dataclass(slots=True, frozen=True)
class Pacing:
    """Static rate governors for the single upstream worker."""
    page_limit: int = 1_000
    page_delay_s: float = 0.2
    tx_delay_s: float = 0.05
    save_interval: int = 20
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Sleep = asyncio.sleep
