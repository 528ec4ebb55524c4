from __future__ import annotations
import time
from dataclasses import dataclass, field


def short(sig: str, n: int = 12) -> str:
    return f"{sig[:n]}..."


def format_eta(seconds: float) -> str:
    s = round(seconds)
    if s < 60: return f"{s}s"
    if s < 3600: return f"{s // 60}m {s % 60}s"
    return f"{s // 3600}h {(s % 3600) // 60}m"


@dataclass(slots=True)
class Progress:
    total: int
    processed: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def pct(self) -> float:
        return 100.0 * self.processed / self.total if self.total else 100.0

    def eta(self, now: float | None = None) -> str:
        if self.processed == 0:
            return "calculating..."
        elapsed = (now if now is not None else time.monotonic()) - self.started_at
        remaining = max(0, self.total - self.processed)
        return format_eta(remaining * elapsed / self.processed)
