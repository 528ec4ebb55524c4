from __future__ import annotations
import os


def atomic_write_text(path: str, text: str) -> None:
    """Write via a sibling temp file, fsync, then os.replace. Readers see old or new, never half."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text); f.flush(); os.fsync(f.fileno())
    os.replace(tmp, path)
