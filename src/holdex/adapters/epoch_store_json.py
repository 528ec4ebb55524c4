# holdex/adapters/epoch_store_json.py
from __future__ import annotations

import os, re, json, logging
from typing import Any, Callable, TypeVar

from ..domain.models import EpochTransactions, SignatureRecord
from ..ports.cache import EpochStore
from ._atomic import atomic_write_text

logger = logging.getLogger(__name__)

T = TypeVar("T")
_EPOCH_FILE = re.compile(r"^epoch-(\d+)\.json$")


class JsonEpochStore(EpochStore[T]):
    """
    One `epoch-<n>.json` file per epoch under `root_dir`.
    Missing or corrupt files read as `empty()`; the caches are rebuildable
    from upstream so nothing is lost by starting that epoch over.
    """
    def __init__(
        self,
        root_dir: str,
        *,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
        empty: Callable[[], T],
    ) -> None:
        self.root = root_dir
        self._encode = encode
        self._decode = decode
        self._empty = empty
        os.makedirs(self.root, exist_ok=True)

    def _path(self, epoch: int) -> str:
        return os.path.join(self.root, f"epoch-{epoch}.json")

    def get(self, epoch: int) -> T:
        path = self._path(epoch)
        if not os.path.exists(path):
            return self._empty()
        try:
            with open(path, "r", encoding="utf-8") as f:
                return self._decode(json.load(f))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("unreadable cache file %s (%s: %s), treating as empty", path, type(e).__name__, e)
            return self._empty()

    def put(self, epoch: int, value: T) -> None:
        atomic_write_text(self._path(epoch), json.dumps(self._encode(value), separators=(",", ":")))

    def epochs(self) -> list[int]:
        out: list[int] = []
        for name in os.listdir(self.root):
            m = _EPOCH_FILE.match(name)
            if m: out.append(int(m.group(1)))
        return sorted(out)


def signature_store(root_dir: str) -> JsonEpochStore[list[SignatureRecord]]:
    return JsonEpochStore(
        root_dir,
        encode=lambda recs: [r.to_dict() for r in recs],
        decode=lambda raw: [SignatureRecord.from_dict(d) for d in raw],
        empty=list,
    )


def transaction_store(root_dir: str) -> JsonEpochStore[EpochTransactions]:
    return JsonEpochStore(
        root_dir,
        encode=lambda txs: txs.to_dict(),
        decode=EpochTransactions.from_dict,
        empty=EpochTransactions,
    )
