from __future__ import annotations
import os, json, logging

from ..domain.models import SyncCursor
from ..ports.cache import CursorStore
from ._atomic import atomic_write_text

logger = logging.getLogger(__name__)


class JsonCursorStore(CursorStore):
    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> SyncCursor:
        if not os.path.exists(self.path):
            return SyncCursor()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return SyncCursor.from_dict(json.load(f))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("unreadable cursor %s (%s), starting from a fresh cursor", self.path, e)
            return SyncCursor()

    def save(self, cursor: SyncCursor) -> None:
        atomic_write_text(self.path, json.dumps(cursor.to_dict(), indent=2))
