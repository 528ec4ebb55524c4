from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ..application.pacing import Pacing
from ..application.retry import RetryPolicy

DEFAULT_TRACKED_ACCOUNT = "GT2zuHVaZQYZSyQMgJPLzvkmyztfyXg2NJunqFp4p3A4"
DEFAULT_GROUP_ADDRESS = "GT22s89nU4iWFkNXj1Bw6uYhJJWDRPpShHt4Bk8f99Te"
DEFAULT_START_EPOCH = 731


@dataclass(frozen=True)
class IndexerConfig:
    """Configuration for the crawler, resolver and committer."""

    rpc_url: str | None = None
    tracked_account: str = DEFAULT_TRACKED_ACCOUNT
    group_address: str = DEFAULT_GROUP_ADDRESS
    data_dir: Path = Path("./data")
    database_url: str | None = None  # defaults to a SQLite file under data_dir
    page_limit: int = 1_000
    page_delay_s: float = 0.2
    tx_delay_s: float = 0.05
    save_interval: int = 20
    max_retries: int = 3
    retry_delay_s: float = 1.0
    start_epoch: int = DEFAULT_START_EPOCH
    timeout_s: int = 20

    @property
    def signatures_dir(self) -> str: return os.path.join(self.data_dir, "signatures")

    @property
    def transactions_dir(self) -> str: return os.path.join(self.data_dir, "transactions")

    @property
    def cursor_path(self) -> str: return os.path.join(self.data_dir, "cursor.json")

    @property
    def holders_json_path(self) -> str: return os.path.join(self.data_dir, "holders.json")

    @property
    def storage_url(self) -> str:
        return self.database_url or f"sqlite:///{os.path.join(self.data_dir, 'holders.db')}"

    def pacing(self) -> Pacing:
        return Pacing(
            page_limit=self.page_limit,
            page_delay_s=self.page_delay_s,
            tx_delay_s=self.tx_delay_s,
            save_interval=self.save_interval,
            retry=RetryPolicy(max_attempts=self.max_retries, base_delay_s=self.retry_delay_s),
        )
