from __future__ import annotations
import os, logging, pyarrow as pa, pyarrow.parquet as pq
from typing import Iterable

from ..domain.models import HolderRecord

logger = logging.getLogger(__name__)

HOLDERS_SCHEMA = pa.schema([
    pa.field("holder",     pa.string()),
    pa.field("mint",       pa.string()),
    pa.field("ata",        pa.string()),
    pa.field("epoch",      pa.int32()),
    pa.field("slot",       pa.int64()),
    pa.field("block_time", pa.int64()),
    pa.field("signature",  pa.string()),
])


def holders_to_table(holders: Iterable[HolderRecord]) -> pa.Table:
    hs = list(holders)
    return pa.Table.from_arrays(
        arrays=[
            pa.array([h.holder for h in hs], pa.string()),
            pa.array([h.mint for h in hs], pa.string()),
            pa.array([h.ata for h in hs], pa.string()),
            pa.array([h.epoch for h in hs], pa.int32()),
            pa.array([h.slot for h in hs], pa.int64()),
            pa.array([h.block_time for h in hs], pa.int64()),
            pa.array([h.signature for h in hs], pa.string()),
        ],
        schema=HOLDERS_SCHEMA,
    )


def write_holders_parquet(path: str, holders: Iterable[HolderRecord]) -> int:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    table = holders_to_table(holders)
    pq.write_table(table, tmp, compression="snappy", use_dictionary=True)
    os.replace(tmp, path)
    logger.info("[build-holders] Wrote %d rows to %s", table.num_rows, path)
    return table.num_rows
