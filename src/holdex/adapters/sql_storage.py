"""SQLAlchemy-backed system of record: holder rows and per-epoch summaries.

The only write path is `replace_epoch`, which runs delete + insert + upsert in
a single transaction so that re-committing an epoch converges instead of
accumulating rows.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Sequence

from sqlalchemy import BigInteger, Engine, Index, Integer, String, create_engine, delete, func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from ..domain.errors import CommitError
from ..domain.models import EpochSummary, HolderRecord
from ..domain.value_types import Pubkey, Signature
from ..ports.storage import HolderStorage

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class HolderModel(Base):
    __tablename__ = "holders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ata: Mapped[str] = mapped_column(String(64), nullable=False)
    block_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    epoch: Mapped[int] = mapped_column(Integer, nullable=False)
    holder: Mapped[str] = mapped_column(String(64), nullable=False)
    mint: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    signature: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    slot: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_holders_holder", "holder"),
        Index("idx_holders_epoch", "epoch"),
    )

    def to_record(self) -> HolderRecord:
        return HolderRecord(
            holder=Pubkey(self.holder),
            mint=Pubkey(self.mint),
            ata=Pubkey(self.ata),
            epoch=self.epoch,
            slot=self.slot,
            block_time=self.block_time,
            signature=Signature(self.signature),
        )


class EpochModel(Base):
    __tablename__ = "epochs"

    epoch: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    first_block_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    holder_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    indexed_at: Mapped[str] = mapped_column(String(40), nullable=False)
    last_block_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    def to_summary(self) -> EpochSummary:
        return EpochSummary(
            epoch=self.epoch,
            holder_count=self.holder_count,
            first_block_time=self.first_block_time,
            last_block_time=self.last_block_time,
            indexed_at=self.indexed_at,
        )


def _holder_row(h: HolderRecord) -> dict[str, Any]:
    return {
        "ata": h.ata,
        "block_time": h.block_time,
        "epoch": h.epoch,
        "holder": h.holder,
        "mint": h.mint,
        "signature": h.signature,
        "slot": h.slot,
    }


class SqlHolderStorage(HolderStorage):
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def _upsert_summary(self, session: Session, s: EpochSummary) -> None:
        values = {
            "epoch": s.epoch,
            "first_block_time": s.first_block_time,
            "holder_count": s.holder_count,
            "indexed_at": s.indexed_at,
            "last_block_time": s.last_block_time,
        }
        update_cols = {k: v for k, v in values.items() if k != "epoch"}
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(EpochModel).values(**values)
            session.execute(stmt.on_conflict_do_update(index_elements=[EpochModel.epoch], set_=update_cols))
        elif dialect == "sqlite":
            sqlite_stmt = sqlite_insert(EpochModel).values(**values)
            session.execute(sqlite_stmt.on_conflict_do_update(index_elements=[EpochModel.epoch], set_=update_cols))
        else:
            session.merge(EpochModel(**values))

    def replace_epoch(self, summary: EpochSummary, holders: Sequence[HolderRecord]) -> None:
        try:
            with Session(self.engine) as session, session.begin():
                session.execute(delete(HolderModel).where(HolderModel.epoch == summary.epoch))
                if holders:
                    session.execute(insert(HolderModel), [_holder_row(h) for h in holders])
                self._upsert_summary(session, summary)
        except SQLAlchemyError as e:
            raise CommitError(summary.epoch, e) from e

    def indexed_epochs(self) -> set[int]:
        with Session(self.engine) as session:
            return set(session.scalars(select(EpochModel.epoch)))

    def epoch_holders(self, epoch: int) -> list[HolderRecord]:
        with Session(self.engine) as session:
            rows = session.scalars(
                select(HolderModel).where(HolderModel.epoch == epoch).order_by(HolderModel.slot, HolderModel.signature)
            )
            return [r.to_record() for r in rows]

    def epoch_summaries(self) -> list[EpochSummary]:
        with Session(self.engine) as session:
            return [r.to_summary() for r in session.scalars(select(EpochModel).order_by(EpochModel.epoch))]

    def count_holders(self) -> int:
        with Session(self.engine) as session:
            return int(session.scalar(select(func.count()).select_from(HolderModel)) or 0)

    def list_holders(self, *, offset: int, limit: int) -> list[HolderRecord]:
        with Session(self.engine) as session:
            rows = session.scalars(select(HolderModel).order_by(HolderModel.slot, HolderModel.signature).offset(offset).limit(limit))
            return [r.to_record() for r in rows]

    def holders_by_wallet(self, wallet: str) -> list[HolderRecord]:
        with Session(self.engine) as session:
            rows = session.scalars(select(HolderModel).where(HolderModel.holder == wallet).order_by(HolderModel.slot))
            return [r.to_record() for r in rows]


def create_storage(database_url: str, *, echo: bool = False) -> SqlHolderStorage:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)
    storage = SqlHolderStorage(create_engine(url, echo=echo))
    storage.create_schema()
    logger.debug("storage ready at %s", url.render_as_string(hide_password=True))
    return storage
