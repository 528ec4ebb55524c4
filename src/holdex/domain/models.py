from __future__ import annotations
from dataclasses import dataclass, field, replace, asdict
from datetime import datetime, timezone
from typing import Any

from .epochs import epoch_of
from .value_types import Pubkey, Signature, TxError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True, frozen=True)
class SignatureRecord:
    signature: Signature
    slot: int
    block_time: int | None = None
    err: TxError = None
    memo: str | None = None

    @property
    def epoch(self) -> int: return epoch_of(self.slot)

    @property
    def failed(self) -> bool: return self.err is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "SignatureRecord":
        bt = d.get("block_time")
        return cls(
            signature=Signature(d["signature"]),
            slot=int(d["slot"]),
            block_time=int(bt) if bt is not None else None,
            err=d.get("err"),
            memo=d.get("memo"),
        )


@dataclass(slots=True, frozen=True)
class SyncCursor:
    """
    Process-wide checkpoint of the signature crawl.

    Transitions never mutate: each returns a new cursor with `version + 1`.
    `newest_signature` only moves forward, `oldest_signature` only backward,
    and `backfill_complete` flips to True once.
    """
    newest_signature: Signature | None = None
    oldest_signature: Signature | None = None
    backfill_complete: bool = False
    last_synced_at: str = field(default_factory=utc_now_iso)
    version: int = 0

    def _bump(self, **changes: Any) -> "SyncCursor":
        return replace(self, last_synced_at=utc_now_iso(), version=self.version + 1, **changes)

    def with_newest(self, signature: Signature) -> "SyncCursor":
        return self._bump(newest_signature=signature)

    def with_backfill_page(self, first: Signature, last: Signature) -> "SyncCursor":
        # a fresh account gets its tip from the first backfill page
        newest = self.newest_signature or first
        return self._bump(newest_signature=newest, oldest_signature=last)

    def completed(self) -> "SyncCursor":
        return self._bump(backfill_complete=True)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "SyncCursor":
        return cls(
            newest_signature=d.get("newest_signature"),
            oldest_signature=d.get("oldest_signature"),
            backfill_complete=bool(d.get("backfill_complete", False)),
            last_synced_at=str(d.get("last_synced_at") or utc_now_iso()),
            version=int(d.get("version", 0)),
        )


@dataclass(slots=True, frozen=True)
class MintRecord:
    ata: Pubkey
    mint: Pubkey
    recipient: Pubkey
    signature: Signature
    slot: int
    block_time: int | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "MintRecord":
        bt = d.get("block_time")
        return cls(
            ata=Pubkey(d["ata"]),
            mint=Pubkey(d["mint"]),
            recipient=Pubkey(d["recipient"]),
            signature=Signature(d["signature"]),
            slot=int(d["slot"]),
            block_time=int(bt) if bt is not None else None,
        )


@dataclass(slots=True)
class EpochTransactions:
    """Resolver state for one epoch: add-only `processed`, append-only `mints`."""
    processed: list[Signature] = field(default_factory=list)
    mints: list[MintRecord] = field(default_factory=list)
    _seen: set[str] = field(default_factory=set, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._seen.update(self.processed)

    def is_processed(self, signature: str) -> bool:
        return signature in self._seen

    def mark_processed(self, signature: Signature, mint: MintRecord | None = None) -> None:
        if signature in self._seen:
            return
        self._seen.add(signature)
        self.processed.append(signature)
        if mint is not None:
            self.mints.append(mint)

    def to_dict(self) -> dict[str, Any]:
        return {"processed": list(self.processed), "mints": [m.to_dict() for m in self.mints]}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "EpochTransactions":
        return cls(
            processed=[Signature(s) for s in d.get("processed", [])],
            mints=[MintRecord.from_dict(m) for m in d.get("mints", [])],
        )


@dataclass(slots=True, frozen=True)
class HolderRecord:
    holder: Pubkey
    mint: Pubkey
    ata: Pubkey
    epoch: int
    slot: int
    block_time: int | None
    signature: Signature

    @classmethod
    def from_mint(cls, m: MintRecord, epoch: int) -> "HolderRecord":
        return cls(holder=m.recipient, mint=m.mint, ata=m.ata, epoch=epoch,
                   slot=m.slot, block_time=m.block_time, signature=m.signature)

    def to_mint(self) -> MintRecord:
        return MintRecord(ata=self.ata, mint=self.mint, recipient=self.holder,
                          signature=self.signature, slot=self.slot, block_time=self.block_time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "HolderRecord":
        bt = d.get("block_time")
        return cls(
            holder=Pubkey(d["holder"]),
            mint=Pubkey(d["mint"]),
            ata=Pubkey(d["ata"]),
            epoch=int(d["epoch"]),
            slot=int(d["slot"]),
            block_time=int(bt) if bt is not None else None,
            signature=Signature(d["signature"]),
        )


@dataclass(slots=True, frozen=True)
class EpochSummary:
    epoch: int
    holder_count: int
    first_block_time: int | None
    last_block_time: int | None
    indexed_at: str


@dataclass(slots=True, frozen=True)
class TokenBalance:
    account_index: int
    mint: Pubkey
    owner: Pubkey | None
    amount: str
    decimals: int


@dataclass(slots=True, frozen=True)
class ResolvedTransaction:
    """Typed view of a `getTransaction` result; only the fields extraction needs."""
    slot: int
    block_time: int | None
    err: TxError
    account_keys: tuple[Pubkey, ...]
    post_token_balances: tuple[TokenBalance, ...] = ()
