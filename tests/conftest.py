"""Shared fixtures: an in-memory ledger, recording sleep, temp caches and SQLite storage."""

from __future__ import annotations

from typing import Any

import pytest

from holdex.adapters.cursor_json import JsonCursorStore
from holdex.adapters.epoch_store_json import signature_store, transaction_store
from holdex.adapters.sql_storage import create_storage
from holdex.application.pacing import Pacing
from holdex.application.retry import RetryPolicy
from holdex.domain.models import MintRecord, ResolvedTransaction, SignatureRecord, TokenBalance
from holdex.domain.value_types import Pubkey, Signature

ACCOUNT = Pubkey("Payer1111111111111111111111111111111111111")
GROUP = "Group1111111111111111111111111111111111111"
FIXED_NOW = "2025-01-01T00:00:00+00:00"


def sig(name: str, slot: int, block_time: int | None = None, err: Any = None) -> SignatureRecord:
    return SignatureRecord(signature=Signature(name), slot=slot, block_time=block_time, err=err)


def mint(name: str, slot: int, block_time: int | None = None, *, token: str | None = None,
         owner: str = "Owner") -> MintRecord:
    return MintRecord(
        ata=Pubkey(f"ata-{name}"),
        mint=Pubkey(token or f"mint-{name}"),
        recipient=Pubkey(owner),
        signature=Signature(name),
        slot=slot,
        block_time=block_time,
    )


def nft_tx(
    *,
    group: bool = True,
    err: Any = None,
    amount: str = "1",
    decimals: int = 0,
    account_index: int = 1,
    token: str = "MintA",
    owner: str | None = "OwnerA",
    block_time: int | None = 1_700_000_000,
) -> ResolvedTransaction:
    keys = [Pubkey("Fee"), Pubkey("AtaA"), Pubkey("TokenProgram")]
    if group:
        keys.append(Pubkey(GROUP))
    return ResolvedTransaction(
        slot=0,
        block_time=block_time,
        err=err,
        account_keys=tuple(keys),
        post_token_balances=(
            TokenBalance(account_index=account_index, mint=Pubkey(token), owner=owner and Pubkey(owner),
                         amount=amount, decimals=decimals),
        ),
    )


class Crash(Exception):
    """Not retryable: stands in for the process dying mid-run."""


class FakeLedgerRPC:
    """
    Serves `history` (newest first) with Solana's before/until/limit paging.
    `txs` maps signature -> transaction, None, an exception, or a list of those
    consumed one per call. `fail_pages` maps page-call index -> exception.
    """

    def __init__(
        self,
        history: list[SignatureRecord] | None = None,
        txs: dict[str, Any] | None = None,
        *,
        slot: int = 0,
        fail_pages: dict[int, BaseException] | None = None,
    ) -> None:
        self.history = list(history or [])
        self.txs = dict(txs or {})
        self.slot = slot
        self.fail_pages = dict(fail_pages or {})
        self.page_calls: list[dict[str, Any]] = []
        self.tx_calls: list[str] = []

    async def get_signatures_for_address(self, address, *, before=None, until=None, limit=1_000):
        n = len(self.page_calls)
        self.page_calls.append({"before": before, "until": until, "limit": limit})
        if n in self.fail_pages:
            raise self.fail_pages[n]
        names = [r.signature for r in self.history]
        start = names.index(before) + 1 if before else 0
        end = names.index(until) if until else len(names)
        return self.history[start:end][:limit]

    async def get_transaction(self, signature):
        self.tx_calls.append(signature)
        outcome = self.txs.get(signature)
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def get_slot(self) -> int:
        return self.slot

    async def genesis_hash(self) -> str:
        return "genesis"

    async def aclose(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def pacing(sleep: RecordingSleep) -> Pacing:
    return Pacing(
        page_limit=3,
        page_delay_s=0.2,
        tx_delay_s=0.05,
        save_interval=2,
        retry=RetryPolicy(max_attempts=3, base_delay_s=1.0, sleep=sleep),
        sleep=sleep,
    )


@pytest.fixture
def sig_store(tmp_path):
    return signature_store(str(tmp_path / "signatures"))


@pytest.fixture
def tx_store(tmp_path):
    return transaction_store(str(tmp_path / "transactions"))


@pytest.fixture
def cursor_store(tmp_path):
    return JsonCursorStore(str(tmp_path / "cursor.json"))


@pytest.fixture
def storage(tmp_path):
    s = create_storage(f"sqlite:///{tmp_path / 'db' / 'holders.db'}")
    yield s
    s.engine.dispose()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
