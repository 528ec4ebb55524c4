# holdex/ports/rpc.py
from __future__ import annotations

from typing import Protocol
from ..domain.models import ResolvedTransaction, SignatureRecord
from ..domain.value_types import Pubkey, Signature


class LedgerRPC(Protocol):
    """Port defining the contract for a Solana JSON-RPC client."""

    async def get_signatures_for_address(
        self,
        address: Pubkey,
        *,
        before: Signature | None = None,
        until: Signature | None = None,
        limit: int = 1_000,
    ) -> list[SignatureRecord]:
        """Return one page, newest first. An empty page means history is exhausted."""

    async def get_transaction(self, signature: Signature) -> ResolvedTransaction | None:
        """Return the typed transaction, or None if the ledger does not know it."""

    async def get_slot(self) -> int:
        """Return the current slot."""

    async def genesis_hash(self) -> str:
        """Return the cluster's genesis hash."""
