from __future__ import annotations
from typing import Any, Mapping

from .errors import TransactionParseError
from .models import MintRecord, ResolvedTransaction, SignatureRecord, TokenBalance
from .value_types import Pubkey


# ──────────────────────────────
# Payload validation (getTransaction, jsonParsed)
# ──────────────────────────────

def _account_key(k: Any) -> Pubkey:
    # jsonParsed gives {"pubkey": ...}; json/base58 encodings give bare strings
    if isinstance(k, str):
        return Pubkey(k)
    if isinstance(k, Mapping) and isinstance(k.get("pubkey"), str):
        return Pubkey(k["pubkey"])
    raise TransactionParseError(f"bad account key: {k!r}")


def _token_balance(b: Any) -> TokenBalance:
    if not isinstance(b, Mapping):
        raise TransactionParseError(f"bad token balance: {b!r}")
    try:
        ui = b["uiTokenAmount"]
        owner = b.get("owner")
        return TokenBalance(
            account_index=int(b["accountIndex"]),
            mint=Pubkey(str(b["mint"])),
            owner=Pubkey(owner) if isinstance(owner, str) else None,
            amount=str(ui["amount"]),
            decimals=int(ui["decimals"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise TransactionParseError(f"bad token balance: {b!r}") from e


def parse_transaction(payload: Any) -> ResolvedTransaction:
    """Validate a raw `getTransaction` result. Raises TransactionParseError."""
    if not isinstance(payload, Mapping):
        raise TransactionParseError(f"transaction payload is {type(payload).__name__}, expected object")
    meta = payload.get("meta")
    tx = payload.get("transaction")
    if not isinstance(meta, Mapping) or not isinstance(tx, Mapping):
        raise TransactionParseError("transaction payload lacks meta/transaction")
    message = tx.get("message")
    if not isinstance(message, Mapping) or not isinstance(message.get("accountKeys"), (list, tuple)):
        raise TransactionParseError("transaction message lacks accountKeys")

    balances = meta.get("postTokenBalances") or []
    if not isinstance(balances, (list, tuple)):
        raise TransactionParseError("postTokenBalances is not a list")

    try:
        slot = int(payload.get("slot") or 0)
        bt = payload.get("blockTime")
        block_time = int(bt) if bt is not None else None
    except (TypeError, ValueError) as e:
        raise TransactionParseError("bad slot/blockTime") from e

    return ResolvedTransaction(
        slot=slot,
        block_time=block_time,
        err=meta.get("err"),
        account_keys=tuple(_account_key(k) for k in message["accountKeys"]),
        post_token_balances=tuple(_token_balance(b) for b in balances),
    )


# ──────────────────────────────
# Mint predicate
# ──────────────────────────────

def _is_single_unit(b: TokenBalance) -> bool:
    return b.amount == "1" and b.decimals == 0


def extract_mint(tx: ResolvedTransaction, group: str, record: SignatureRecord) -> MintRecord | None:
    """
    A transaction yields a mint when it committed cleanly, touches the group
    account, and carries a post balance of exactly one indivisible unit whose
    account index points into the key list. The first such balance that names
    an owner wins.
    """
    if tx.err is not None:
        return None
    if group not in tx.account_keys:
        return None

    nft = next((b for b in tx.post_token_balances if _is_single_unit(b) and b.owner is not None), None)
    if nft is None:
        return None
    if not 0 <= nft.account_index < len(tx.account_keys):
        return None

    return MintRecord(
        ata=tx.account_keys[nft.account_index],
        mint=nft.mint,
        recipient=nft.owner,
        signature=record.signature,
        slot=record.slot,
        block_time=record.block_time if record.block_time is not None else tx.block_time,
    )
