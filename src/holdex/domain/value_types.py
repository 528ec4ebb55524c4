from __future__ import annotations
from typing import Any, NewType

Pubkey    = NewType("Pubkey", str)      # base58 account address
Signature = NewType("Signature", str)   # base58 transaction signature
TxError   = Any                         # None if committed cleanly; RPC error object otherwise
