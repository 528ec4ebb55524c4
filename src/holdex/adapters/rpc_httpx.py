from __future__ import annotations
import asyncio, logging, httpx
from typing import Any

from ..domain.errors import RPCError
from ..domain.extraction import parse_transaction
from ..domain.models import ResolvedTransaction, SignatureRecord
from ..domain.value_types import Pubkey, Signature
from ..ports.rpc import LedgerRPC

logger = logging.getLogger(__name__)


class HttpxSolanaRPC(LedgerRPC):
    def __init__(
        self,
        rpc_url: str,
        timeout_s: int = 20,
        max_conn: int = 8,
        *,
        rate_limit_retries: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.rate_limit_retries = rate_limit_retries
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
        )
        self._next_id = 0

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        # retry on 429 with simple backoff
        for attempt in range(self.rate_limit_retries):
            r = await self.client.post(self.rpc_url, json=payload)
            if r.status_code == 429:
                if attempt + 1 >= self.rate_limit_retries:
                    break
                ra = r.headers.get("Retry-After")
                delay = max(1.0, float(ra)) if ra and ra.isdigit() else (1.0 * (2**attempt))
                logger.debug("%s rate limited, sleeping %.1fs", method, delay)
                await asyncio.sleep(delay); continue
            r.raise_for_status()
            try:
                data = r.json()
            except ValueError as e:
                raise RPCError(f"{method} returned a non-JSON body ({len(r.content)} bytes)") from e
            if not isinstance(data, dict):
                raise RPCError(f"{method} returned {type(data).__name__}, expected a JSON-RPC object")
            if "error" in data:
                err = data["error"]
                code = err.get("code") if isinstance(err, dict) else None
                msg = err.get("message") if isinstance(err, dict) else str(err)
                raise RPCError(f"{method} RPC error code={code} message={msg}", code=code)
            return data.get("result")
        raise RPCError(f"Rate limit retries exhausted for {method}", code=429)

    async def get_signatures_for_address(
        self,
        address: Pubkey,
        *,
        before: Signature | None = None,
        until: Signature | None = None,
        limit: int = 1_000,
    ) -> list[SignatureRecord]:
        config: dict[str, Any] = {"limit": limit}
        if before: config["before"] = str(before)
        if until: config["until"] = str(until)
        res = await self._call("getSignaturesForAddress", [str(address), config])
        if not isinstance(res, list):
            raise RPCError(f"getSignaturesForAddress returned {type(res).__name__}, expected list")
        try:
            return [
                SignatureRecord(
                    signature=Signature(str(item["signature"])),
                    slot=int(item["slot"]),
                    block_time=int(item["blockTime"]) if item.get("blockTime") is not None else None,
                    err=item.get("err"),
                    memo=item.get("memo"),
                )
                for item in res
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RPCError(f"getSignaturesForAddress returned a malformed item ({type(e).__name__}: {e})") from e

    async def get_transaction(self, signature: Signature) -> ResolvedTransaction | None:
        res = await self._call("getTransaction", [str(signature), {
            "encoding": "jsonParsed",
            "maxSupportedTransactionVersion": 0,
        }])
        if res is None:
            return None
        return parse_transaction(res)

    async def get_slot(self) -> int:
        res = await self._call("getSlot", [])
        if not isinstance(res, int):
            raise RPCError(f"getSlot returned {type(res).__name__}, expected int")
        return res

    async def genesis_hash(self) -> str:
        return str(await self._call("getGenesisHash", []))

    async def aclose(self) -> None:
        await self.client.aclose()
