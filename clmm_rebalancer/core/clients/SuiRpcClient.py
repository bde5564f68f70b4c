from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from loguru import logger

from clmm_rebalancer.core.adapters.models import (
    BalanceChange,
    GasCostSummary,
    PoolInfo,
    PositionInfo,
    SubmittableTransaction,
    TransactionResult,
)
from clmm_rebalancer.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_PAGINATION_LIMIT,
)
from clmm_rebalancer.core.constants.sui import NETWORK_MAINNET, position_struct_type
from clmm_rebalancer.core.errors import SuiRpcError

# tx_bytes (base64) -> serialized signature (base64)
Signer = Callable[[str], Awaitable[str]]

_I32_SIGN_BIT = 1 << 31
_U32 = 1 << 32


def bits_to_i32(bits: int | str) -> int:
    """Move ``I32`` values are stored as their u32 two's-complement bits."""
    value = int(bits) % _U32
    return value - _U32 if value & _I32_SIGN_BIT else value


def split_type_arguments(struct_type: str) -> list[str]:
    """``pkg::pool::Pool<A, B>`` -> ``[A, B]``, respecting nested generics."""
    start = struct_type.find("<")
    if start == -1 or not struct_type.endswith(">"):
        return []
    inner = struct_type[start + 1 : -1]
    args: list[str] = []
    depth = 0
    current = ""
    for ch in inner:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            args.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        args.append(current.strip())
    return args


def _with_0x(type_name: str) -> str:
    return type_name if type_name.startswith("0x") else f"0x{type_name}"


def _i32_field(value: Any) -> int:
    if isinstance(value, dict):
        return bits_to_i32(value.get("fields", value)["bits"])
    return bits_to_i32(value)


def _type_name_field(value: Any) -> str:
    if isinstance(value, dict):
        return _with_0x(value.get("fields", value)["name"])
    return _with_0x(str(value))


class SuiRpcClient:
    """Wallet-bound Sui fullnode client speaking JSON-RPC over httpx."""

    def __init__(
        self,
        rpc_url: str,
        *,
        address: str,
        network: str = NETWORK_MAINNET,
        signer: Signer | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url
        self.network = network
        self._address = address
        self._signer = signer
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
        )
        self._request_id = 0

    @property
    def address(self) -> str:
        return self._address

    async def close(self) -> None:
        await self.client.aclose()

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        logger.debug(f"Sui RPC {method}")
        start_time = time.time()
        resp = await self.client.post(self.rpc_url, json=payload)
        elapsed = time.time() - start_time
        if resp.status_code >= 400:
            logger.warning(f"HTTP {resp.status_code} for {method} after {elapsed:.2f}s")
        resp.raise_for_status()

        body = resp.json()
        if body.get("error"):
            err = body["error"]
            raise SuiRpcError(method, err.get("code"), err.get("message", str(err)))
        return body.get("result")

    # ── reads ──────────────────────────────────────────────────────────────

    async def get_balance(self, owner: str, coin_type: str) -> int:
        result = await self._rpc("suix_getBalance", [owner, coin_type])
        return int(result["totalBalance"])

    async def get_pool(self, pool_address: str) -> PoolInfo:
        result = await self._rpc(
            "sui_getObject",
            [pool_address, {"showContent": True, "showType": True}],
        )
        data = result.get("data") if result else None
        if not data or "content" not in data:
            raise SuiRpcError("sui_getObject", None, f"Pool {pool_address} not found")

        content = data["content"]
        fields = content["fields"]
        type_args = split_type_arguments(content.get("type") or data.get("type", ""))
        if len(type_args) != 2:
            raise SuiRpcError(
                "sui_getObject", None, f"Object {pool_address} is not a two-coin pool"
            )
        return PoolInfo(
            pool_address=data.get("objectId", pool_address),
            current_tick_index=_i32_field(fields["current_tick_index"]),
            tick_spacing=int(fields["tick_spacing"]),
            current_sqrt_price=int(fields["current_sqrt_price"]),
            coin_type_a=type_args[0],
            coin_type_b=type_args[1],
        )

    async def get_positions(self, owner: str) -> list[PositionInfo]:
        query = {
            "filter": {"StructType": position_struct_type(self.network)},
            "options": {"showContent": True, "showType": True},
        }
        positions: list[PositionInfo] = []
        cursor: str | None = None
        while True:
            page = await self._rpc(
                "suix_getOwnedObjects",
                [owner, query, cursor, DEFAULT_PAGINATION_LIMIT],
            )
            for item in page.get("data", []):
                position = self._parse_position(item.get("data") or {})
                if position is not None:
                    positions.append(position)
            if not page.get("hasNextPage"):
                break
            cursor = page.get("nextCursor")
            if cursor is None:
                break
        logger.debug(f"Found {len(positions)} positions for {owner}")
        return positions

    @staticmethod
    def _parse_position(data: dict[str, Any]) -> PositionInfo | None:
        content = data.get("content")
        if not content or "fields" not in content:
            return None
        fields = content["fields"]
        try:
            return PositionInfo(
                position_id=data["objectId"],
                pool_address=fields["pool"],
                tick_lower=_i32_field(fields["tick_lower_index"]),
                tick_upper=_i32_field(fields["tick_upper_index"]),
                liquidity=str(fields.get("liquidity", "0")),
                coin_type_a=_type_name_field(fields["coin_type_a"]),
                coin_type_b=_type_name_field(fields["coin_type_b"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Skipping unparsable position {data.get('objectId')}: {exc}")
            return None

    # ── writes ─────────────────────────────────────────────────────────────

    async def sign_and_execute(
        self, transaction: SubmittableTransaction
    ) -> TransactionResult:
        if self._signer is None:
            raise ValueError("SuiRpcClient has no signer configured")
        signature = await self._signer(transaction.tx_bytes)
        result = await self._rpc(
            "sui_executeTransactionBlock",
            [
                transaction.tx_bytes,
                [signature],
                {"showEffects": True, "showBalanceChanges": True},
                "WaitForLocalExecution",
            ],
        )
        return self.parse_execution_result(result)

    @staticmethod
    def parse_execution_result(result: dict[str, Any]) -> TransactionResult:
        effects = result.get("effects") or {}
        status = effects.get("status") or {}
        gas = effects.get("gasUsed")

        changes: list[BalanceChange] = []
        for change in result.get("balanceChanges") or []:
            owner = change.get("owner")
            owner_address = owner.get("AddressOwner") if isinstance(owner, dict) else None
            changes.append(
                BalanceChange(
                    owner=owner_address,
                    coin_type=change["coinType"],
                    amount=int(change["amount"]),
                )
            )

        return TransactionResult(
            digest=result.get("digest", ""),
            status="success" if status.get("status") == "success" else "failure",
            error=status.get("error"),
            balance_changes=changes,
            gas_used=(
                GasCostSummary(
                    computation_cost=int(gas.get("computationCost", 0)),
                    storage_cost=int(gas.get("storageCost", 0)),
                    storage_rebate=int(gas.get("storageRebate", 0)),
                    non_refundable_storage_fee=int(gas.get("nonRefundableStorageFee", 0)),
                )
                if gas
                else None
            ),
        )
