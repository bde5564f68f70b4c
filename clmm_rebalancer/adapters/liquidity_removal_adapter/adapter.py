from __future__ import annotations

import asyncio
from typing import Any

from clmm_rebalancer.core.adapters.BaseAdapter import BaseAdapter
from clmm_rebalancer.core.adapters.models import (
    FreedAmounts,
    PositionInfo,
    RemoveLiquidityParams,
    TransactionResult,
)
from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk
from clmm_rebalancer.core.constants.base import (
    ADAPTER_LIQUIDITY_REMOVAL,
    DEFAULT_GAS_BUDGET,
    REMOVE_LIQUIDITY_BASE_DELAY_S,
    REMOVE_LIQUIDITY_MAX_ATTEMPTS,
)
from clmm_rebalancer.core.errors import PositionNotFoundError
from clmm_rebalancer.core.utils.coin_types import (
    coin_types_match,
    is_gas_coin,
    normalize_address,
)
from clmm_rebalancer.core.utils.error_classification import is_retryable_removal_error
from clmm_rebalancer.core.utils.retry import retry_async
from clmm_rebalancer.core.utils.transaction import execute_transaction


def freed_from_balance_changes(
    result: TransactionResult, owner: str, coin_type: str
) -> int:
    """Positive net balance change of ``coin_type`` for ``owner``, gas-corrected.

    For the gas coin, the transaction's own gas is netted into the same entry, so
    a negative net is corrected by adding back the total gas cost first.
    """
    if not result.balance_changes:
        return 0
    owner_norm = normalize_address(owner)
    net = sum(
        change.amount
        for change in result.balance_changes
        if change.owner is not None
        and normalize_address(change.owner) == owner_norm
        and coin_types_match(change.coin_type, coin_type)
    )
    if net < 0 and is_gas_coin(coin_type) and result.gas_used is not None:
        net += result.gas_used.total
    return max(net, 0)


class LiquidityRemovalAdapter(BaseAdapter):
    adapter_type = ADAPTER_LIQUIDITY_REMOVAL

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        chain: ChainClient,
        sdk: ClmmSdk,
    ):
        super().__init__("liquidity_removal_adapter", config, chain=chain, sdk=sdk)
        self.gas_budget = int(self.config.get("gas_budget", DEFAULT_GAS_BUDGET))
        self.max_attempts = int(
            self.config.get("remove_max_attempts", REMOVE_LIQUIDITY_MAX_ATTEMPTS)
        )
        self.base_delay_s = float(
            self.config.get("remove_base_delay_s", REMOVE_LIQUIDITY_BASE_DELAY_S)
        )

    async def _fetch_position(self, position_id: str) -> PositionInfo:
        positions = await self.chain.get_positions(self.owner)
        for position in positions:
            if position.position_id == position_id:
                return position
        raise PositionNotFoundError(position_id)

    async def _balances(self, coin_type_a: str, coin_type_b: str) -> tuple[int, int]:
        balance_a, balance_b = await asyncio.gather(
            self.chain.get_balance(self.owner, coin_type_a),
            self.chain.get_balance(self.owner, coin_type_b),
        )
        return int(balance_a), int(balance_b)

    async def remove_liquidity(self, position_id: str, liquidity: str) -> FreedAmounts:
        """Withdraw ``liquidity`` (with fees) from the position and report what came back.

        Only stale-object and pending-transaction errors are retried; anything
        else propagates so the caller never opens a new position without a
        confirmed close.
        """
        position = await self._fetch_position(position_id)
        self.logger.info(
            f"Removing liquidity {liquidity} from position {position_id} "
            f"[{position.tick_lower}, {position.tick_upper}]"
        )
        before_a, before_b = await self._balances(position.coin_type_a, position.coin_type_b)
        self.logger.debug(f"Balances before removal: A={before_a} B={before_b}")

        sdk = self._require_sdk()

        async def _attempt(attempt: int) -> TransactionResult:
            current = position if attempt == 0 else await self._fetch_position(position_id)
            params = RemoveLiquidityParams(
                pool_id=current.pool_address,
                pos_id=position_id,
                delta_liquidity=liquidity,
                coin_type_a=current.coin_type_a,
                coin_type_b=current.coin_type_b,
                collect_fee=True,
            )
            tx = await sdk.build_remove_liquidity_payload(params, gas_budget=self.gas_budget)
            return await execute_transaction(self.chain, tx, action="remove liquidity")

        def _on_retry(attempt: int, exc: Exception, delay_s: float) -> None:
            self.logger.warning(
                f"Retryable error removing liquidity (attempt {attempt + 1}/"
                f"{self.max_attempts}), retrying in {delay_s:.1f}s: {exc}"
            )

        try:
            result = await retry_async(
                _attempt,
                max_retries=self.max_attempts,
                base_delay_s=self.base_delay_s,
                should_retry=is_retryable_removal_error,
                on_retry=_on_retry,
            )
        except Exception as exc:
            self.logger.error(f"Failed to remove liquidity from {position_id}: {exc}")
            raise

        self.logger.info(f"Liquidity removed from {position_id}, tx {result.digest}")
        return await self.reconcile_freed_amounts(
            result,
            coin_type_a=position.coin_type_a,
            coin_type_b=position.coin_type_b,
            balances_before=(before_a, before_b),
        )

    async def reconcile_freed_amounts(
        self,
        result: TransactionResult,
        *,
        coin_type_a: str,
        coin_type_b: str,
        balances_before: tuple[int, int],
    ) -> FreedAmounts:
        amount_a = freed_from_balance_changes(result, self.owner, coin_type_a)
        amount_b = freed_from_balance_changes(result, self.owner, coin_type_b)

        if amount_a == 0 and amount_b == 0:
            after_a, after_b = await self._balances(coin_type_a, coin_type_b)
            amount_a = max(after_a - balances_before[0], 0)
            amount_b = max(after_b - balances_before[1], 0)
            self.logger.info(
                f"Balance changes inconclusive, using wallet diff: A={amount_a} B={amount_b}"
            )
        else:
            self.logger.info(f"Freed from balance changes: A={amount_a} B={amount_b}")

        return FreedAmounts(amount_a=str(amount_a), amount_b=str(amount_b))
