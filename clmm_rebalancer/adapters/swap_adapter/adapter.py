from __future__ import annotations

from typing import Any

from clmm_rebalancer.core.adapters.BaseAdapter import BaseAdapter
from clmm_rebalancer.core.adapters.models import PoolInfo, SwapParams, TransactionResult
from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk
from clmm_rebalancer.core.constants.base import (
    ADAPTER_SWAP,
    BPS_DENOMINATOR,
    DEFAULT_GAS_BUDGET,
    DEFAULT_MAX_SLIPPAGE,
)
from clmm_rebalancer.core.utils.transaction import execute_transaction


def min_output_for_slippage(estimated_out: int, max_slippage: float) -> int:
    slippage_bps = int(max_slippage * BPS_DENOMINATOR)
    return max(estimated_out - (estimated_out * slippage_bps) // BPS_DENOMINATOR, 0)


class SwapAdapter(BaseAdapter):
    adapter_type = ADAPTER_SWAP

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        chain: ChainClient,
        sdk: ClmmSdk,
    ):
        super().__init__("swap_adapter", config, chain=chain, sdk=sdk)
        self.gas_budget = int(self.config.get("gas_budget", DEFAULT_GAS_BUDGET))
        self.max_slippage = float(self.config.get("max_slippage", DEFAULT_MAX_SLIPPAGE))

    async def min_amount_out(self, pool: PoolInfo, *, a2b: bool, amount_in: int) -> int:
        """Slippage floor for an exact-in swap; 0 (no protection) when the estimate fails."""
        sdk = self._require_sdk()
        try:
            estimated = int(await sdk.estimate_swap_output(pool, a2b=a2b, amount=amount_in))
        except Exception as exc:  # noqa: BLE001
            self.logger.debug(
                f"Could not estimate swap output, proceeding without slippage limit: {exc}"
            )
            return 0
        limit = min_output_for_slippage(estimated, self.max_slippage)
        self.logger.info(f"Swap slippage limit: estimated_out={estimated} amount_limit={limit}")
        return limit

    async def quote_amount_in(
        self, pool: PoolInfo, *, a2b: bool, amount_out: int, max_amount_in: int
    ) -> int | None:
        """Input needed to receive ``amount_out``, capped at ``max_amount_in``.

        Scaled linearly from the estimated output of ``max_amount_in``. ``None``
        when the estimate fails or comes back empty.
        """
        sdk = self._require_sdk()
        try:
            estimated = int(await sdk.estimate_swap_output(pool, a2b=a2b, amount=max_amount_in))
        except Exception as exc:  # noqa: BLE001
            self.logger.debug(f"Could not estimate swap input for {amount_out} out: {exc}")
            return None
        if estimated <= 0:
            return None
        needed = -(-amount_out * max_amount_in // estimated)
        return min(needed, max_amount_in)

    async def perform_swap(
        self,
        pool_address: str,
        *,
        a2b: bool,
        amount: int,
        by_amount_in: bool = True,
        max_amount_in: int | None = None,
    ) -> TransactionResult:
        """Swap inside the pool itself (A→B when ``a2b``).

        Exact-in swaps get a slippage-protected minimum output. Exact-out swaps
        (``by_amount_in=False``) treat ``amount`` as the output wanted and
        ``max_amount_in`` as the most input the wallet may spend.
        """
        sdk = self._require_sdk()
        pool = await self.chain.get_pool(pool_address)
        direction = "A->B" if a2b else "B->A"
        mode = "in" if by_amount_in else "out"
        self.logger.info(f"Swapping {direction} exact-{mode} {amount} in pool {pool_address}")

        if by_amount_in:
            limit = await self.min_amount_out(pool, a2b=a2b, amount_in=amount)
        else:
            if max_amount_in is None or max_amount_in <= 0:
                raise ValueError("exact-out swap requires a positive max_amount_in")
            limit = max_amount_in

        params = SwapParams(
            pool_id=pool.pool_address,
            a2b=a2b,
            by_amount_in=by_amount_in,
            amount=str(amount),
            amount_limit=str(limit),
            coin_type_a=pool.coin_type_a,
            coin_type_b=pool.coin_type_b,
        )
        tx = await sdk.build_swap_payload(params, gas_budget=self.gas_budget)
        result = await execute_transaction(self.chain, tx, action="swap")
        self.logger.info(f"Swap completed, tx {result.digest}")
        return result
