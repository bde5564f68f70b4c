from __future__ import annotations

from typing import Protocol, runtime_checkable

from clmm_rebalancer.core.adapters.models import (
    AddLiquidityFixTokenParams,
    PoolInfo,
    PositionInfo,
    RemoveLiquidityParams,
    SubmittableTransaction,
    SwapParams,
    TransactionResult,
)


@runtime_checkable
class ChainClient(Protocol):
    """Wallet-bound chain access: reads plus sign-and-submit."""

    @property
    def address(self) -> str: ...

    async def get_balance(self, owner: str, coin_type: str) -> int: ...

    async def get_pool(self, pool_address: str) -> PoolInfo: ...

    async def get_positions(self, owner: str) -> list[PositionInfo]: ...

    async def sign_and_execute(
        self, transaction: SubmittableTransaction
    ) -> TransactionResult: ...


@runtime_checkable
class ClmmSdk(Protocol):
    """Payload builders and pure tick/liquidity math of the AMM protocol SDK."""

    async def build_remove_liquidity_payload(
        self, params: RemoveLiquidityParams, *, gas_budget: int
    ) -> SubmittableTransaction: ...

    async def build_add_liquidity_fix_token_payload(
        self,
        params: AddLiquidityFixTokenParams,
        *,
        slippage: float,
        current_sqrt_price: int,
        gas_budget: int,
    ) -> SubmittableTransaction: ...

    async def build_swap_payload(
        self, params: SwapParams, *, gas_budget: int
    ) -> SubmittableTransaction: ...

    async def estimate_swap_output(
        self, pool: PoolInfo, *, a2b: bool, amount: int
    ) -> int: ...

    def tick_index_to_sqrt_price(self, tick: int) -> int: ...

    def estimate_liquidity_for_single_sided_amount(
        self,
        sqrt_price_lower: int,
        sqrt_price_upper: int,
        amount: int,
        *,
        fix_amount_a: bool,
    ) -> int: ...
