from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal

from clmm_rebalancer.adapters.swap_adapter.adapter import SwapAdapter
from clmm_rebalancer.core.adapters.BaseAdapter import BaseAdapter
from clmm_rebalancer.core.adapters.models import (
    AddLiquidityFixTokenParams,
    FreedAmounts,
    PoolInfo,
    TransactionResult,
)
from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk
from clmm_rebalancer.core.constants.base import (
    ADAPTER_LIQUIDITY_DEPLOYMENT,
    ADD_LIQUIDITY_MAX_ATTEMPTS,
    ADD_LIQUIDITY_RETRY_DELAY_S,
    DEFAULT_GAS_BUDGET,
    DEFAULT_MAX_SLIPPAGE,
    SWAP_BUFFER_PERCENT,
)
from clmm_rebalancer.core.errors import (
    ContractAbortError,
    InsufficientBalanceError,
    PreconditionError,
    SwapRecoveryError,
    TickOutOfRangeError,
    ZeroLiquidityEstimateError,
)
from clmm_rebalancer.core.utils.coin_types import coin_types_match, safe_balance
from clmm_rebalancer.core.utils.error_classification import (
    is_fatal_deployment_error,
    parse_insufficient_balance,
)
from clmm_rebalancer.core.utils.retry import fixed_delay_s, retry_async
from clmm_rebalancer.core.utils.tick_math import is_tick_in_range
from clmm_rebalancer.core.utils.transaction import execute_transaction

ZapSource = Literal["override", "freed", "wallet"]


@dataclass(frozen=True)
class ZapSelection:
    amount_a: int
    amount_b: int
    source: ZapSource

    @property
    def fix_amount_a(self) -> bool:
        return self.amount_a > 0


def calculate_zap_amount(freed: int, safe: int) -> int:
    """Amount of one token to zap, given what a removal freed and what the wallet shows.

    A zero safe balance right after a removal is read as RPC lag and the
    freed amount is used unchanged.
    """
    if freed <= 0:
        return 0
    if safe == 0:
        return freed
    return min(freed, safe)


def swap_amount_with_buffer(missing: int, buffer_percent: int = SWAP_BUFFER_PERCENT) -> int:
    return missing * (100 + buffer_percent) // 100


def _parse_override(value: Any) -> int | None:
    if value is None or value == "":
        return None
    amount = int(value)
    return amount if amount > 0 else None


class LiquidityDeploymentAdapter(BaseAdapter):
    """Single-sided ("zap") add-liquidity with per-attempt re-capping and recovery."""

    adapter_type = ADAPTER_LIQUIDITY_DEPLOYMENT

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        chain: ChainClient,
        sdk: ClmmSdk,
        swap_adapter: SwapAdapter | None = None,
    ):
        super().__init__("liquidity_deployment_adapter", config, chain=chain, sdk=sdk)
        self.swap_adapter = swap_adapter or SwapAdapter(self.config, chain=chain, sdk=sdk)
        self.gas_budget = int(self.config.get("gas_budget", DEFAULT_GAS_BUDGET))
        self.max_slippage = float(self.config.get("max_slippage", DEFAULT_MAX_SLIPPAGE))
        self.token_a_override = _parse_override(self.config.get("token_a_amount"))
        self.token_b_override = _parse_override(self.config.get("token_b_amount"))
        self.strict_tick_validation = bool(self.config.get("strict_tick_validation", False))
        self.swap_buffer_percent = int(
            self.config.get("swap_buffer_percent", SWAP_BUFFER_PERCENT)
        )
        self.max_attempts = int(self.config.get("add_max_attempts", ADD_LIQUIDITY_MAX_ATTEMPTS))
        self.retry_delay_s = float(
            self.config.get("add_retry_delay_s", ADD_LIQUIDITY_RETRY_DELAY_S)
        )

    async def safe_balances(self, pool: PoolInfo) -> tuple[int, int]:
        raw_a, raw_b = await asyncio.gather(
            self.chain.get_balance(self.owner, pool.coin_type_a),
            self.chain.get_balance(self.owner, pool.coin_type_b),
        )
        return (
            safe_balance(int(raw_a), pool.coin_type_a, self.gas_budget),
            safe_balance(int(raw_b), pool.coin_type_b, self.gas_budget),
        )

    # ── selection ──────────────────────────────────────────────────────────

    def select_zap_amounts(
        self,
        *,
        current_tick: int,
        tick_lower: int,
        tick_upper: int,
        safe_a: int,
        safe_b: int,
        freed: FreedAmounts | None = None,
    ) -> ZapSelection:
        """Pick exactly one token and amount to hand to the zap primitive.

        Priority: configured override (A before B), then freed amounts, then
        wallet balance. When the preferred side has nothing, the other side is
        used so that funds are never left idle.
        """
        if self.token_a_override is not None:
            return ZapSelection(self.token_a_override, 0, "override")
        if self.token_b_override is not None:
            return ZapSelection(0, self.token_b_override, "override")

        prefer_a = current_tick < tick_upper

        if freed is not None and not freed.is_empty:
            freed_a = calculate_zap_amount(int(freed.amount_a), safe_a)
            freed_b = calculate_zap_amount(int(freed.amount_b), safe_b)
            if prefer_a and freed_a > 0:
                return ZapSelection(freed_a, 0, "freed")
            if freed_b > 0:
                return ZapSelection(0, freed_b, "freed")
            if safe_b > 0:
                return ZapSelection(0, safe_b, "wallet")
            return ZapSelection(freed_a, 0, "freed")

        # Nothing measurable came back from a removal, or this is a fresh open.
        if current_tick < tick_lower:
            prefer_a = True
        if prefer_a and safe_a > 0:
            return ZapSelection(safe_a, 0, "wallet")
        if safe_b > 0:
            return ZapSelection(0, safe_b, "wallet")
        return ZapSelection(safe_a, 0, "wallet")

    def _check_liquidity_viable(
        self, pool: PoolInfo, tick_lower: int, tick_upper: int, selection: ZapSelection
    ) -> None:
        sdk = self._require_sdk()
        sqrt_lower = sdk.tick_index_to_sqrt_price(tick_lower)
        sqrt_upper = sdk.tick_index_to_sqrt_price(tick_upper)
        current = pool.current_sqrt_price
        if selection.fix_amount_a:
            low, high, amount = max(current, sqrt_lower), sqrt_upper, selection.amount_a
        else:
            low, high, amount = sqrt_lower, min(current, sqrt_upper), selection.amount_b

        estimate = 0
        if low < high:
            estimate = sdk.estimate_liquidity_for_single_sided_amount(
                low, high, amount, fix_amount_a=selection.fix_amount_a
            )
        if estimate <= 0:
            side = "A" if selection.fix_amount_a else "B"
            raise ZeroLiquidityEstimateError(
                f"Configured token {side} amount {amount} would mint zero liquidity in "
                f"[{tick_lower}, {tick_upper}) at tick {pool.current_tick_index}"
            )
        self.logger.debug(f"Estimated liquidity for configured zap: {estimate}")

    # ── add liquidity ──────────────────────────────────────────────────────

    async def add_liquidity(
        self,
        pool_info: PoolInfo,
        tick_lower: int,
        tick_upper: int,
        existing_position_id: str | None = None,
        freed_amounts: FreedAmounts | None = None,
    ) -> TransactionResult:
        pool_address = pool_info.pool_address
        is_open = not existing_position_id
        target = "new position" if is_open else f"position {existing_position_id}"
        self.logger.info(
            f"Adding liquidity to {target} [{tick_lower}, {tick_upper}) in pool {pool_address}"
            + (f", freed A={freed_amounts.amount_a} B={freed_amounts.amount_b}" if freed_amounts else "")
        )

        safe_a, safe_b = await self.safe_balances(pool_info)
        selection = self.select_zap_amounts(
            current_tick=pool_info.current_tick_index,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            safe_a=safe_a,
            safe_b=safe_b,
            freed=freed_amounts,
        )
        if selection.amount_a == 0 and selection.amount_b == 0:
            raise InsufficientBalanceError(
                "No tokens available to add liquidity: wallet holds neither token "
                f"(safe A={safe_a}, safe B={safe_b})"
            )
        self.logger.info(
            f"Zap input from {selection.source}: amount_a={selection.amount_a} "
            f"amount_b={selection.amount_b}"
        )

        if self.strict_tick_validation or selection.source == "override":
            fresh = await self.chain.get_pool(pool_address)
            if self.strict_tick_validation:
                self._require_tick_in_range(fresh, tick_lower, tick_upper)
            if selection.source == "override":
                self._check_liquidity_viable(fresh, tick_lower, tick_upper, selection)

        return await self._submit_with_retry(
            pool_address,
            tick_lower,
            tick_upper,
            existing_position_id=existing_position_id,
            amounts=[selection.amount_a, selection.amount_b],
        )

    @staticmethod
    def _require_tick_in_range(pool: PoolInfo, tick_lower: int, tick_upper: int) -> None:
        if not is_tick_in_range(tick_lower, tick_upper, pool.current_tick_index):
            raise TickOutOfRangeError(pool.current_tick_index, tick_lower, tick_upper)

    async def _submit_with_retry(
        self,
        pool_address: str,
        tick_lower: int,
        tick_upper: int,
        *,
        existing_position_id: str | None,
        amounts: list[int],
    ) -> TransactionResult:
        sdk = self._require_sdk()
        is_open = not existing_position_id
        recovery_attempted = False

        async def _attempt(attempt: int) -> TransactionResult:
            nonlocal recovery_attempted
            pool = await self.chain.get_pool(pool_address)
            if self.strict_tick_validation:
                self._require_tick_in_range(pool, tick_lower, tick_upper)

            safe_a, safe_b = await self.safe_balances(pool)
            amount_a = calculate_zap_amount(amounts[0], safe_a)
            amount_b = calculate_zap_amount(amounts[1], safe_b)
            if amount_a == 0 and amount_b == 0:
                raise InsufficientBalanceError(
                    f"Both zap amounts are zero after capping to wallet balance "
                    f"(safe A={safe_a}, safe B={safe_b})"
                )
            if attempt > 0:
                self.logger.info(
                    f"Add liquidity attempt {attempt + 1}: amount_a={amount_a} amount_b={amount_b}"
                )

            params = AddLiquidityFixTokenParams(
                pool_id=pool.pool_address,
                pos_id=existing_position_id or "",
                tick_lower=str(tick_lower),
                tick_upper=str(tick_upper),
                amount_a=str(amount_a),
                amount_b=str(amount_b),
                slippage=self.max_slippage,
                fix_amount_a=amount_a > 0,
                is_open=is_open,
                coin_type_a=pool.coin_type_a,
                coin_type_b=pool.coin_type_b,
                collect_fee=False,
            )
            try:
                tx = await sdk.build_add_liquidity_fix_token_payload(
                    params,
                    slippage=self.max_slippage,
                    current_sqrt_price=pool.current_sqrt_price,
                    gas_budget=self.gas_budget,
                )
                return await execute_transaction(self.chain, tx, action="add liquidity")
            except Exception as exc:
                if is_fatal_deployment_error(exc):
                    raise ContractAbortError(f"Non-retryable contract abort: {exc}") from exc
                shortfall = parse_insufficient_balance(exc)
                if shortfall is not None and not recovery_attempted:
                    recovery_attempted = True
                    try:
                        await self._recover_shortfall(pool, shortfall, amounts)
                    except Exception as swap_exc:  # noqa: BLE001
                        self.logger.warning(f"Recovery swap failed: {swap_exc}")
                raise

        def _should_retry(exc: Exception) -> bool:
            return not isinstance(exc, (ContractAbortError, PreconditionError))

        def _on_retry(attempt: int, exc: Exception, delay_s: float) -> None:
            self.logger.warning(
                f"Add liquidity attempt {attempt + 1}/{self.max_attempts} failed, "
                f"retrying in {delay_s:.1f}s: {exc}"
            )

        try:
            result = await retry_async(
                _attempt,
                max_retries=self.max_attempts,
                should_retry=_should_retry,
                get_delay_s=fixed_delay_s(self.retry_delay_s),
                on_retry=_on_retry,
            )
        except Exception as exc:
            self.logger.error(f"Failed to add liquidity: {exc}")
            raise

        self.logger.info(f"Liquidity added, tx {result.digest}")
        return result

    async def _recover_shortfall(
        self, pool: PoolInfo, shortfall: tuple[str, int], amounts: list[int]
    ) -> None:
        """One corrective swap for the coin the contract reported missing.

        The input is sized from the swap estimate and the swap runs exact-in
        with a slippage floor. Without an estimate it falls back to an
        exact-out swap capped at the counterpart balance.

        ``amounts`` is the working [amount_a, amount_b] pair and is updated in
        place from the post-swap balance of whichever side is being zapped.
        """
        needed_coin, expected = shortfall
        safe_a, safe_b = await self.safe_balances(pool)

        if coin_types_match(needed_coin, pool.coin_type_b) and safe_a > 0:
            a2b, have_needed, source_balance = True, safe_b, safe_a
        elif coin_types_match(needed_coin, pool.coin_type_a) and safe_b > 0:
            a2b, have_needed, source_balance = False, safe_a, safe_b
        else:
            raise SwapRecoveryError(
                f"Cannot recover shortfall of {needed_coin}: no counterpart balance "
                f"(safe A={safe_a}, safe B={safe_b})"
            )

        missing = expected - have_needed
        if missing <= 0:
            missing = expected
        want = swap_amount_with_buffer(missing, self.swap_buffer_percent)
        self.logger.info(
            f"Insufficient balance for {needed_coin} (expected {expected}); "
            f"swapping for {want} {'A->B' if a2b else 'B->A'}"
        )
        amount_in = await self.swap_adapter.quote_amount_in(
            pool, a2b=a2b, amount_out=want, max_amount_in=source_balance
        )
        if amount_in is not None:
            await self.swap_adapter.perform_swap(pool.pool_address, a2b=a2b, amount=amount_in)
        else:
            await self.swap_adapter.perform_swap(
                pool.pool_address,
                a2b=a2b,
                amount=want,
                by_amount_in=False,
                max_amount_in=source_balance,
            )

        post_a, post_b = await self.safe_balances(pool)
        if amounts[0] > 0:
            amounts[0] = post_a
        else:
            amounts[1] = post_b
        self.logger.info(f"Working amounts after recovery swap: {amounts}")
