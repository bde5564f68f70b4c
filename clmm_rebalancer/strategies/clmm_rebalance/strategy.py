from __future__ import annotations

from typing import Any

from clmm_rebalancer.adapters.liquidity_deployment_adapter.adapter import (
    LiquidityDeploymentAdapter,
)
from clmm_rebalancer.adapters.liquidity_removal_adapter.adapter import (
    LiquidityRemovalAdapter,
)
from clmm_rebalancer.adapters.position_monitor_adapter.adapter import (
    PositionMonitorAdapter,
)
from clmm_rebalancer.adapters.swap_adapter.adapter import SwapAdapter
from clmm_rebalancer.core.adapters.models import (
    FreedAmounts,
    PoolInfo,
    PositionInfo,
    RebalanceResult,
    TickRange,
)
from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk
from clmm_rebalancer.core.strategies.Strategy import StatusDict, StatusTuple, Strategy
from clmm_rebalancer.core.utils.tick_math import ranges_equivalent


class ClmmRebalanceStrategy(Strategy):
    """Keeps exactly one liquidity position per pool in range.

    Each cycle picks the tracked position, decides whether it must move, and
    if so closes it and zaps the proceeds into the new range. The tracked ID
    is cleared before every deployment and only set again once the target
    position is confirmed on chain; a cycle that fails in between leaves it
    ``None`` and the next cycle auto-selects.
    """

    name = "clmm_rebalance"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        chain: ChainClient,
        sdk: ClmmSdk,
        monitor: PositionMonitorAdapter | None = None,
        removal: LiquidityRemovalAdapter | None = None,
        deployment: LiquidityDeploymentAdapter | None = None,
        **kwargs: Any,
    ):
        super().__init__(config, **kwargs)
        self.chain = chain
        self.sdk = sdk
        self.monitor = monitor or PositionMonitorAdapter(self.config, chain=chain)
        self.removal = removal or LiquidityRemovalAdapter(self.config, chain=chain, sdk=sdk)
        self.deployment = deployment or LiquidityDeploymentAdapter(
            self.config,
            chain=chain,
            sdk=sdk,
            swap_adapter=SwapAdapter(self.config, chain=chain, sdk=sdk),
        )
        self.pool_address: str | None = self.config.get("pool_address")
        self.dry_run = bool(self.config.get("dry_run", False))
        self._tracked_position_id: str | None = self.config.get("position_id") or None
        self._cycles = 0
        self._last_result: RebalanceResult | None = None

    @property
    def tracked_position_id(self) -> str | None:
        return self._tracked_position_id

    # ── range selection ────────────────────────────────────────────────────

    def _explicit_range(self) -> TickRange | None:
        lower = self.config.get("lower_tick")
        upper = self.config.get("upper_tick")
        if lower is None or upper is None:
            return None
        return TickRange(tick_lower=int(lower), tick_upper=int(upper))

    def target_range(self, pool_info: PoolInfo, tracked_width: int | None = None) -> TickRange:
        """Explicit ticks > configured width > tracked position's width > tightest bin."""
        explicit = self._explicit_range()
        if explicit is not None:
            return explicit
        width = self.config.get("range_width")
        preserve = int(width) if width is not None else tracked_width
        return self.monitor.calculate_optimal_range(
            pool_info.current_tick_index, pool_info.tick_spacing, preserve
        )

    def _next_range(self, pool_info: PoolInfo, position: PositionInfo) -> TickRange:
        tracked_width = (
            position.range.width if position.position_id == self._tracked_position_id else None
        )
        return self.target_range(pool_info, tracked_width)

    # ── cycle ──────────────────────────────────────────────────────────────

    async def check_and_rebalance(self, pool_address: str) -> RebalanceResult | None:
        """Run one cycle. ``None`` means nothing needed doing; failures come back as results."""
        try:
            pool_info = await self.monitor.get_pool_info(pool_address)
            pool_positions = await self.monitor.get_pool_positions(
                pool_address, pool_info=pool_info
            )
            live = [p for p in pool_positions if p.has_liquidity]

            if self._tracked_position_id is not None:
                position = next(
                    (p for p in live if p.position_id == self._tracked_position_id), None
                )
                if position is None:
                    self.logger.warning(
                        f"Tracked position {self._tracked_position_id} not found in pool "
                        f"{pool_address}, skipping cycle"
                    )
                    return None
            elif live:
                position = max(live, key=lambda p: p.liquidity_value or 0)
                self._tracked_position_id = position.position_id
                self.logger.info(
                    f"Auto-tracking position {position.position_id} "
                    f"(liquidity {position.liquidity})"
                )
            else:
                self.logger.info(
                    f"No position with liquidity in pool {pool_address}, attempting recovery open"
                )
                result = await self.create_new_position(pool_info)
                if result.success:
                    return result
                self.logger.info(f"Recovery open did not succeed this cycle: {result.error}")
                return None

            tick = pool_info.current_tick_index
            if not self.monitor.should_rebalance(position, pool_info):
                self.logger.info(
                    f"Tracked position {position.position_id} in range "
                    f"[{position.tick_lower}, {position.tick_upper}] at tick {tick}, no action"
                )
                return None

            new = self._next_range(pool_info, position)
            if ranges_equivalent(position.range.as_tuple(), new.as_tuple(), pool_info.tick_spacing):
                self.logger.info(
                    f"Tracked position {position.position_id} already sits at the target "
                    f"range {list(new.as_tuple())} for tick {tick}, no action"
                )
                return None

            self.logger.info(
                f"Tracked position {position.position_id} "
                f"[{position.tick_lower}, {position.tick_upper}] needs rebalance at tick {tick}"
            )
            return await self._rebalance(pool_info, position, pool_positions)
        except Exception as exc:
            self.logger.exception(f"Check and rebalance failed for pool {pool_address}: {exc}")
            return RebalanceResult(success=False, error=str(exc))

    async def rebalance_position(self, pool_address: str) -> RebalanceResult:
        """Rebalance the tracked position (or the largest one needing it) unconditionally."""
        try:
            pool_info = await self.monitor.get_pool_info(pool_address)
            pool_positions = await self.monitor.get_pool_positions(
                pool_address, pool_info=pool_info
            )
            if self._tracked_position_id is not None:
                candidates = [
                    p for p in pool_positions if p.position_id == self._tracked_position_id
                ]
            else:
                candidates = [
                    p for p in pool_positions if self.monitor.should_rebalance(p, pool_info)
                ]
            if not candidates:
                return RebalanceResult(success=False, error="No existing position to rebalance")
            position = max(candidates, key=lambda p: p.liquidity_value or 0)
            return await self._rebalance(pool_info, position, pool_positions)
        except Exception as exc:
            self.logger.exception(f"Rebalance failed for pool {pool_address}: {exc}")
            return RebalanceResult(success=False, error=str(exc))

    async def _rebalance(
        self,
        pool_info: PoolInfo,
        position: PositionInfo,
        pool_positions: list[PositionInfo],
    ) -> RebalanceResult:
        old = position.range
        new = self._next_range(pool_info, position)

        if ranges_equivalent(old.as_tuple(), new.as_tuple(), pool_info.tick_spacing):
            self.logger.info(
                f"Range unchanged ({old.as_tuple()} vs {new.as_tuple()}), skipping rebalance"
            )
            return RebalanceResult(success=True, old_position=old, new_position=new)

        if self.dry_run:
            self.logger.info(
                f"[DRY RUN] Would move position {position.position_id} from "
                f"{list(old.as_tuple())} to {list(new.as_tuple())} "
                f"(liquidity {position.liquidity})"
            )
            return RebalanceResult(success=True, old_position=old, new_position=new)

        freed: FreedAmounts | None = None
        if position.has_liquidity:
            freed = await self.removal.remove_liquidity(position.position_id, position.liquidity)
        else:
            self.logger.info(f"Position {position.position_id} has no liquidity, skipping removal")

        existing = next(
            (
                p
                for p in pool_positions
                if p.position_id != position.position_id
                and p.tick_lower == new.tick_lower
                and p.tick_upper == new.tick_upper
            ),
            None,
        )
        if existing is not None:
            self.logger.info(
                f"Position {existing.position_id} already covers {list(new.as_tuple())}, "
                "adding liquidity to it"
            )
        if self._tracked_position_id is not None:
            self.logger.info(
                f"Clearing tracked position {self._tracked_position_id} until deployment is confirmed"
            )
            self._tracked_position_id = None

        result = await self.deployment.add_liquidity(
            pool_info,
            new.tick_lower,
            new.tick_upper,
            existing.position_id if existing is not None else None,
            freed,
        )

        if existing is not None:
            self._tracked_position_id = existing.position_id
        else:
            await self._adopt_position(
                pool_info.pool_address, new, exclude_position_id=position.position_id
            )

        self.logger.info(
            f"Rebalance complete: {list(old.as_tuple())} -> {list(new.as_tuple())}, "
            f"tx {result.digest}"
        )
        return RebalanceResult(
            success=True,
            transaction_digest=result.digest,
            old_position=old,
            new_position=new,
        )

    async def create_new_position(self, pool_info: PoolInfo) -> RebalanceResult:
        """Open a position from wallet funds when the pool has none with liquidity."""
        try:
            new = self.target_range(pool_info)
            self.logger.info(f"Creating new position {list(new.as_tuple())}")
            if self.dry_run:
                self.logger.info(f"[DRY RUN] Would create position {list(new.as_tuple())}")
                return RebalanceResult(success=True, new_position=new)

            result = await self.deployment.add_liquidity(
                pool_info, new.tick_lower, new.tick_upper
            )
            await self._adopt_position(pool_info.pool_address, new, exclude_position_id=None)
            return RebalanceResult(
                success=True, transaction_digest=result.digest, new_position=new
            )
        except Exception as exc:
            self.logger.error(f"Failed to create new position: {exc}")
            return RebalanceResult(success=False, error=str(exc))

    async def _adopt_position(
        self, pool_address: str, target: TickRange, *, exclude_position_id: str | None
    ) -> None:
        try:
            positions = await self.monitor.get_pool_positions(pool_address)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(f"Could not discover new position after deployment: {exc}")
            return

        matches = [
            p
            for p in positions
            if p.position_id != exclude_position_id
            and p.tick_lower == target.tick_lower
            and p.tick_upper == target.tick_upper
        ]
        if not matches:
            self.logger.warning(
                f"New position at {list(target.as_tuple())} not visible yet; "
                "next cycle will auto-select it"
            )
            return
        adopted = max(matches, key=lambda p: p.liquidity_value or 0)
        self._tracked_position_id = adopted.position_id
        self.logger.info(f"Now tracking position {adopted.position_id}")

    # ── Strategy interface ─────────────────────────────────────────────────

    async def update(self) -> StatusTuple:
        if not self.pool_address:
            return (False, "pool_address not configured")
        self._cycles += 1
        result = await self.check_and_rebalance(self.pool_address)
        if result is not None:
            self._last_result = result
        if result is None:
            return (True, "No action needed")
        return (result.success, result.message)

    async def _status(self) -> StatusDict:
        return {
            "pool_address": self.pool_address or "",
            "tracked_position_id": self._tracked_position_id,
            "cycles": self._cycles,
            "last_result": self._last_result.model_dump() if self._last_result else None,
            "dry_run": self.dry_run,
        }
