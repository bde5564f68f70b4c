from __future__ import annotations

from typing import Any

from clmm_rebalancer.core.adapters.BaseAdapter import BaseAdapter
from clmm_rebalancer.core.adapters.models import PoolInfo, PositionInfo, TickRange
from clmm_rebalancer.core.clients.protocols import ChainClient
from clmm_rebalancer.core.constants.base import (
    ADAPTER_POSITION_MONITOR,
    DEFAULT_REBALANCE_THRESHOLD,
)
from clmm_rebalancer.core.utils.tick_math import (
    centered_range,
    distance_to_edge,
    is_tick_in_range,
    tightest_range,
)


class PositionMonitorAdapter(BaseAdapter):
    """Reads pool / position state and decides when and where to move liquidity."""

    adapter_type = ADAPTER_POSITION_MONITOR

    def __init__(self, config: dict[str, Any] | None = None, *, chain: ChainClient):
        super().__init__("position_monitor_adapter", config, chain=chain)
        self.rebalance_threshold = float(
            self.config.get("rebalance_threshold", DEFAULT_REBALANCE_THRESHOLD)
        )
        if self.rebalance_threshold < 0:
            raise ValueError("rebalance_threshold must be >= 0")

    # ── chain reads ────────────────────────────────────────────────────────

    async def get_pool_info(self, pool_address: str) -> PoolInfo:
        return await self.chain.get_pool(pool_address)

    async def get_positions(self, owner: str | None = None) -> list[PositionInfo]:
        return await self.chain.get_positions(owner or self.owner)

    async def get_pool_positions(
        self, pool_address: str, *, pool_info: PoolInfo | None = None
    ) -> list[PositionInfo]:
        """Owner's positions in ``pool_address`` with ``in_range`` filled from the pool tick."""
        positions = [p for p in await self.get_positions() if p.pool_address == pool_address]
        if pool_info is None:
            return positions
        tick = pool_info.current_tick_index
        return [
            p.model_copy(
                update={"in_range": self.is_position_in_range(p.tick_lower, p.tick_upper, tick)}
            )
            for p in positions
        ]

    # ── decisions ──────────────────────────────────────────────────────────

    @staticmethod
    def is_position_in_range(tick_lower: int, tick_upper: int, current_tick: int) -> bool:
        return is_tick_in_range(tick_lower, tick_upper, current_tick)

    def should_rebalance(self, position: PositionInfo, pool_info: PoolInfo) -> bool:
        """Out of range always triggers; optionally also when drifting close to an edge.

        The edge trigger fires when the tick sits strictly closer than
        ``rebalance_threshold * width`` ticks to either bound. Threshold 0 disables it.
        """
        tick = pool_info.current_tick_index
        if not self.is_position_in_range(position.tick_lower, position.tick_upper, tick):
            return True
        if self.rebalance_threshold <= 0:
            return False

        width = position.tick_upper - position.tick_lower
        edge_ticks = self.rebalance_threshold * width
        distance = distance_to_edge(position.tick_lower, position.tick_upper, tick)
        if distance < edge_ticks:
            self.logger.info(
                f"Position {position.position_id} tick {tick} is {distance} ticks from "
                f"an edge of [{position.tick_lower}, {position.tick_upper}] "
                f"(threshold {edge_ticks:.1f})"
            )
            return True
        return False

    @staticmethod
    def calculate_optimal_range(
        current_tick: int, tick_spacing: int, preserve_width: int | None = None
    ) -> TickRange:
        if tick_spacing <= 0:
            raise ValueError(f"tick_spacing must be positive, got {tick_spacing}")
        if preserve_width is None:
            lower, upper = tightest_range(current_tick, tick_spacing)
        else:
            if preserve_width <= 0:
                raise ValueError(f"preserve_width must be positive, got {preserve_width}")
            lower, upper = centered_range(current_tick, tick_spacing, preserve_width)
        return TickRange(tick_lower=lower, tick_upper=upper)
