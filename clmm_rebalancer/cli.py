from __future__ import annotations

import asyncio
import importlib
import json
import sys
from dataclasses import replace
from typing import Any

import click
from loguru import logger

from clmm_rebalancer.core.clients.protocols import ChainClient, ClmmSdk
from clmm_rebalancer.core.clients.SuiRpcClient import SuiRpcClient
from clmm_rebalancer.core.config import BotConfig, load_bot_config, load_config
from clmm_rebalancer.strategies.clmm_rebalance.strategy import ClmmRebalanceStrategy

_LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"]


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def load_object(path: str) -> Any:
    """Resolve ``package.module:attribute``."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ValueError(f"{module_name} has no attribute {attr!r}") from exc


def build_clients(bot: BotConfig) -> tuple[ChainClient, ClmmSdk]:
    """Wire the fullnode client and the protocol SDK from their factories.

    Both factories are called with the resolved ``BotConfig``; the signer
    factory returns an async ``tx_bytes -> signature`` callable.
    """
    if not bot.wallet_address:
        raise ValueError("wallet_address is required (set WALLET_ADDRESS)")
    if not bot.sdk_factory:
        raise ValueError("sdk_factory is required (set SDK_FACTORY to 'module:callable')")

    sdk = load_object(bot.sdk_factory)(bot)
    signer = load_object(bot.signer_factory)(bot) if bot.signer_factory else None
    if signer is None and not bot.dry_run:
        logger.warning("No signer_factory configured; transactions cannot be submitted")

    chain = SuiRpcClient(
        bot.resolved_rpc_url,
        address=bot.wallet_address,
        network=bot.network,
        signer=signer,
    )
    return chain, sdk


def _resolve(config_path: str | None, **overrides: Any) -> BotConfig:
    try:
        load_config(config_path, require_exists=config_path is not None)
        bot = load_bot_config()
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(bot, **overrides) if overrides else bot
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def _build_strategy(bot: BotConfig) -> ClmmRebalanceStrategy:
    try:
        chain, sdk = build_clients(bot)
    except (ImportError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    return ClmmRebalanceStrategy(bot.to_adapter_config(), chain=chain, sdk=sdk)


async def _close(strategy: ClmmRebalanceStrategy) -> None:
    await strategy.close()
    close = getattr(strategy.chain, "close", None)
    if close is not None:
        await close()


async def run_loop(
    strategy: ClmmRebalanceStrategy, *, interval_s: float, once: bool = False
) -> bool:
    """Run cycles until cancelled; returns the last cycle's success flag."""
    await strategy.setup()
    try:
        while True:
            ok, message = await strategy.update()
            if ok:
                logger.info(message)
            else:
                logger.error(message)
            if once:
                return ok
            await asyncio.sleep(interval_s)
    finally:
        await _close(strategy)


@click.group(name="clmm-rebalancer", help="Concentrated-liquidity position rebalancer.")
def cli() -> None:
    pass


@cli.command(name="run", help="Run the rebalance loop.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None)
@click.option("--once", is_flag=True, default=False, help="Run a single cycle and exit.")
@click.option("--dry-run", is_flag=True, default=False, help="Log actions without submitting.")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
)
def run_cmd(config_path: str | None, once: bool, dry_run: bool, log_level: str | None) -> None:
    bot = _resolve(
        config_path,
        dry_run=True if dry_run else None,
        log_level=log_level.upper() if log_level else None,
    )
    _configure_logging(log_level or bot.effective_log_level)
    logger.info(
        f"Starting rebalancer for pool {bot.pool_address} on {bot.network} "
        f"(interval {bot.check_interval}s, dry_run={bot.dry_run})"
    )
    strategy = _build_strategy(bot)
    try:
        ok = asyncio.run(run_loop(strategy, interval_s=bot.check_interval, once=once))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return
    if once and not ok:
        sys.exit(1)


async def _check(strategy: ClmmRebalanceStrategy) -> dict[str, Any]:
    try:
        pool_address = strategy.pool_address or ""
        pool = await strategy.monitor.get_pool_info(pool_address)
        positions = await strategy.monitor.get_pool_positions(pool_address, pool_info=pool)
        live = [p for p in positions if p.has_liquidity]
        tracked = strategy.tracked_position_id
        current = next((p for p in live if p.position_id == tracked), None)
        if current is None and tracked is None and live:
            current = max(live, key=lambda p: p.liquidity_value or 0)
        target = strategy.target_range(pool, current.range.width if current else None)
        return {
            "pool_address": pool.pool_address,
            "current_tick": pool.current_tick_index,
            "tick_spacing": pool.tick_spacing,
            "tracked_position_id": current.position_id if current else tracked,
            "positions": [
                {
                    "position_id": p.position_id,
                    "tick_lower": p.tick_lower,
                    "tick_upper": p.tick_upper,
                    "liquidity": p.liquidity,
                    "in_range": p.in_range,
                }
                for p in positions
            ],
            "needs_rebalance": (
                strategy.monitor.should_rebalance(current, pool) if current else bool(not live)
            ),
            "next_range": list(target.as_tuple()),
        }
    finally:
        await _close(strategy)


@cli.command(name="check", help="Show pool state and the range the next rebalance would use.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None)
def check_cmd(config_path: str | None) -> None:
    bot = _resolve(config_path)
    _configure_logging(bot.effective_log_level)
    strategy = _build_strategy(bot)
    _echo_json(asyncio.run(_check(strategy)))


@cli.command(name="show-config", help="Print the resolved configuration (secrets redacted).")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None)
def show_config_cmd(config_path: str | None) -> None:
    _echo_json(_resolve(config_path).redacted())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
