import pytest

from clmm_rebalancer.adapters.liquidity_removal_adapter.adapter import (
    LiquidityRemovalAdapter,
    freed_from_balance_changes,
)
from clmm_rebalancer.core.adapters.models import (
    BalanceChange,
    GasCostSummary,
    TransactionResult,
)
from clmm_rebalancer.core.constants.sui import SUI_COIN_TYPE, SUI_COIN_TYPE_FULL
from clmm_rebalancer.core.errors import PositionNotFoundError, TransactionFailedError
from clmm_rebalancer.testing.fakes import COIN_A, COIN_B, OWNER

STALE = "Object 0x91 is not available for consumption, its current version: 0x1a"


@pytest.fixture
def adapter(fake_chain, fake_sdk, fast_retry_config):
    return LiquidityRemovalAdapter(fast_retry_config, chain=fake_chain, sdk=fake_sdk)


def test_adapter_type(adapter):
    assert adapter.adapter_type == "LIQUIDITY_REMOVAL"


@pytest.mark.asyncio
async def test_remove_liquidity_reports_freed_amounts(adapter, fake_chain, fake_sdk):
    fake_chain.add_position("0xp1", 900, 960, "5000000")

    freed = await adapter.remove_liquidity("0xp1", "5000000")

    assert freed.amount_a == "0"
    assert freed.amount_b == "5000000"
    [params] = fake_sdk.calls_of("remove_liquidity")
    assert params.delta_liquidity == "5000000"
    assert params.collect_fee is True
    assert params.pos_id == "0xp1"
    assert fake_chain.positions["0xp1"].liquidity == "0"


@pytest.mark.asyncio
async def test_remove_liquidity_missing_position(adapter, fake_chain, fake_sdk):
    with pytest.raises(PositionNotFoundError, match="Position 0xnope not found"):
        await adapter.remove_liquidity("0xnope", "1")
    assert fake_sdk.calls == []
    assert fake_chain.executed == []


@pytest.mark.asyncio
async def test_stale_object_error_is_retried(adapter, fake_chain):
    fake_chain.add_position("0xp1", 960, 1080, "1000")
    fake_chain.outcomes.append(RuntimeError(STALE))

    freed = await adapter.remove_liquidity("0xp1", "1000")

    assert len(fake_chain.executed) == 2
    assert (freed.amount_a, freed.amount_b) == ("500", "500")


@pytest.mark.asyncio
async def test_pending_transaction_failure_status_is_retried(adapter, fake_chain):
    fake_chain.add_position("0xp1", 960, 1080, "1000")
    fake_chain.outcomes.append(
        TransactionResult(
            digest="0xpending",
            status="failure",
            error="Transaction pending, previous tx 31 seconds old",
        )
    )

    await adapter.remove_liquidity("0xp1", "1000")

    assert len(fake_chain.executed) == 2


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately(adapter, fake_chain):
    fake_chain.add_position("0xp1", 960, 1080, "1000")
    fake_chain.outcomes.append(
        TransactionResult(digest="0xbad", status="failure", error="InsufficientGas")
    )

    with pytest.raises(TransactionFailedError, match="InsufficientGas"):
        await adapter.remove_liquidity("0xp1", "1000")
    assert len(fake_chain.executed) == 1
    assert fake_chain.positions["0xp1"].liquidity == "1000"


@pytest.mark.asyncio
async def test_retry_exhaustion_reraises_last_error(adapter, fake_chain):
    fake_chain.add_position("0xp1", 960, 1080, "1000")
    fake_chain.outcomes.extend(
        [RuntimeError(STALE), RuntimeError(STALE), RuntimeError(f"{STALE} (last)")]
    )

    with pytest.raises(RuntimeError, match=r"\(last\)"):
        await adapter.remove_liquidity("0xp1", "1000")
    assert len(fake_chain.executed) == 3


def test_freed_from_balance_changes_filters_owner_and_coin():
    result = TransactionResult(
        digest="0x1",
        status="success",
        balance_changes=[
            BalanceChange(owner=OWNER, coin_type=COIN_A, amount=700),
            BalanceChange(owner="0x00005ea1", coin_type=COIN_A, amount=300),
            BalanceChange(owner="0xsomeoneelse", coin_type=COIN_A, amount=9999),
            BalanceChange(owner=None, coin_type=COIN_A, amount=-1000),
            BalanceChange(owner=OWNER, coin_type=COIN_B, amount=-5),
        ],
    )
    assert freed_from_balance_changes(result, OWNER, COIN_A) == 1000
    assert freed_from_balance_changes(result, OWNER, COIN_B) == 0


def test_freed_gas_coin_adds_back_gas_cost():
    result = TransactionResult(
        digest="0x1",
        status="success",
        balance_changes=[BalanceChange(owner=OWNER, coin_type=SUI_COIN_TYPE_FULL, amount=-500)],
        gas_used=GasCostSummary(computation_cost=1500, storage_cost=1000, storage_rebate=500),
    )
    assert freed_from_balance_changes(result, OWNER, SUI_COIN_TYPE) == 1500


def test_freed_gas_coin_still_negative_after_gas_is_zero():
    result = TransactionResult(
        digest="0x1",
        status="success",
        balance_changes=[BalanceChange(owner=OWNER, coin_type=SUI_COIN_TYPE, amount=-5000)],
        gas_used=GasCostSummary(computation_cost=1000),
    )
    assert freed_from_balance_changes(result, OWNER, SUI_COIN_TYPE) == 0


@pytest.mark.asyncio
async def test_reconcile_falls_back_to_wallet_diff(adapter, fake_chain):
    fake_chain.set_balance(COIN_A, 400)
    fake_chain.set_balance(COIN_B, 200)
    result = TransactionResult(digest="0x1", status="success", balance_changes=[])

    freed = await adapter.reconcile_freed_amounts(
        result, coin_type_a=COIN_A, coin_type_b=COIN_B, balances_before=(100, 500)
    )

    assert (freed.amount_a, freed.amount_b) == ("300", "0")


@pytest.mark.asyncio
async def test_reconcile_prefers_balance_changes(adapter, fake_chain):
    fake_chain.set_balance(COIN_A, 10_000)
    result = TransactionResult(
        digest="0x1",
        status="success",
        balance_changes=[BalanceChange(owner=OWNER, coin_type=COIN_B, amount=42)],
    )
    reads = fake_chain.balance_reads

    freed = await adapter.reconcile_freed_amounts(
        result, coin_type_a=COIN_A, coin_type_b=COIN_B, balances_before=(0, 0)
    )

    assert (freed.amount_a, freed.amount_b) == ("0", "42")
    assert fake_chain.balance_reads == reads
