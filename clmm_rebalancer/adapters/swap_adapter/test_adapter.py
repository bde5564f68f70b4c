import pytest

from clmm_rebalancer.adapters.swap_adapter.adapter import (
    SwapAdapter,
    min_output_for_slippage,
)
from clmm_rebalancer.testing.fakes import COIN_A, COIN_B, POOL


@pytest.fixture
def adapter(fake_chain, fake_sdk):
    return SwapAdapter({"max_slippage": 0.01}, chain=fake_chain, sdk=fake_sdk)


@pytest.mark.parametrize(
    "estimated,slippage,expected",
    [
        (1_000_000, 0.01, 990_000),
        (1_000_000, 0.005, 995_000),
        (100, 0.01, 99),
        (0, 0.01, 0),
        (1_000_000, 0.0, 1_000_000),
    ],
)
def test_min_output_for_slippage(estimated, slippage, expected):
    assert min_output_for_slippage(estimated, slippage) == expected


def test_adapter_type(adapter):
    assert adapter.adapter_type == "SWAP"


@pytest.mark.asyncio
async def test_exact_in_swap_applies_slippage_limit(adapter, fake_chain, fake_sdk):
    fake_chain.set_balance(COIN_A, 1_000)

    result = await adapter.perform_swap(POOL, a2b=True, amount=100)

    assert result.succeeded
    [params] = fake_sdk.calls_of("swap")
    assert params.a2b is True
    assert params.by_amount_in is True
    assert params.amount == "100"
    assert params.amount_limit == "99"
    assert fake_chain.balance_of(COIN_A) == 900
    assert fake_chain.balance_of(COIN_B) == 100


@pytest.mark.asyncio
async def test_estimate_failure_disables_slippage_limit(adapter, fake_chain, fake_sdk):
    fake_chain.set_balance(COIN_B, 1_000)
    fake_sdk.estimate_error = RuntimeError("quoter unavailable")

    await adapter.perform_swap(POOL, a2b=False, amount=250)

    [params] = fake_sdk.calls_of("swap")
    assert params.amount_limit == "0"
    assert params.a2b is False


@pytest.mark.asyncio
async def test_exact_out_swap_uses_max_input_as_limit(adapter, fake_chain, fake_sdk):
    fake_chain.set_balance(COIN_A, 1_000)

    await adapter.perform_swap(
        POOL, a2b=True, amount=110, by_amount_in=False, max_amount_in=1_000
    )

    [params] = fake_sdk.calls_of("swap")
    assert params.by_amount_in is False
    assert params.amount == "110"
    assert params.amount_limit == "1000"


@pytest.mark.asyncio
async def test_exact_out_swap_requires_max_input(adapter, fake_chain, fake_sdk):
    with pytest.raises(ValueError, match="max_amount_in"):
        await adapter.perform_swap(POOL, a2b=True, amount=110, by_amount_in=False)
    assert fake_sdk.calls_of("swap") == []
    assert fake_chain.executed == []


@pytest.mark.asyncio
async def test_quote_amount_in_scales_and_caps(adapter, fake_chain, fake_sdk, monkeypatch):
    async def third_price(pool, *, a2b, amount):
        return amount // 3

    monkeypatch.setattr(fake_sdk, "estimate_swap_output", third_price)
    pool = await fake_chain.get_pool(POOL)

    assert await adapter.quote_amount_in(pool, a2b=True, amount_out=100, max_amount_in=900) == 300
    assert await adapter.quote_amount_in(pool, a2b=True, amount_out=400, max_amount_in=900) == 900


@pytest.mark.asyncio
async def test_quote_amount_in_without_estimate(adapter, fake_chain, fake_sdk):
    fake_sdk.estimate_error = RuntimeError("quoter unavailable")
    pool = await fake_chain.get_pool(POOL)

    assert await adapter.quote_amount_in(pool, a2b=False, amount_out=100, max_amount_in=900) is None
