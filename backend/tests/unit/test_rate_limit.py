import pytest

from stallmates.infra.rate_limit import allow, consume


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
    assert await allow("hb", "u5", limit=2, window_seconds=60, now=1_000.0)
    assert await allow("hb", "u5", limit=2, window_seconds=60, now=1_001.0)


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
    await allow("invite", "u6", limit=1, window_seconds=60, now=1_000.0)
    budget = await consume("invite", "u6", limit=1, window_seconds=60, now=1_010.0)
    assert not budget.allowed
    assert budget.used == 2
    assert budget.reset_in == pytest.approx(10.0)


@pytest.mark.asyncio
async def test_next_window_starts_fresh():
    await allow("invite", "u7", limit=1, window_seconds=60, now=1_000.0)
    assert await allow("invite", "u7", limit=1, window_seconds=60, now=1_020.0)


@pytest.mark.asyncio
async def test_zero_limit_never_allows():
    assert not await allow("invite", "u8", limit=0)
