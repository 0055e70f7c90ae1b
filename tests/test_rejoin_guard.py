import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors import ExternalApiFailure, ResolutionFailure
from models.restrictions import RestrictionKey
from services.executor import ActionResult
from services.rejoin_guard import RejoinGuard, RejoinOutcome


KEY = RestrictionKey(42, 7)


@pytest.fixture
def executor():
    ex = MagicMock()
    ex.apply_mute = AsyncMock(return_value=ActionResult.success("applied"))
    ex.lift_mute = AsyncMock(return_value=ActionResult.success("already_lifted"))
    return ex


@pytest.fixture
def guard(mute_store, executor, clock):
    return RejoinGuard(mute_store, executor, clock=clock)


@pytest.mark.asyncio
async def test_rejoin_without_entry_is_ignored(guard, executor):
    outcome = await guard.handle_rejoin(42, 7)
    assert outcome is RejoinOutcome.IGNORED
    executor.apply_mute.assert_not_awaited()
    executor.lift_mute.assert_not_awaited()


@pytest.mark.asyncio
async def test_rejoin_with_active_mute_reapplies_once(guard, executor, mute_store):
    entry = mute_store.add(KEY, datetime.timedelta(minutes=10))
    outcome = await guard.handle_rejoin(42, 7)
    assert outcome is RejoinOutcome.REAPPLIED
    executor.apply_mute.assert_awaited_once()
    assert executor.apply_mute.await_args.args[:2] == (42, 7)
    assert mute_store.get(KEY) == entry.expires_at


@pytest.mark.asyncio
async def test_rejoin_with_expired_mute_clears_entry(guard, executor, mute_store, clock):
    mute_store.add(KEY, datetime.timedelta(minutes=1))
    clock.advance(60)
    outcome = await guard.handle_rejoin(42, 7)
    assert outcome is RejoinOutcome.CLEARED
    executor.lift_mute.assert_awaited_once()
    executor.apply_mute.assert_not_awaited()
    assert not mute_store.has(KEY)


@pytest.mark.asyncio
async def test_failed_clear_keeps_entry(guard, executor, mute_store, clock):
    executor.lift_mute.return_value = ActionResult.failure(ExternalApiFailure("unmute", RuntimeError("500")))
    mute_store.add(KEY, datetime.timedelta(minutes=1))
    clock.advance(300)
    outcome = await guard.handle_rejoin(42, 7)
    assert outcome is RejoinOutcome.FAILED
    assert mute_store.has(KEY)


@pytest.mark.asyncio
async def test_failed_reapply_keeps_entry(guard, executor, mute_store):
    executor.apply_mute.return_value = ActionResult.failure(ResolutionFailure("mute role", None))
    mute_store.add(KEY, datetime.timedelta(minutes=10))
    outcome = await guard.handle_rejoin(42, 7)
    assert outcome is RejoinOutcome.FAILED
    assert mute_store.has(KEY)


@pytest.mark.asyncio
async def test_rejoin_in_other_guild_is_ignored(guard, executor, mute_store):
    mute_store.add(KEY, datetime.timedelta(minutes=10))
    outcome = await guard.handle_rejoin(42, 8)
    assert outcome is RejoinOutcome.IGNORED
    executor.apply_mute.assert_not_awaited()


@pytest.mark.asyncio
async def test_clear_keeps_mute_recreated_during_lift(guard, executor, mute_store, clock):
    mute_store.add(KEY, datetime.timedelta(minutes=1))
    clock.advance(120)

    async def relapse(entry):
        mute_store.remove(entry.key)
        mute_store.add(entry.key, datetime.timedelta(hours=1))
        return ActionResult.success("lifted")

    executor.lift_mute.side_effect = relapse
    await guard.handle_rejoin(42, 7)
    assert mute_store.get(KEY) == int(clock.now) + 3600
