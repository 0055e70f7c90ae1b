from unittest.mock import AsyncMock, patch

import pytest

from core.bot import PenaltyBoxBot
from core.config import BotConfig
from models.restrictions import RestrictionCategory, RestrictionEntry, RestrictionKey


@pytest.fixture
def config(tmp_path):
    return BotConfig(
        token="test",
        guild_ids=None,
        owner_ids=None,
        staff_role_ids=None,
        log_channel_id=None,
        mute_role_id=123,
        database_path=tmp_path / "bot.db",
        mute_check_interval=60,
        ban_check_interval=90,
        max_concurrency=2,
        max_resolution_failures=4,
    )


@pytest.mark.asyncio
async def test_components_are_wired_per_category(config, clock):
    bot = PenaltyBoxBot(config, clock=clock)
    try:
        assert bot.store_for(RestrictionCategory.MUTE) is bot.mutes
        assert bot.store_for(RestrictionCategory.BAN) is bot.bans
        assert bot.mute_scheduler.store is bot.mutes
        assert bot.ban_scheduler.store is bot.bans
        assert bot.mute_scheduler.interval == 60
        assert bot.ban_scheduler.interval == 90
        assert bot.mute_scheduler.max_resolution_failures == 4
        assert bot.rejoin_guard.store is bot.mutes
        assert bot.executor.mute_role_id == 123
    finally:
        bot.db.close()


@pytest.mark.asyncio
async def test_announce_lift_labels_category(config, clock):
    bot = PenaltyBoxBot(config, clock=clock)
    entry = RestrictionEntry(key=RestrictionKey(42, 7), expires_at=0)
    try:
        with patch("core.bot.log_automatic_action", new=AsyncMock()) as audit:
            await bot.announce_lift(RestrictionCategory.BAN, entry)
        args = audit.await_args.args
        assert args[1:] == (7, "Unban")
        assert audit.await_args.kwargs["target_id"] == 42
    finally:
        bot.db.close()
