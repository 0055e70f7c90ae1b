import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from cogs.diagnostics.core import Diagnostics
from core.config import BotConfig
from core.errors import ResolutionFailure
from models.restrictions import RestrictionCategory, RestrictionKey
from services.executor import ActionResult
from services.scheduler import ExpiryScheduler


@pytest.fixture
def interaction():
    i = MagicMock()
    i.response.send_message = AsyncMock()
    return i


def make_scheduler(store, clock, lift, category=RestrictionCategory.MUTE):
    return ExpiryScheduler(category, store, lift, interval=120, clock=clock)


def test_describe_before_first_tick(mute_store, clock):
    scheduler = make_scheduler(mute_store, clock, AsyncMock())
    text = Diagnostics._describe(scheduler, 3)
    assert text.splitlines() == ["Status: stopped", "Interval: 120s", "Stored: 3", "Last tick: never"]


@pytest.mark.asyncio
async def test_describe_reports_last_tick(mute_store, clock):
    lift = AsyncMock(return_value=ActionResult.failure(ResolutionFailure("member", 42)))
    scheduler = make_scheduler(mute_store, clock, lift)
    mute_store.add(RestrictionKey(42, 7), datetime.timedelta(minutes=1))
    clock.advance(120)
    await scheduler.tick()

    lines = Diagnostics._describe(scheduler, len(mute_store)).splitlines()
    assert lines[3] == f"Last tick: <t:{int(clock.now)}:R>"
    assert lines[4] == "Expired 1 | lifted 0 | failed 1 | forced 0"
    assert lines[5] == "Unresolvable entries retrying: 1"


@pytest.mark.asyncio
async def test_config_check_redacts_token(interaction, tmp_path):
    bot = MagicMock()
    bot.config = BotConfig(
        token="secret-token",
        guild_ids=[1],
        owner_ids=None,
        staff_role_ids=None,
        log_channel_id=None,
        mute_role_id=None,
        database_path=tmp_path / "bot.db",
    )
    await Diagnostics.config_check.callback(Diagnostics(bot), interaction)
    embed = interaction.response.send_message.await_args.kwargs["embed"]
    assert "token: ****" in embed.description
    assert "secret-token" not in embed.description
    assert "mute_check_interval: 120.0" in embed.description


@pytest.mark.asyncio
async def test_scheduler_status_has_one_field_per_category(interaction, mute_store, ban_store, clock):
    bot = MagicMock()
    bot.latency = 0.05
    bot.mutes = mute_store
    bot.bans = ban_store
    bot.mute_scheduler = make_scheduler(mute_store, clock, AsyncMock())
    bot.ban_scheduler = make_scheduler(ban_store, clock, AsyncMock(), category=RestrictionCategory.BAN)
    ban_store.add(RestrictionKey(42, 7), datetime.timedelta(hours=1))

    await Diagnostics.scheduler_status.callback(Diagnostics(bot), interaction)
    embed = interaction.response.send_message.await_args.kwargs["embed"]
    assert [field.name for field in embed.fields] == ["Mutes", "Bans"]
    assert "Stored: 0" in embed.fields[0].value
    assert "Stored: 1" in embed.fields[1].value
    assert "Latency 50 ms" in embed.footer.text
