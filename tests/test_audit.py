from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from services.audit import log_automatic_action


@pytest.fixture
def log_channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock()
    return channel


@pytest.fixture
def client(log_channel):
    c = MagicMock()
    c.config.log_channel_id = 900
    c.get_guild.return_value.get_channel.return_value = log_channel
    return c


@pytest.mark.asyncio
async def test_automatic_action_posts_embed(client, log_channel):
    await log_automatic_action(client, 7, "Unmute", target_id=42, reason="Mute duration expired")
    client.get_guild.assert_called_once_with(7)
    log_channel.send.assert_awaited_once()
    embed = log_channel.send.await_args.kwargs["embed"]
    assert embed.title == "Unmute"
    assert [field.value for field in embed.fields][:2] == ["Automatic", "<@42>"]


@pytest.mark.asyncio
async def test_automatic_action_without_log_channel(client, log_channel):
    client.config.log_channel_id = None
    await log_automatic_action(client, 7, "Unban", target_id=42)
    log_channel.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_failure_is_contained(client, log_channel, http_error):
    log_channel.send.side_effect = http_error(discord.Forbidden, 403)
    await log_automatic_action(client, 7, "Unmute", target_id=42)
    log_channel.send.assert_awaited_once()
