from dataclasses import dataclass
from typing import Optional

import datetime
import logging

import discord

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    action: str
    executor_id: int
    target_id: Optional[int]
    reason: Optional[str]
    duration: Optional[int]
    created_at: datetime.datetime


def _build_embed(event: AuditEvent) -> discord.Embed:
    embed = discord.Embed(
        title=event.action,
        colour=discord.Colour.blurple(),
        timestamp=event.created_at,
    )
    executor = f"<@{event.executor_id}>" if event.executor_id else "Automatic"
    embed.add_field(name="Executor", value=executor, inline=True)
    if event.target_id is not None:
        embed.add_field(name="Target", value=f"<@{event.target_id}>", inline=True)
    if event.reason:
        embed.add_field(name="Reason", value=event.reason, inline=False)
    if event.duration is not None:
        embed.add_field(name="Duration (seconds)", value=str(event.duration), inline=True)
    return embed


def _resolve_log_channel(client: discord.Client, guild: discord.Guild) -> Optional[discord.TextChannel]:
    config = getattr(client, "config", None)
    if config is None or not getattr(config, "log_channel_id", None):
        return None
    candidate = guild.get_channel(config.log_channel_id)
    if isinstance(candidate, discord.TextChannel):
        return candidate
    return None


async def _publish(client: discord.Client, guild: Optional[discord.Guild], event: AuditEvent) -> None:
    channel = _resolve_log_channel(client, guild) if guild is not None else None
    if channel is None:
        logger.info("%s", event)
        return
    try:
        await channel.send(embed=_build_embed(event))
    except discord.HTTPException as exc:
        logger.warning("Could not post audit event %s: %s", event.action, exc)


async def log_moderation_action(
    interaction: discord.Interaction,
    action: str,
    target: Optional[discord.abc.Snowflake] = None,
    reason: Optional[str] = None,
    duration_seconds: Optional[int] = None,
) -> None:
    event = AuditEvent(
        action=action,
        executor_id=interaction.user.id if interaction.user else 0,
        target_id=target.id if target is not None else None,
        reason=reason,
        duration=duration_seconds,
        created_at=datetime.datetime.now(datetime.timezone.utc),
    )
    await _publish(interaction.client, interaction.guild, event)


async def log_automatic_action(
    client: discord.Client,
    guild_id: int,
    action: str,
    target_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> None:
    event = AuditEvent(
        action=action,
        executor_id=0,
        target_id=target_id,
        reason=reason,
        duration=None,
        created_at=datetime.datetime.now(datetime.timezone.utc),
    )
    await _publish(client, client.get_guild(guild_id), event)
