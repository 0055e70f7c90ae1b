from typing import Optional, Union

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import PenaltyBoxBot
from core.errors import AlreadyRestricted, RestrictionNotFound
from models.restrictions import RestrictionCategory, RestrictionEntry, RestrictionKey
from services.audit import log_automatic_action, log_moderation_action
from services.durations import format_duration, parse_duration
from services.permissions import PermissionGuard, bot_has_guild_permissions, has_guild_permissions, is_staff
from services.rejoin_guard import RejoinOutcome


CATEGORY_LABELS = {
    RestrictionCategory.MUTE: ("muted", "Mute", "Unmute"),
    RestrictionCategory.BAN: ("banned", "Tempban", "Unban"),
}


class Moderation(commands.Cog, PermissionGuard):
    def __init__(self, bot: PenaltyBoxBot) -> None:
        self.bot = bot

    async def _create_restriction(
        self,
        interaction: discord.Interaction,
        category: RestrictionCategory,
        member: discord.Member,
        duration: str,
        reason: Optional[str],
    ) -> None:
        await self.ensure_target_hierarchy(interaction, member)
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message("This command can only be used in a guild.", ephemeral=True)
            return
        delta = parse_duration(duration)
        if delta is None:
            await interaction.response.send_message(
                "Invalid duration. Use a format like `30m`, `2h`, `7d` or `1d12h`.",
                ephemeral=True,
            )
            return
        state, action, _ = CATEGORY_LABELS[category]
        store = self.bot.store_for(category)
        key = RestrictionKey(member.id, guild.id)
        try:
            created = store.add(key, delta)
        except AlreadyRestricted as exc:
            remaining = format_duration(exc.expires_at - self.bot.clock())
            await interaction.response.send_message(
                f"{member.mention} is already {state} ({remaining} remaining).",
                ephemeral=True,
            )
            return
        await interaction.response.defer(ephemeral=True)
        if category is RestrictionCategory.MUTE:
            result = await self.bot.executor.apply_mute(member.id, guild.id, duration=delta, reason=reason)
        else:
            result = await self.bot.executor.apply_ban(member.id, guild.id, duration=delta, reason=reason)
        if not result.ok:
            store.remove(key, expected_expires_at=created.expires_at)
            await interaction.followup.send(f"Failed to restrict {member.mention}: {result.error}", ephemeral=True)
            return
        seconds = int(delta.total_seconds())
        await interaction.followup.send(
            f"{member.mention} has been {state} for {format_duration(seconds)}.",
            ephemeral=True,
        )
        await log_moderation_action(interaction, action, target=member, reason=reason, duration_seconds=seconds)

    async def _lift_restriction(
        self,
        interaction: discord.Interaction,
        category: RestrictionCategory,
        user: Union[discord.Member, discord.User],
        reason: Optional[str],
    ) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message("This command can only be used in a guild.", ephemeral=True)
            return
        state, _, action = CATEGORY_LABELS[category]
        store = self.bot.store_for(category)
        key = RestrictionKey(user.id, guild.id)
        try:
            entry = store.entry(key)
        except RestrictionNotFound:
            entry = RestrictionEntry(key=key, expires_at=int(self.bot.clock()))
        await interaction.response.defer(ephemeral=True)
        if category is RestrictionCategory.MUTE:
            result = await self.bot.executor.lift_mute(entry)
        else:
            result = await self.bot.executor.lift_ban(entry)
        if not result.ok:
            await interaction.followup.send(f"Failed to lift restriction: {result.error}", ephemeral=True)
            return
        removed = store.remove(key)
        if not removed and result.outcome == "already_lifted":
            await interaction.followup.send(f"{user} is not {state}.", ephemeral=True)
            return
        await interaction.followup.send(f"{user} is no longer {state}.", ephemeral=True)
        await log_moderation_action(interaction, action, target=user, reason=reason)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        outcome = await self.bot.rejoin_guard.handle_rejoin(member.id, member.guild.id)
        if outcome is RejoinOutcome.REAPPLIED:
            await log_automatic_action(
                self.bot,
                member.guild.id,
                "Mute re-applied",
                target_id=member.id,
                reason="Rejoined while muted",
            )
        elif outcome is RejoinOutcome.CLEARED:
            await log_automatic_action(
                self.bot,
                member.guild.id,
                "Unmute",
                target_id=member.id,
                reason="Mute expired while away",
            )

    @app_commands.command(name="mute", description="Mute a member for a limited time")
    @is_staff()
    @has_guild_permissions(manage_roles=True)
    @bot_has_guild_permissions(manage_roles=True)
    @app_commands.describe(member="Member to mute", duration="Duration such as 30m, 2h or 1d12h", reason="Reason for the mute")
    async def mute(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        duration: str,
        reason: Optional[str] = None,
    ) -> None:
        await self._create_restriction(interaction, RestrictionCategory.MUTE, member, duration, reason)

    @app_commands.command(name="unmute", description="Lift a member's mute now")
    @is_staff()
    @has_guild_permissions(manage_roles=True)
    @bot_has_guild_permissions(manage_roles=True)
    @app_commands.describe(member="Member to unmute", reason="Reason for lifting the mute")
    async def unmute(self, interaction: discord.Interaction, member: discord.Member, reason: Optional[str] = None) -> None:
        await self._lift_restriction(interaction, RestrictionCategory.MUTE, member, reason)

    @app_commands.command(name="tempban", description="Ban a member for a limited time")
    @is_staff()
    @has_guild_permissions(ban_members=True)
    @bot_has_guild_permissions(ban_members=True)
    @app_commands.describe(member="Member to ban", duration="Duration such as 30m, 2h or 7d", reason="Reason for the ban")
    async def tempban(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        duration: str,
        reason: Optional[str] = None,
    ) -> None:
        await self._create_restriction(interaction, RestrictionCategory.BAN, member, duration, reason)

    @app_commands.command(name="unban", description="Lift a temporary ban now")
    @is_staff()
    @has_guild_permissions(ban_members=True)
    @bot_has_guild_permissions(ban_members=True)
    @app_commands.describe(user="User to unban", reason="Reason for lifting the ban")
    async def unban(self, interaction: discord.Interaction, user: discord.User, reason: Optional[str] = None) -> None:
        await self._lift_restriction(interaction, RestrictionCategory.BAN, user, reason)

    @app_commands.command(name="restrictions", description="List active temporary mutes and bans")
    @is_staff()
    async def restrictions(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message("This command can only be used in a guild.", ephemeral=True)
            return
        now = self.bot.clock()
        lines = []
        for category in RestrictionCategory:
            entries = sorted(self.bot.store_for(category).entries_for_scope(guild.id), key=lambda e: e.expires_at)
            for entry in entries:
                if entry.is_expired(now):
                    status = "pending lift"
                else:
                    status = f"expires <t:{entry.expires_at}:R>"
                lines.append(f"{category.value} | <@{entry.subject_id}> | {status}")
        if not lines:
            await interaction.response.send_message("No active temporary restrictions.", ephemeral=True)
            return
        embed = discord.Embed(
            title="Active restrictions",
            description="\n".join(lines[:50]),
            colour=discord.Colour.blurple(),
        )
        if len(lines) > 50:
            embed.set_footer(text=f"Showing 50 of {len(lines)} entries")
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Moderation(bot))
