from typing import Iterable, List

import discord
from discord import app_commands


def _missing_permissions(granted: discord.Permissions, perms: dict) -> List[str]:
    return [name for name, value in perms.items() if getattr(granted, name, False) != value]


def _is_owner(interaction: discord.Interaction, member: discord.Member) -> bool:
    config = getattr(interaction.client, "config", None)
    owner_ids: Iterable[int] = getattr(config, "owner_ids", None) or ()
    return member.id in owner_ids


def has_guild_permissions(**perms: bool):
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.CheckFailure("Command can only be used in a guild")
        member = interaction.user
        if not isinstance(member, discord.Member):
            raise app_commands.CheckFailure("Invalid member")
        if member.guild_permissions.administrator or _is_owner(interaction, member):
            return True
        missing = _missing_permissions(member.guild_permissions, perms)
        if missing:
            raise app_commands.CheckFailure(f"Missing required permissions: {', '.join(missing)}")
        return True

    return app_commands.check(predicate)


def bot_has_guild_permissions(**perms: bool):
    async def predicate(interaction: discord.Interaction) -> bool:
        guild = interaction.guild
        if guild is None:
            raise app_commands.CheckFailure("Command can only be used in a guild")
        me = guild.me
        if me is None:
            raise app_commands.CheckFailure("Bot member not found")
        if me.guild_permissions.administrator:
            return True
        missing = _missing_permissions(me.guild_permissions, perms)
        if missing:
            raise app_commands.CheckFailure(f"Bot is missing required permissions: {', '.join(missing)}")
        return True

    return app_commands.check(predicate)


def is_staff():
    async def predicate(interaction: discord.Interaction) -> bool:
        guild = interaction.guild
        if guild is None:
            raise app_commands.CheckFailure("Command can only be used in a guild")
        member = interaction.user
        if not isinstance(member, discord.Member):
            raise app_commands.CheckFailure("Invalid member")
        if guild.owner_id == member.id or member.guild_permissions.administrator:
            return True
        if _is_owner(interaction, member):
            return True
        config = getattr(interaction.client, "config", None)
        staff_role_ids = getattr(config, "staff_role_ids", None) or ()
        member_role_ids = {role.id for role in member.roles}
        if any(role_id in member_role_ids for role_id in staff_role_ids):
            return True
        raise app_commands.CheckFailure("You do not have permission to use this command")

    return app_commands.check(predicate)


class PermissionGuard:
    async def ensure_target_hierarchy(self, interaction: discord.Interaction, target: discord.Member) -> None:
        guild = interaction.guild
        if guild is None:
            raise app_commands.CheckFailure("Command can only be used in a guild")
        actor = interaction.user
        if not isinstance(actor, discord.Member):
            raise app_commands.CheckFailure("Invalid member")
        if actor.id == target.id:
            raise app_commands.CheckFailure("You cannot restrict yourself")
        if guild.owner_id != actor.id and target.top_role >= actor.top_role:
            raise app_commands.CheckFailure("The target member has a higher or equal role")
        me = guild.me
        if me is not None and target.top_role >= me.top_role:
            raise app_commands.CheckFailure("The target member has a higher or equal role to the bot")
