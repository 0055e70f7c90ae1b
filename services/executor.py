"""Applies and lifts restrictions against Discord.

Every public method is idempotent and returns an :class:`ActionResult`; none
of them raise for resolution or HTTP failures. Callers own the store mutation
that follows a confirmed result.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Optional

import discord

from core.errors import ExternalApiFailure, ResolutionFailure, RestrictionError
from models.restrictions import RestrictionEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    outcome: str
    error: Optional[RestrictionError] = None

    @classmethod
    def success(cls, outcome: str) -> "ActionResult":
        return cls(ok=True, outcome=outcome)

    @classmethod
    def failure(cls, error: RestrictionError) -> "ActionResult":
        return cls(ok=False, outcome="failed", error=error)

    @property
    def resolution_failed(self) -> bool:
        return isinstance(self.error, ResolutionFailure)


class ActionExecutor:
    def __init__(
        self,
        client: discord.Client,
        mute_role_id: Optional[int] = None,
        mute_role_name: str = "Muted",
    ) -> None:
        self.client = client
        self.mute_role_id = mute_role_id
        self.mute_role_name = mute_role_name

    def _resolve_guild(self, scope_id: int) -> discord.Guild:
        guild = self.client.get_guild(scope_id)
        if guild is None:
            raise ResolutionFailure("guild", scope_id)
        return guild

    def _resolve_member(self, guild: discord.Guild, subject_id: int) -> discord.Member:
        member = guild.get_member(subject_id)
        if member is None:
            raise ResolutionFailure("member", subject_id)
        return member

    def _resolve_mute_role(self, guild: discord.Guild) -> discord.Role:
        role = None
        if self.mute_role_id:
            role = guild.get_role(self.mute_role_id)
        if role is None:
            role = discord.utils.get(guild.roles, name=self.mute_role_name)
        if role is None:
            raise ResolutionFailure("mute role", self.mute_role_id)
        return role

    async def lift_mute(self, entry: RestrictionEntry) -> ActionResult:
        try:
            guild = self._resolve_guild(entry.scope_id)
            member = self._resolve_member(guild, entry.subject_id)
            role = self._resolve_mute_role(guild)
            if role not in member.roles:
                return ActionResult.success("already_lifted")
            try:
                await member.remove_roles(role, reason="Mute expired")
            except discord.HTTPException as exc:
                raise ExternalApiFailure("unmute", exc) from exc
        except RestrictionError as exc:
            logger.warning("Could not lift mute for %s in %s: %s", entry.subject_id, entry.scope_id, exc)
            return ActionResult.failure(exc)
        return ActionResult.success("lifted")

    async def lift_ban(self, entry: RestrictionEntry) -> ActionResult:
        try:
            guild = self._resolve_guild(entry.scope_id)
            banned_user: Optional[discord.abc.User] = None
            try:
                async for ban_entry in guild.bans(limit=None):
                    if ban_entry.user.id == entry.subject_id:
                        banned_user = ban_entry.user
                        break
            except discord.HTTPException as exc:
                raise ExternalApiFailure("list bans", exc) from exc
            if banned_user is None:
                return ActionResult.success("already_lifted")
            try:
                await guild.unban(banned_user, reason="Ban expired")
            except discord.NotFound:
                return ActionResult.success("already_lifted")
            except discord.HTTPException as exc:
                raise ExternalApiFailure("unban", exc) from exc
        except RestrictionError as exc:
            logger.warning("Could not lift ban for %s in %s: %s", entry.subject_id, entry.scope_id, exc)
            return ActionResult.failure(exc)
        return ActionResult.success("lifted")

    async def apply_mute(
        self,
        subject_id: int,
        scope_id: int,
        duration: Optional[datetime.timedelta] = None,
        reason: Optional[str] = None,
    ) -> ActionResult:
        try:
            guild = self._resolve_guild(scope_id)
            member = self._resolve_member(guild, subject_id)
            role = self._resolve_mute_role(guild)
            if role in member.roles:
                return ActionResult.success("already_applied")
            audit_reason = reason or "Muted"
            if duration is not None:
                audit_reason = f"{audit_reason} ({int(duration.total_seconds())}s)"
            try:
                await member.add_roles(role, reason=audit_reason)
            except discord.HTTPException as exc:
                raise ExternalApiFailure("mute", exc) from exc
        except RestrictionError as exc:
            logger.warning("Could not mute %s in %s: %s", subject_id, scope_id, exc)
            return ActionResult.failure(exc)
        return ActionResult.success("applied")

    async def apply_ban(
        self,
        subject_id: int,
        scope_id: int,
        duration: Optional[datetime.timedelta] = None,
        reason: Optional[str] = None,
    ) -> ActionResult:
        try:
            guild = self._resolve_guild(scope_id)
            audit_reason = reason or "Temporary ban"
            if duration is not None:
                audit_reason = f"{audit_reason} ({int(duration.total_seconds())}s)"
            try:
                await guild.ban(discord.Object(id=subject_id), reason=audit_reason, delete_message_seconds=0)
            except discord.HTTPException as exc:
                raise ExternalApiFailure("ban", exc) from exc
        except RestrictionError as exc:
            logger.warning("Could not ban %s in %s: %s", subject_id, scope_id, exc)
            return ActionResult.failure(exc)
        return ActionResult.success("applied")
