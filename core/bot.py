from typing import Callable

import logging
import time

import discord
from discord import app_commands
from discord.ext import commands

from core.config import BotConfig
from models.restrictions import RestrictionCategory, RestrictionEntry
from services.audit import log_automatic_action
from services.database import Database
from services.executor import ActionExecutor
from services.rejoin_guard import RejoinGuard
from services.restriction_store import RestrictionStore
from services.scheduler import ExpiryScheduler

logger = logging.getLogger(__name__)


COG_EXTENSIONS = [
    "cogs.moderation.core",
    "cogs.diagnostics.core",
]


class PenaltyBoxBot(commands.Bot):
    def __init__(self, config: BotConfig, clock: Callable[[], float] = time.time) -> None:
        intents = discord.Intents.default()
        intents.members = True
        intents.guilds = True
        super().__init__(
            command_prefix=commands.when_mentioned_or("!"),
            intents=intents,
        )
        self.config = config
        self.clock = clock
        self.db = Database(config.database_path)
        self.mutes = RestrictionStore(self.db, RestrictionCategory.MUTE, clock=clock)
        self.bans = RestrictionStore(self.db, RestrictionCategory.BAN, clock=clock)
        self.executor = ActionExecutor(
            self,
            mute_role_id=config.mute_role_id,
            mute_role_name=config.mute_role_name,
        )
        self.rejoin_guard = RejoinGuard(self.mutes, self.executor, clock=clock)
        self.mute_scheduler = ExpiryScheduler(
            RestrictionCategory.MUTE,
            self.mutes,
            self.executor.lift_mute,
            interval=config.mute_check_interval,
            clock=clock,
            max_concurrency=config.max_concurrency,
            max_resolution_failures=config.max_resolution_failures,
            on_lifted=self.announce_lift,
        )
        self.ban_scheduler = ExpiryScheduler(
            RestrictionCategory.BAN,
            self.bans,
            self.executor.lift_ban,
            interval=config.ban_check_interval,
            clock=clock,
            max_concurrency=config.max_concurrency,
            max_resolution_failures=config.max_resolution_failures,
            on_lifted=self.announce_lift,
        )

    def store_for(self, category: RestrictionCategory) -> RestrictionStore:
        if category is RestrictionCategory.MUTE:
            return self.mutes
        return self.bans

    async def setup_hook(self) -> None:
        self.mutes.load()
        self.bans.load()
        self.tree.error(self.on_app_command_error)
        for ext in COG_EXTENSIONS:
            await self.load_extension(ext)
        if self.config.guild_ids:
            for guild_id in self.config.guild_ids:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
        else:
            await self.tree.sync()
        self.mute_scheduler.start()
        self.ban_scheduler.start()

    async def close(self) -> None:
        await self.mute_scheduler.stop()
        await self.ban_scheduler.stop()
        await super().close()
        self.db.close()

    async def on_ready(self) -> None:
        if self.user is None:
            return
        logger.info("Logged in as %s (%s)", self.user, self.user.id)

    async def announce_lift(self, category: RestrictionCategory, entry: RestrictionEntry) -> None:
        action = "Unmute" if category is RestrictionCategory.MUTE else "Unban"
        await log_automatic_action(
            self,
            entry.scope_id,
            action,
            target_id=entry.subject_id,
            reason=f"{category.value.capitalize()} duration expired",
        )

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        if isinstance(error, app_commands.CheckFailure):
            message = str(error) or "You do not have permission to use this command."
        else:
            logger.error("Unhandled app command error", exc_info=error)
            message = "An error occurred while executing this command."
        try:
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)
        except discord.HTTPException:
            logger.debug("Could not report command error to %s", interaction.user)
