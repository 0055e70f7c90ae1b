import time

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import PenaltyBoxBot
from services.permissions import is_staff
from services.scheduler import ExpiryScheduler


class Diagnostics(commands.Cog):
    def __init__(self, bot: PenaltyBoxBot) -> None:
        self.bot = bot
        self.process_start = time.time()

    @app_commands.command(name="config-check", description="Show resolved configuration with secrets redacted")
    @is_staff()
    async def config_check(self, interaction: discord.Interaction) -> None:
        data = self.bot.config.sanitize()
        lines = [f"{key}: {value}" for key, value in data.items()]
        embed = discord.Embed(
            title="Resolved configuration",
            description="```ini\n" + "\n".join(lines) + "\n```",
            colour=discord.Colour.blurple(),
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @staticmethod
    def _describe(scheduler: ExpiryScheduler, stored: int) -> str:
        status = "running" if scheduler.running else "stopped"
        lines = [f"Status: {status}", f"Interval: {int(scheduler.interval)}s", f"Stored: {stored}"]
        report = scheduler.last_report
        if report is None or scheduler.last_tick_at is None:
            lines.append("Last tick: never")
        else:
            lines.append(f"Last tick: <t:{int(scheduler.last_tick_at)}:R>")
            lines.append(
                f"Expired {report.expired} | lifted {report.lifted} | failed {report.failed} | forced {report.forced}"
            )
        pending = len(scheduler.resolution_failures)
        if pending:
            lines.append(f"Unresolvable entries retrying: {pending}")
        return "\n".join(lines)

    @app_commands.command(name="scheduler-status", description="Show expiry scheduler state")
    @is_staff()
    async def scheduler_status(self, interaction: discord.Interaction) -> None:
        uptime_seconds = int(time.time() - self.process_start)
        embed = discord.Embed(title="Expiry schedulers", colour=discord.Colour.green())
        embed.add_field(
            name="Mutes",
            value=self._describe(self.bot.mute_scheduler, len(self.bot.mutes)),
            inline=True,
        )
        embed.add_field(
            name="Bans",
            value=self._describe(self.bot.ban_scheduler, len(self.bot.bans)),
            inline=True,
        )
        embed.set_footer(text=f"Uptime {uptime_seconds} seconds | Latency {round(self.bot.latency * 1000)} ms")
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Diagnostics(bot))
