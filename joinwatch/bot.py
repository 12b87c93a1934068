import asyncio
import logging

import discord
from discord.ext import commands, tasks

from joinwatch.dispatcher import ChannelDispatcher
from joinwatch.service import JoinWatchService

log = logging.getLogger(__name__)


def build_intents():
    intents = discord.Intents.default()
    intents.members = True  # Required for join events and roster fetches
    intents.guilds = True
    intents.message_content = True  # Admin commands use the ! prefix
    return intents


def create_bot(settings):
    """Build the bot and its join-tracking service; returns (bot, service)"""
    bot = commands.Bot(command_prefix='!', intents=build_intents())
    service = JoinWatchService(settings, ChannelDispatcher(bot, settings.channel_id))

    @tasks.loop(seconds=settings.poll_interval)
    async def poll_members():
        """Periodically reconcile guild rosters against the known members"""
        try:
            forwarded = await service.poll(bot.guilds)
        except Exception:
            log.exception("Poll worker crashed")
            return
        if forwarded:
            log.info("Poll found %d new member(s)", forwarded)

    @poll_members.before_loop
    async def before_poll():
        """Wait until bot is ready, then one full interval before the first tick"""
        await bot.wait_until_ready()
        await asyncio.sleep(settings.poll_interval)

    bot.poll_members = poll_members

    @bot.event
    async def on_ready():
        """Called when bot is ready (again after every reconnect)"""
        log.info("Logged in as %s (%s)", bot.user, bot.user.id)
        log.info("Bot is in %d guild(s)", len(bot.guilds))

        if await service.start(bot.guilds, discord.utils.utcnow()):
            tracked = len(service.tracked_guilds(bot.guilds))
            log.info("Tracking joins in %d guild(s)", tracked)

        if not poll_members.is_running():
            poll_members.start()
            log.info("Polling started (every %ss)", settings.poll_interval)

    @bot.event
    async def on_member_join(member):
        """Live join event; the poll path catches anything missed here"""
        try:
            await service.member_joined(member)
        except Exception:
            log.exception("Error in member join handler for %s", member.id)

    @bot.event
    async def on_disconnect():
        log.warning("Disconnected from Discord gateway")

    @bot.event
    async def on_error(event_method, *args, **kwargs):
        log.exception("Unhandled error in %s", event_method)

    @bot.command(name='joinstats')
    @commands.guild_only()
    @commands.has_permissions(administrator=True)
    async def join_stats(ctx):
        """Show join tracking statistics for this server"""
        stats = service.stats(ctx.guild)

        embed = discord.Embed(title="Join Watch Statistics", color=discord.Color.blue())
        embed.add_field(name="👥 Known Members", value=str(stats['known']), inline=True)
        embed.add_field(name="📊 Reported Members", value=str(stats['reported']), inline=True)
        embed.add_field(name="📥 Pending Alerts", value=str(stats['pending']), inline=True)
        embed.add_field(name="⏳ Cooldown Entries", value=str(stats['cooldowns']), inline=True)

        config_text = f"Poll Interval: {settings.poll_interval:g}s\n"
        config_text += f"Cooldown: {settings.notify_cooldown:g}s\n"
        config_text += f"Debounce: {settings.notify_debounce:g}s\n"
        config_text += f"Live Joins: {settings.live_join_mode.value}\n"
        if not settings.tracks(ctx.guild.id):
            config_text += "⚠️ This server is not tracked (GUILD_ID)\n"
        embed.add_field(name="⚙️ Configuration", value=config_text, inline=False)

        channel = bot.get_channel(settings.channel_id)
        embed.set_footer(text=f"Alerts go to #{channel.name}" if channel else f"Alert channel {settings.channel_id} not cached")

        await ctx.send(embed=embed)

    @bot.command(name='rebaseline')
    @commands.guild_only()
    @commands.has_permissions(administrator=True)
    async def rebaseline(ctx):
        """Reset the known members for this server to the current roster"""
        if not service.started:
            await ctx.send("Still starting up, try again in a moment.")
            return

        try:
            await ctx.guild.chunk()
        except discord.DiscordException as e:
            log.warning("Rebaseline fetch failed for %s, using cache: %s", ctx.guild.name, e)

        count = service.rebaseline(ctx.guild)
        await ctx.send(f"✅ Baseline rebuilt! Now tracking {count} known members (no alerts sent for them).")

    return bot, service
