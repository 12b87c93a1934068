import logging

import discord

log = logging.getLogger(__name__)

MESSAGE_LIMIT = 2000  # Discord's per-message character limit


def format_member_line(member):
    """One bullet line for a joined member"""
    joined = discord.utils.format_dt(member.joined_at, 'F') if member.joined_at else "Unknown"
    return f"• {member} - ID: {member.id} - Joined: {joined}"


def render_join_message(members):
    """Render a batch of joins as one or more messages within the length limit"""
    current = f"📥 **Members Joined ({len(members)})**"
    messages = []
    for member in members:
        line = format_member_line(member)
        if len(current) + 1 + len(line) > MESSAGE_LIMIT:
            messages.append(current)
            current = line
        else:
            current += "\n" + line
    messages.append(current)
    return messages


class ChannelDispatcher:
    """Posts join batches to the configured notification channel"""

    def __init__(self, client, channel_id):
        self.client = client
        self.channel_id = channel_id

    async def resolve_channel(self):
        channel = self.client.get_channel(self.channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(self.channel_id)
        return channel

    async def __call__(self, guild, members):
        channel = await self.resolve_channel()
        for content in render_join_message(members):
            await channel.send(content)
        log.info("Sent join notification for %d member(s) (guild %s)", len(members), guild.id)
