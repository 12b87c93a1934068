import asyncio
import logging
from datetime import timedelta

import discord

log = logging.getLogger(__name__)

# Members who joined earlier than this before startup are treated as stale
RECENCY_TOLERANCE = timedelta(seconds=5)


class MembershipReconciler:
    """Poll-path join detection: diff each guild roster against the known set"""

    def __init__(self, known, store, scheduler, started_at, tolerance=RECENCY_TOLERANCE):
        self.known = known
        self.store = store
        self.scheduler = scheduler
        self.started_at = started_at
        self.tolerance = tolerance
        self.stopped = False

    def stop(self):
        """Refuse further work, including ticks already waiting on a fetch"""
        self.stopped = True

    async def run(self, guilds):
        """Reconcile every guild; returns how many members were forwarded"""
        forwarded = 0
        for guild in guilds:
            if self.stopped:
                break
            try:
                forwarded += await self.reconcile_guild(guild)
            except Exception:
                log.exception("Poll error for guild %s (%s)", getattr(guild, 'name', '?'), guild.id)
        return forwarded

    async def fetch_roster(self, guild):
        """Full member list, or the cached members if the fetch fails"""
        try:
            return await guild.chunk()
        except (discord.DiscordException, asyncio.TimeoutError) as e:
            log.warning("Failed to fetch members for %s, using cache: %s", guild.name, e)
            return list(guild.members)

    def is_recent(self, member):
        return member.joined_at is None or member.joined_at >= self.started_at - self.tolerance

    async def reconcile_guild(self, guild):
        # Cheap short-circuit: with no growth there is nothing to fetch
        if (guild.member_count or 0) <= self.known.count(guild.id):
            return 0

        roster = await self.fetch_roster(guild)
        if self.stopped:
            return 0

        # No awaits from here until forwarding: diff and mark happen as one step
        new_members = []
        seen = set()
        for member in roster:
            if member.id in seen or self.known.contains(guild.id, member.id):
                continue
            seen.add(member.id)
            new_members.append(member)
        if not new_members:
            return 0

        real_new = [m for m in new_members if self.is_recent(m)]

        # Stale members are marked too so they never resurface
        self.known.add(guild.id, (m.id for m in new_members))
        self.store.save(self.known)

        skipped = len(new_members) - len(real_new)
        if skipped:
            log.info("%s: marked %d member(s) known without alerting (joined before startup)", guild.name, skipped)

        for member in real_new:
            self.scheduler.schedule(member, guild)
        return len(real_new)
