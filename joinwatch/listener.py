import logging
from datetime import timedelta

from joinwatch.config import LiveJoinMode

log = logging.getLogger(__name__)

# Join events older than this before startup are replays from a resumed session
REPLAY_TOLERANCE = timedelta(seconds=2)


class LiveJoinListener:
    """Fast path for the gateway's member join event"""

    def __init__(self, known, store, scheduler, started_at, mode=LiveJoinMode.BATCHED, tolerance=REPLAY_TOLERANCE):
        self.known = known
        self.store = store
        self.scheduler = scheduler
        self.started_at = started_at
        self.mode = mode
        self.tolerance = tolerance

    async def on_member_join(self, member):
        """Record a joined member and alert on it; False if the event was ignored"""
        guild = member.guild
        if guild is None:
            return False
        if self.known.contains(guild.id, member.id):
            return False
        if member.joined_at is not None and member.joined_at < self.started_at - self.tolerance:
            log.debug("Ignoring replayed join of %s in %s", member.id, guild.id)
            return False

        self.known.add(guild.id, [member.id])
        self.store.save(self.known)
        log.info("%s joined %s", member, guild.name)

        if self.mode is LiveJoinMode.IMMEDIATE:
            await self.scheduler.dispatch_now(member, guild)
        else:
            self.scheduler.schedule(member, guild)
        return True
