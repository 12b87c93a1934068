import logging
import time

from joinwatch.listener import LiveJoinListener
from joinwatch.reconciler import MembershipReconciler
from joinwatch.scheduler import NotificationScheduler
from joinwatch.state import KnownMembers
from joinwatch.store import MembershipStore

log = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 1.0


class JoinWatchService:
    """Owns the join-tracking state and wires the poll and live-join paths to it"""

    def __init__(self, settings, dispatch, clock=time.monotonic):
        self.settings = settings
        self.store = MembershipStore(settings.persistence_file)
        self.known = KnownMembers()
        self.scheduler = NotificationScheduler(
            dispatch,
            cooldown=settings.notify_cooldown,
            debounce=settings.notify_debounce,
            clock=clock,
        )
        self.started_at = None
        self.stopping = False
        self.reconciler = None
        self.listener = None

    @property
    def started(self):
        return self.started_at is not None

    def tracked_guilds(self, guilds):
        return [guild for guild in guilds if self.settings.tracks(guild.id)]

    async def start(self, guilds, started_at):
        """Load the ledger, baseline from the member cache and write it out"""
        if self.started:
            return False

        self.known, existed = self.store.load()
        self.started_at = started_at

        # Prefer the cache so startup doesn't need a heavy fetch per guild
        for guild in self.tracked_guilds(guilds):
            self.known.add(guild.id, (m.id for m in guild.members))
            log.info("Baseline: tracking %d members in %s", self.known.count(guild.id), guild.name)

        self.reconciler = MembershipReconciler(self.known, self.store, self.scheduler, started_at)
        self.listener = LiveJoinListener(
            self.known, self.store, self.scheduler, started_at, mode=self.settings.live_join_mode
        )

        if not existed:
            log.info("No usable persistence file; writing baseline so a restart won't re-alert")
        await self.store.flush(self.known)
        return True

    async def poll(self, guilds):
        """One reconciliation tick over the tracked guilds"""
        if not self.started or self.stopping:
            return 0
        evicted = self.scheduler.evict_expired()
        if evicted:
            log.debug("Evicted %d expired cooldown entries", evicted)
        return await self.reconciler.run(self.tracked_guilds(guilds))

    async def member_joined(self, member):
        if not self.started or self.stopping or member.guild is None:
            return False
        if not self.settings.tracks(member.guild.id):
            return False
        return await self.listener.on_member_join(member)

    def rebaseline(self, guild):
        """Reset a guild's known set to its current cached roster"""
        self.known.reset(guild.id)
        self.known.add(guild.id, (m.id for m in guild.members))
        self.store.save(self.known)
        log.info("Rebaselined %s: %d known members", guild.name, self.known.count(guild.id))
        return self.known.count(guild.id)

    def stats(self, guild):
        return {
            'known': len(self.known.guilds.get(guild.id, ())),
            'reported': guild.member_count or 0,
            'pending': sum(1 for g, _ in self.scheduler.pending if g.id == guild.id),
            'cooldowns': len(self.scheduler.last_notified),
        }

    async def shutdown(self, grace=SHUTDOWN_GRACE_SECONDS):
        """Stop alerting and make a last bounded attempt to persist the ledger"""
        self.stopping = True
        if self.reconciler is not None:
            self.reconciler.stop()
        dropped = self.scheduler.cancel()
        if dropped:
            log.warning("Dropping %d pending join notification(s) at shutdown", dropped)
        if self.started:
            await self.store.flush(self.known, timeout=grace)
