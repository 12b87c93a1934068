"""Per-member cooldown and debounced, per-guild batching of join alerts."""

import asyncio
import logging
import time

log = logging.getLogger(__name__)


class NotificationScheduler:
    """Collects join alerts and hands them to ``dispatch(guild, members)``.

    A member is reserved in ``last_notified`` as soon as it is accepted,
    before anything is sent, so a second path observing the same join inside
    the cooldown window is dropped. The cost is that a failed send is not
    retried until the window has passed.

    Every accepted alert re-arms one debounce timer; the pending queue is
    flushed once no alert has arrived for ``debounce`` seconds.
    """

    def __init__(self, dispatch, cooldown=600.0, debounce=5.0, clock=time.monotonic):
        self.dispatch = dispatch
        self.cooldown = cooldown
        self.debounce = debounce
        self.clock = clock
        self.last_notified = {}  # member id -> clock() of the accepted alert
        self.pending = []  # (guild, member) awaiting the next flush
        self._timer = None
        self._flush_tasks = set()

    def reserve(self, member_id):
        """Claim the cooldown slot for a member; False if it is still cooling down"""
        now = self.clock()
        last = self.last_notified.get(member_id)
        if last is not None and now - last < self.cooldown:
            return False
        self.last_notified[member_id] = now
        return True

    def schedule(self, member, guild):
        """Queue an alert for a member unless one was accepted recently"""
        if not self.reserve(member.id):
            log.debug("Member %s is in cooldown; alert dropped", member.id)
            return False

        self.pending.append((guild, member))
        self._arm()
        return True

    async def dispatch_now(self, member, guild):
        """Send a single, unbatched alert (still subject to the cooldown)"""
        if not self.reserve(member.id):
            log.debug("Member %s is in cooldown; alert dropped", member.id)
            return False

        try:
            await self.dispatch(guild, [member])
        except Exception:
            log.exception("Failed to send join notification for %s (guild %s)", member.id, guild.id)
        return True

    def _arm(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.debounce, self._fire)

    def _fire(self):
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self):
        """Send everything pending, one dispatch per guild; returns the guild count"""
        if not self.pending:
            return 0

        by_guild = {}
        for guild, member in self.pending:
            by_guild.setdefault(guild.id, (guild, []))[1].append(member)
        self.pending = []

        for guild, members in by_guild.values():
            try:
                await self.dispatch(guild, members)
            except Exception:
                log.exception("Failed to send join notification for %d member(s) (guild %s)", len(members), guild.id)
        return len(by_guild)

    def evict_expired(self):
        """Drop cooldown entries that can no longer suppress anything"""
        now = self.clock()
        expired = [member_id for member_id, ts in self.last_notified.items() if now - ts >= self.cooldown]
        for member_id in expired:
            del self.last_notified[member_id]
        return len(expired)

    def cancel(self):
        """Stop the debounce timer and discard pending alerts; returns how many were dropped"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        dropped = len(self.pending)
        self.pending = []
        return dropped
