"""JSON persistence for the known-member ledger.

The file holds one entry per guild: ``{"<guild id>": [member id, ...]}``.
Writes are coalesced: any number of ``save`` calls inside the delay window
turn into a single write of whatever the ledger holds when the timer fires.
"""

import asyncio
import json
import logging
import os

from joinwatch.state import KnownMembers

log = logging.getLogger(__name__)

SAVE_DELAY_SECONDS = 0.8


class MembershipStore:
    def __init__(self, path, delay=SAVE_DELAY_SECONDS):
        self.path = path
        self.delay = delay
        self._save_scheduled = False
        self._latest = None
        self._task = None

    def load(self):
        """Load the ledger; returns (known_members, existed)

        A missing, unreadable or corrupt file is reported as not existing.
        """
        if not os.path.exists(self.path):
            log.info("No persistence file found at %s; starting fresh", self.path)
            return KnownMembers(), False

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                known = KnownMembers.from_snapshot(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            log.warning("Failed to load persistence from %s (corrupt or unreadable): %s", self.path, e)
            return KnownMembers(), False

        log.info("Loaded %d known members in %d guild(s) from disk", known.total(), len(known.guilds))
        return known, True

    def write(self, known):
        """Write the ledger now; the file is replaced atomically"""
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(known.snapshot(), f, indent=2)
        os.replace(tmp_path, self.path)

    def save(self, known):
        """Request a write; returns immediately, calls inside one window share a write"""
        self._latest = known
        if self._save_scheduled:
            return
        self._save_scheduled = True
        self._task = asyncio.get_running_loop().create_task(self._delayed_write())

    async def _delayed_write(self):
        try:
            await asyncio.sleep(self.delay)
            self.write(self._latest)
            log.debug("Saved persistence to %s", self.path)
        except OSError as e:
            log.warning("Failed to save persistence to %s: %s", self.path, e)
        finally:
            self._save_scheduled = False

    async def flush(self, known, timeout=None):
        """Request a write and wait for it, at most ``timeout`` seconds"""
        self.save(known)
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout)
        except asyncio.TimeoutError:
            log.warning("Persistence write did not finish within %.1fs", timeout)
