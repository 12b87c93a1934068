import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure the repository root is on the import path when pytest runs from elsewhere.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from joinwatch.config import Settings  # noqa: E402

STARTED_AT = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeMember:
    def __init__(self, member_id, joined_at=None, guild=None, name=None):
        self.id = member_id
        self.joined_at = joined_at
        self.guild = guild
        self.name = name or f"user{member_id}"

    def __str__(self):
        return self.name


class FakeGuild:
    def __init__(self, guild_id, members=(), member_count=None, roster=None, name=None):
        self.id = guild_id
        self.name = name or f"guild{guild_id}"
        self.members = list(members)  # member cache
        self.roster = roster  # what chunk() returns; None -> the cache
        self.member_count = member_count if member_count is not None else len(self.members)
        self.chunk_error = None
        self.chunk_calls = 0

    async def chunk(self):
        self.chunk_calls += 1
        if self.chunk_error is not None:
            raise self.chunk_error
        return list(self.roster if self.roster is not None else self.members)

    def join(self, member_id, joined_at):
        """Simulate a member joining: roster, cache and count all grow"""
        member = FakeMember(member_id, joined_at=joined_at, guild=self)
        if self.roster is not None:
            self.roster.append(member)
        self.members.append(member)
        self.member_count += 1
        return member


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingDispatch:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def __call__(self, guild, members):
        self.calls.append((guild.id, [m.id for m in members]))
        if self.error is not None:
            raise self.error


class RecordingStore:
    def __init__(self):
        self.saves = 0

    def save(self, known):
        self.saves += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatch():
    return RecordingDispatch()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        token="test-token",
        channel_id=42,
        notify_debounce=0.05,
        persistence_file=str(tmp_path / "knownMembers.json"),
    )


def before_start(seconds):
    return STARTED_AT - timedelta(seconds=seconds)
