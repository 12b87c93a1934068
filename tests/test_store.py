"""Tests for `joinwatch.store`."""

import asyncio
import json
import logging

from joinwatch.state import KnownMembers
from joinwatch.store import MembershipStore


def test_load_missing_file(tmp_path, caplog):
    store = MembershipStore(str(tmp_path / "missing.json"))
    with caplog.at_level(logging.INFO):
        known, existed = store.load()
    assert existed is False
    assert known == KnownMembers()
    assert "No persistence file" in caplog.text


def test_load_corrupt_file_counts_as_missing(tmp_path, caplog):
    path = tmp_path / "known.json"
    path.write_text("{not json")
    store = MembershipStore(str(path))
    with caplog.at_level(logging.WARNING):
        known, existed = store.load()
    assert existed is False
    assert known.guilds == {}
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_load_wrong_shape_counts_as_missing(tmp_path):
    path = tmp_path / "known.json"
    path.write_text(json.dumps(["not", "a", "mapping"]))
    known, existed = MembershipStore(str(path)).load()
    assert existed is False
    assert known.guilds == {}


def test_write_then_load_round_trip(tmp_path):
    path = tmp_path / "known.json"
    store = MembershipStore(str(path))
    original = KnownMembers({1: {3, 1, 2}, 99: {7}})

    store.write(original)
    loaded, existed = store.load()
    assert existed is True
    assert loaded == original

    store.write(loaded)
    reloaded, _ = store.load()
    assert reloaded == original
    assert not (tmp_path / "known.json.tmp").exists()


def test_save_coalesces_writes(tmp_path, monkeypatch):
    store = MembershipStore(str(tmp_path / "known.json"), delay=0.02)
    writes = []
    monkeypatch.setattr(store, "write", lambda known: writes.append(known.snapshot()))

    async def scenario():
        known = KnownMembers()
        known.add(1, [10])
        store.save(known)
        known.add(1, [11])
        store.save(known)
        known.add(2, [20])
        store.save(known)
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    # One write carrying the state as of the timer firing
    assert writes == [{"1": [10, 11], "2": [20]}]


def test_save_after_write_schedules_again(tmp_path):
    path = tmp_path / "known.json"
    store = MembershipStore(str(path), delay=0.01)

    async def scenario():
        known = KnownMembers({1: {10}})
        store.save(known)
        await asyncio.sleep(0.05)
        known.add(1, [11])
        store.save(known)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert json.loads(path.read_text()) == {"1": [10, 11]}


def test_write_failure_is_logged_and_retried_later(tmp_path, monkeypatch, caplog):
    path = tmp_path / "known.json"
    store = MembershipStore(str(path), delay=0.01)
    real_write = store.write
    attempts = []

    def flaky_write(known):
        attempts.append(1)
        if len(attempts) == 1:
            raise OSError("disk full")
        real_write(known)

    monkeypatch.setattr(store, "write", flaky_write)

    async def scenario():
        known = KnownMembers({1: {10}})
        store.save(known)
        await asyncio.sleep(0.05)
        store.save(known)
        await asyncio.sleep(0.05)

    with caplog.at_level(logging.WARNING):
        asyncio.run(scenario())
    assert "Failed to save persistence" in caplog.text
    assert len(attempts) == 2
    assert json.loads(path.read_text()) == {"1": [10]}


def test_flush_waits_for_write(tmp_path):
    path = tmp_path / "known.json"
    store = MembershipStore(str(path), delay=0.01)

    asyncio.run(store.flush(KnownMembers({5: {50}}), timeout=1.0))
    assert json.loads(path.read_text()) == {"5": [50]}


def test_flush_gives_up_after_timeout(tmp_path, caplog):
    path = tmp_path / "known.json"
    store = MembershipStore(str(path), delay=0.5)

    with caplog.at_level(logging.WARNING):
        asyncio.run(store.flush(KnownMembers({5: {50}}), timeout=0.01))
    assert "did not finish" in caplog.text
    assert not path.exists()
