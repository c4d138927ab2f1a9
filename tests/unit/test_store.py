"""Tests for the Session record and InMemorySessionStore."""

from __future__ import annotations

import pytest

from admission_pipeline.store import DataStore, InMemorySessionStore, Session, SessionStore


class TestSession:
    def test_starts_unmodified(self) -> None:
        session = Session({"a": 1})
        assert session.modified is False
        assert session["a"] == 1
        assert len(session) == 1

    def test_copies_initial_data(self) -> None:
        data = {"a": 1}
        session = Session(data)
        session["b"] = 2
        assert data == {"a": 1}

    def test_set_marks_modified(self) -> None:
        session = Session()
        session["user"] = "u-1"
        assert session.modified is True
        assert "user" in session
        assert list(session) == ["user"]

    def test_get_does_not_mark_modified(self) -> None:
        session = Session({"a": 1})
        assert session.get("a") == 1
        assert session.get("missing", "fallback") == "fallback"
        assert session.modified is False

    def test_pop(self) -> None:
        session = Session({"a": 1})
        assert session.pop("a") == 1
        assert session.modified is True

    def test_pop_missing(self) -> None:
        session = Session()
        assert session.pop("a", None) is None
        assert session.modified is False
        with pytest.raises(KeyError):
            session.pop("a")

    def test_clear(self) -> None:
        empty = Session()
        empty.clear()
        assert empty.modified is False

        session = Session({"a": 1})
        session.clear()
        assert len(session) == 0
        assert session.modified is True


class TestInMemorySessionStore:
    def test_satisfies_protocols(self, store: InMemorySessionStore) -> None:
        assert isinstance(store, SessionStore)
        assert isinstance(store, DataStore)

    async def test_create_issues_unique_ids(self, store: InMemorySessionStore) -> None:
        ids = {(await store.create())[0] for _ in range(50)}
        assert len(ids) == 50
        assert all(len(session_id) >= 32 for session_id in ids)

    async def test_get_returns_created_session(self, store: InMemorySessionStore) -> None:
        session_id, session = await store.create()
        assert await store.get(session_id) is session

    async def test_get_unknown(self, store: InMemorySessionStore) -> None:
        assert await store.get("nope") is None

    async def test_expired_session_is_dropped(self) -> None:
        expiring = InMemorySessionStore(ttl_seconds=0)
        session_id, _ = await expiring.create()
        assert await expiring.get(session_id) is None

    async def test_touch_extends_expiry(self) -> None:
        expiring = InMemorySessionStore(ttl_seconds=0)
        session_id, session = await expiring.create()
        await expiring.touch(session_id, 60)
        assert await expiring.get(session_id) is session

    async def test_create_sweeps_expired_records(self) -> None:
        expiring = InMemorySessionStore(ttl_seconds=0, sweep_interval=0)
        for _ in range(5):
            await expiring.create()
        assert len(expiring) == 1

    async def test_sweep_is_rate_limited(self) -> None:
        expiring = InMemorySessionStore(ttl_seconds=0, sweep_interval=3600)
        for _ in range(3):
            await expiring.create()
        assert len(expiring) == 3

    async def test_touch_unknown_is_noop(self, store: InMemorySessionStore) -> None:
        await store.touch("nope", 60)
        assert await store.get("nope") is None

    async def test_save_persists_and_resets_modified(
        self, store: InMemorySessionStore
    ) -> None:
        session_id, _ = await store.create()
        replacement = Session()
        replacement["cart"] = ["sku-1"]
        await store.save(session_id, replacement)
        stored = await store.get(session_id)
        assert stored is replacement
        assert stored.modified is False

    async def test_destroy(self, store: InMemorySessionStore) -> None:
        session_id, _ = await store.create()
        await store.destroy(session_id)
        assert await store.get(session_id) is None
        await store.destroy(session_id)

    async def test_close_drops_everything(self, store: InMemorySessionStore) -> None:
        await store.connect()
        session_id, _ = await store.create()
        await store.close()
        assert await store.get(session_id) is None
