import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.client.backend import Bookmark, User
from app.client.store import BookmarkStore
from app.errors import AuthError, BackendError, ValidationError
from app.services.common import normalize_draft as _draft


class FakeBackend:
    def __init__(self, user=User(id=1, email="owner@example.com")):
        self.user = user
        self.rows = []
        self.next_id = 1
        self.clock = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.fail_list = False
        self.fail_insert = False
        self.list_calls = 0
        self.inserted = []
        self.subscriptions = []
        self.unsubscribed = []
        self.signed_out = False

    async def current_user(self):
        return self.user

    async def sign_out(self):
        self.signed_out = True
        self.user = None

    async def list_bookmarks(self, user):
        self.list_calls += 1
        if self.fail_list:
            raise BackendError("service unavailable")
        return sorted(self.rows, key=lambda row: row.created_at, reverse=True)

    async def insert_bookmark(self, draft, owner):
        if self.fail_insert:
            raise BackendError("insert rejected")
        self.clock += timedelta(seconds=1)
        bookmark = Bookmark(
            id=self.next_id, title=draft.title, url=draft.url, created_at=self.clock
        )
        self.next_id += 1
        self.rows.append(bookmark)
        self.inserted.append((draft, owner))
        return bookmark

    async def delete_bookmark(self, bookmark_id):
        before = len(self.rows)
        self.rows = [row for row in self.rows if row.id != bookmark_id]
        if len(self.rows) == before:
            raise BackendError("bookmark not found")

    async def subscribe(self, user, on_event):
        handle = {"user": user, "on_event": on_event}
        self.subscriptions.append(handle)
        return handle

    async def unsubscribe(self, handle):
        self.subscriptions.remove(handle)
        self.unsubscribed.append(handle)

    async def emit(self):
        for handle in list(self.subscriptions):
            await handle["on_event"]()


def _run(coro):
    return asyncio.run(coro)


def test_initialize_without_user_raises_auth_error():
    backend = FakeBackend(user=None)
    store = BookmarkStore(backend)

    with pytest.raises(AuthError):
        _run(store.initialize())

    assert backend.list_calls == 0
    assert backend.subscriptions == []
    assert store.user is None


def test_initialize_fetches_snapshot_and_opens_one_subscription():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await backend.insert_bookmark(_draft("One", "https://one.test"), backend.user)
        await store.initialize()
        await store.initialize()

    _run(scenario())

    assert [row.title for row in store.snapshot] == ["One"]
    assert len(backend.subscriptions) == 1
    assert store.user == backend.user


def test_refresh_replaces_snapshot_wholesale():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await backend.insert_bookmark(_draft("Old", "https://old.test"), backend.user)
        await store.initialize()
        backend.rows = []
        await backend.insert_bookmark(_draft("New", "https://new.test"), backend.user)
        await store.refresh()

    _run(scenario())

    assert [row.title for row in store.snapshot] == ["New"]


def test_failed_refresh_leaves_snapshot_untouched():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await backend.insert_bookmark(_draft("Kept", "https://kept.test"), backend.user)
        await store.initialize()
        before = store.snapshot
        backend.rows = []
        backend.fail_list = True
        with pytest.raises(BackendError):
            await store.refresh()
        return before

    before = _run(scenario())

    assert store.snapshot is before
    assert [row.title for row in store.snapshot] == ["Kept"]


def test_add_is_not_optimistic():
    backend = FakeBackend()
    store = BookmarkStore(backend, refresh_on_write=False)

    async def scenario():
        await store.initialize()
        created = await store.add(_draft("Docs", "https://docs.com"))
        assert store.snapshot == ()
        await store.refresh()
        return created

    created = _run(scenario())

    assert store.snapshot == (created,)
    assert backend.inserted[0][1] == backend.user


def test_add_failure_surfaces_and_keeps_state():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await store.initialize()
        backend.fail_insert = True
        with pytest.raises(BackendError):
            await store.add(_draft("Docs", "https://docs.com"))

    _run(scenario())

    assert store.snapshot == ()
    assert backend.list_calls == 1


def test_add_from_input_rejects_invalid_input_without_backend_call():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await store.initialize()
        with pytest.raises(ValidationError):
            await store.add_from_input("Broken", "not a url")
        with pytest.raises(ValidationError):
            await store.add_from_input("", "docs.com")

    _run(scenario())

    assert backend.inserted == []


def test_follow_up_refresh_failure_is_reported_not_raised():
    backend = FakeBackend()
    errors = []
    store = BookmarkStore(backend, on_error=errors.append)

    async def scenario():
        await store.initialize()
        backend.fail_list = True
        return await store.add(_draft("Docs", "https://docs.com"))

    created = _run(scenario())

    assert created.title == "Docs"
    assert store.snapshot == ()
    assert len(errors) == 1
    assert errors[0].message == "service unavailable"


def test_change_event_triggers_exactly_one_refresh():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await store.initialize()
        calls_before = backend.list_calls
        remote = _draft("Remote", "https://remote.test")
        await backend.insert_bookmark(remote, backend.user)
        await backend.emit()
        return calls_before

    calls_before = _run(scenario())

    assert backend.list_calls == calls_before + 1
    assert [row.title for row in store.snapshot] == ["Remote"]


def test_change_event_refresh_failure_goes_to_error_handler():
    backend = FakeBackend()
    errors = []
    store = BookmarkStore(backend, on_error=errors.append)

    async def scenario():
        await backend.insert_bookmark(_draft("Kept", "https://kept.test"), backend.user)
        await store.initialize()
        backend.fail_list = True
        await backend.emit()

    _run(scenario())

    assert [row.title for row in store.snapshot] == ["Kept"]
    assert len(errors) == 1


def test_change_event_with_expired_session_is_reported_not_raised():
    backend = FakeBackend()
    errors = []
    store = BookmarkStore(backend, on_error=errors.append)

    async def expired(user):
        raise AuthError()

    async def scenario():
        await store.initialize()
        backend.list_bookmarks = expired
        await backend.emit()
        await store.teardown()

    _run(scenario())

    assert len(errors) == 1
    assert isinstance(errors[0], AuthError)
    assert backend.subscriptions == []


def test_teardown_is_idempotent_and_safe_before_initialize():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await store.teardown()
        await store.initialize()
        await store.teardown()
        await store.teardown()

    _run(scenario())

    assert backend.subscriptions == []
    assert len(backend.unsubscribed) == 1


def test_session_context_releases_subscription_on_error():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        async with store.session():
            assert len(backend.subscriptions) == 1
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        _run(scenario())

    assert backend.subscriptions == []
    assert len(backend.unsubscribed) == 1


def test_session_context_without_user_opens_nothing():
    backend = FakeBackend(user=None)
    store = BookmarkStore(backend)

    async def scenario():
        async with store.session():
            pass

    with pytest.raises(AuthError):
        _run(scenario())

    assert backend.subscriptions == []


def test_operations_require_a_session():
    store = BookmarkStore(FakeBackend())

    with pytest.raises(AuthError):
        _run(store.refresh())
    with pytest.raises(AuthError):
        _run(store.remove(1))


def test_sign_out_discards_cache_and_subscription():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        await backend.insert_bookmark(_draft("One", "https://one.test"), backend.user)
        await store.initialize()
        await store.sign_out()

    _run(scenario())

    assert store.snapshot == ()
    assert store.user is None
    assert backend.subscriptions == []
    assert backend.signed_out is True


def test_add_refresh_delete_round_trip():
    backend = FakeBackend()
    store = BookmarkStore(backend)

    async def scenario():
        async with store.session():
            await store.add_from_input("Older", "older.com")
            created = await store.add_from_input("Docs", "docs.com")
            assert created.url == "https://docs.com"
            assert store.snapshot[0].id == created.id
            assert [row.title for row in store.visible("doc")] == ["Docs"]

            await store.remove(created.id)
            assert created.id not in [row.id for row in store.snapshot]
            assert [row.title for row in store.snapshot] == ["Older"]

    _run(scenario())
