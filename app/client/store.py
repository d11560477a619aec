"""Client-side cache of the signed-in user's bookmarks.

The store never patches its cache: every refresh replaces the whole snapshot
with the backend's ordered list, and every change-feed notification triggers
one refresh. Writes are not applied optimistically.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

from app.client.backend import Backend, Bookmark, User
from app.errors import AuthError, BackendError, BookmarkError
from app.services.common import BookmarkDraft, normalize_draft
from app.services.search import filter_bookmarks

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BookmarkError], None]


@dataclass
class StoreSession:
    user: User
    subscription: Any = None


class BookmarkStore:
    def __init__(
        self,
        backend: Backend,
        *,
        refresh_on_write: bool = True,
        on_error: ErrorHandler | None = None,
    ):
        self.backend = backend
        self.refresh_on_write = refresh_on_write
        self.on_error = on_error
        self._session: StoreSession | None = None
        self._snapshot: tuple[Bookmark, ...] = ()

    @property
    def snapshot(self) -> tuple[Bookmark, ...]:
        return self._snapshot

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    def visible(self, query: str | None) -> list[Bookmark]:
        return filter_bookmarks(self._snapshot, query)

    def _require_session(self) -> StoreSession:
        if self._session is None:
            raise AuthError()
        return self._session

    def _report(self, exc: BookmarkError) -> None:
        logger.warning("Bookmark refresh failed: %s", exc.message)
        if self.on_error is not None:
            self.on_error(exc)

    async def initialize(self) -> None:
        if self._session is not None and self._session.subscription is not None:
            return

        user = await self.backend.current_user()
        if user is None:
            raise AuthError()
        self._session = StoreSession(user=user)
        await self.refresh()
        self._session.subscription = await self.backend.subscribe(
            user, self._on_change
        )

    async def refresh(self) -> tuple[Bookmark, ...]:
        session = self._require_session()
        rows = await self.backend.list_bookmarks(session.user)
        self._snapshot = tuple(rows)
        return self._snapshot

    async def add(self, draft: BookmarkDraft) -> Bookmark:
        session = self._require_session()
        bookmark = await self.backend.insert_bookmark(draft, session.user)
        await self._refresh_after_write()
        return bookmark

    async def add_from_input(self, title: str, url: str) -> Bookmark:
        return await self.add(normalize_draft(title, url))

    async def remove(self, bookmark_id: Any) -> None:
        self._require_session()
        await self.backend.delete_bookmark(bookmark_id)
        await self._refresh_after_write()

    async def _refresh_after_write(self) -> None:
        if not self.refresh_on_write:
            return
        try:
            await self.refresh()
        except BackendError as exc:
            self._report(exc)

    async def _on_change(self) -> None:
        if self._session is None:
            return
        try:
            await self.refresh()
        except BookmarkError as exc:
            # includes AuthError for an expired session
            self._report(exc)

    async def teardown(self) -> None:
        session = self._session
        if session is None or session.subscription is None:
            return
        subscription, session.subscription = session.subscription, None
        await self.backend.unsubscribe(subscription)

    async def sign_out(self) -> None:
        try:
            await self.teardown()
        finally:
            self._session = None
            self._snapshot = ()
        await self.backend.sign_out()

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator["BookmarkStore"]:
        try:
            await self.initialize()
            yield self
        finally:
            await self.teardown()
