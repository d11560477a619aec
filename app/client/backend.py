"""Capability contracts the bookmark store needs, and an HTTP implementation.

The store only ever talks to a backend through three narrow capabilities:

* session: who is signed in, and signing out;
* query: list, insert and delete the signed-in user's bookmarks;
* change feed: a push channel that says "something changed" for a user.

``HttpBackend`` implements all three against the ``/api/v1`` JSON API with a
bearer token. The change feed is a long poll on ``/api/v1/changes``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol

import httpx
from dateutil import parser as dt_parser

from app.errors import AuthError, BackendError
from app.services.common import BookmarkDraft, get_domain

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class User:
    id: Any
    email: str | None = None

    @classmethod
    def from_dict(cls, payload: dict) -> "User":
        return cls(id=payload["id"], email=payload.get("email"))


@dataclass(frozen=True)
class Bookmark:
    id: Any
    title: str
    url: str
    created_at: datetime

    @property
    def domain(self) -> str:
        return get_domain(self.url)

    @classmethod
    def from_dict(cls, payload: dict) -> "Bookmark":
        return cls(
            id=payload["id"],
            title=payload["title"],
            url=payload["url"],
            created_at=dt_parser.isoparse(payload["created_at"]),
        )


@dataclass
class Subscription:
    user: User
    task: asyncio.Task | None = None
    cursor: int = 0
    closed: bool = False


class SessionCapability(Protocol):
    async def current_user(self) -> User | None: ...

    async def sign_out(self) -> None: ...


class QueryCapability(Protocol):
    async def list_bookmarks(self, user: User) -> list[Bookmark]: ...

    async def insert_bookmark(self, draft: BookmarkDraft, owner: User) -> Bookmark: ...

    async def delete_bookmark(self, bookmark_id: Any) -> None: ...


class ChangeFeedCapability(Protocol):
    async def subscribe(self, user: User, on_event: ChangeCallback) -> Any: ...

    async def unsubscribe(self, handle: Any) -> None: ...


class Backend(SessionCapability, QueryCapability, ChangeFeedCapability, Protocol):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"request failed with status {response.status_code}"


class HttpBackend:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        poll_wait: float = 25.0,
        poll_interval: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.poll_wait = poll_wait
        self.poll_interval = poll_interval
        # the long poll holds the connection for up to poll_wait seconds
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout, read=timeout + poll_wait),
            transport=transport,
        )

    async def __aenter__(self) -> "HttpBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendError(str(exc) or exc.__class__.__name__) from exc
        if response.status_code == 401:
            raise AuthError()
        if response.is_error:
            raise BackendError(_error_message(response))
        return response

    async def current_user(self) -> User | None:
        try:
            response = await self._request("GET", "/api/v1/me")
        except AuthError:
            return None
        return User.from_dict(response.json())

    async def sign_out(self) -> None:
        try:
            await self._request("POST", "/api/v1/auth/revoke")
        except AuthError:
            # already revoked
            return

    async def list_bookmarks(self, user: User) -> list[Bookmark]:
        response = await self._request("GET", "/api/v1/bookmarks")
        return [Bookmark.from_dict(item) for item in response.json()["items"]]

    async def insert_bookmark(self, draft: BookmarkDraft, owner: User) -> Bookmark:
        response = await self._request(
            "POST", "/api/v1/bookmarks", json={"title": draft.title, "url": draft.url}
        )
        return Bookmark.from_dict(response.json())

    async def delete_bookmark(self, bookmark_id: Any) -> None:
        await self._request("DELETE", f"/api/v1/bookmarks/{bookmark_id}")

    async def subscribe(self, user: User, on_event: ChangeCallback) -> Subscription:
        response = await self._request("GET", "/api/v1/changes/cursor")
        subscription = Subscription(user=user, cursor=response.json()["cursor"])
        subscription.task = asyncio.create_task(
            self._poll_changes(subscription, on_event),
            name=f"bookmark-changes-{user.id}",
        )
        return subscription

    async def unsubscribe(self, handle: Subscription) -> None:
        if handle.closed:
            return
        handle.closed = True
        if handle.task is None:
            return
        handle.task.cancel()
        try:
            await handle.task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.warning("Change feed task ended with an error", exc_info=True)

    async def _poll_changes(
        self, subscription: Subscription, on_event: ChangeCallback
    ) -> None:
        while not subscription.closed:
            try:
                response = await self._request(
                    "GET",
                    "/api/v1/changes",
                    params={"since": subscription.cursor, "wait": self.poll_wait},
                )
            except AuthError:
                logger.warning("Change feed closed: session is no longer valid")
                subscription.closed = True
                return
            except BackendError as exc:
                logger.warning("Change feed poll failed: %s", exc.message)
                await asyncio.sleep(self.poll_interval)
                continue

            payload = response.json()
            subscription.cursor = payload["cursor"]
            if payload["events"]:
                try:
                    await on_event()
                except Exception:
                    logger.exception("Change feed callback failed")
            if not payload["has_more"]:
                await asyncio.sleep(self.poll_interval)
