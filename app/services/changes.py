from __future__ import annotations

import threading
from datetime import datetime

from app.extensions import db
from app.models import ChangeEvent

CHANGE_ACTION_INSERT = "insert"
CHANGE_ACTION_DELETE = "delete"

CHANGE_ACTIONS = {CHANGE_ACTION_INSERT, CHANGE_ACTION_DELETE}


class ChangeNotifier:
    """Wakes long-poll readers when a user's change log grows.

    Only the highest cursor seen per user is kept; readers compare it with
    their own cursor, so a wake-up that arrives before ``wait`` is called is
    not lost.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._latest: dict[int, int] = {}

    def notify(self, user_id: int, cursor: int) -> None:
        with self._condition:
            if cursor > self._latest.get(user_id, 0):
                self._latest[user_id] = cursor
            self._condition.notify_all()

    def wait(self, user_id: int, since: int, timeout: float) -> bool:
        if timeout <= 0:
            return self._latest.get(user_id, 0) > since
        with self._condition:
            return self._condition.wait_for(
                lambda: self._latest.get(user_id, 0) > since, timeout=timeout
            )


notifier = ChangeNotifier()


def record_change(user_id: int, bookmark_id: int | None, action: str) -> ChangeEvent:
    if action not in CHANGE_ACTIONS:
        raise ValueError(f"unknown change action: {action}")
    event = ChangeEvent(user_id=user_id, bookmark_id=bookmark_id, action=action)
    db.session.add(event)
    return event


def publish_change(event: ChangeEvent) -> None:
    """Wake readers for a committed event."""
    notifier.notify(event.user_id, event.id)


def latest_cursor(user_id: int) -> int:
    cursor = (
        db.session.query(db.func.max(ChangeEvent.id))
        .filter(ChangeEvent.user_id == user_id)
        .scalar()
    )
    return cursor or 0


def changes_since(user_id: int, since: int, limit: int = 200) -> list[ChangeEvent]:
    return (
        ChangeEvent.query.filter_by(user_id=user_id)
        .filter(ChangeEvent.id > since)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )


def prune_changes(older_than: datetime) -> int:
    removed = ChangeEvent.query.filter(ChangeEvent.created_at < older_than).delete(
        synchronize_session=False
    )
    db.session.commit()
    return removed
