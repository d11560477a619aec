from __future__ import annotations

from app.extensions import db
from app.models import Bookmark
from app.services.changes import (
    CHANGE_ACTION_DELETE,
    CHANGE_ACTION_INSERT,
    publish_change,
    record_change,
)
from app.services.common import BookmarkDraft


def list_user_bookmarks(user_id: int) -> list[Bookmark]:
    return (
        Bookmark.query.filter_by(user_id=user_id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .all()
    )


def get_user_bookmark(user_id: int, bookmark_id: int) -> Bookmark | None:
    return Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()


def create_bookmark(user_id: int, draft: BookmarkDraft) -> Bookmark:
    bookmark = Bookmark(user_id=user_id, title=draft.title, url=draft.url)
    db.session.add(bookmark)
    db.session.flush()
    event = record_change(user_id, bookmark.id, CHANGE_ACTION_INSERT)
    db.session.commit()
    publish_change(event)
    return bookmark


def delete_bookmark(user_id: int, bookmark_id: int) -> bool:
    bookmark = get_user_bookmark(user_id, bookmark_id)
    if not bookmark:
        return False

    db.session.delete(bookmark)
    event = record_change(user_id, bookmark_id, CHANGE_ACTION_DELETE)
    db.session.commit()
    publish_change(event)
    return True
