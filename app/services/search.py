from __future__ import annotations


def _safe(value: str | None) -> str:
    return (value or "").strip()


def matches_bookmark(bookmark, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    title = _safe(getattr(bookmark, "title", "")).lower()
    url = _safe(getattr(bookmark, "url", "")).lower()
    return q in title or q in url


def filter_bookmarks(bookmarks, query: str | None) -> list:
    if not query or not query.strip():
        return list(bookmarks)
    return [bookmark for bookmark in bookmarks if matches_bookmark(bookmark, query)]
