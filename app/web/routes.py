from __future__ import annotations

from flask import flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from app.errors import ValidationError
from app.services.bookmarks import (
    create_bookmark,
    delete_bookmark,
    list_user_bookmarks,
)
from app.services.changes import latest_cursor
from app.services.common import favicon_url, normalize_draft
from app.services.search import filter_bookmarks
from app.web import web_bp


def _serialize_bookmark_card(item) -> dict:
    domain = item.domain
    return {
        "id": item.id,
        "title": item.title,
        "url": item.url,
        "domain": domain,
        "favicon_url": favicon_url(domain),
        "created_at": item.created_at.isoformat(),
        "delete_url": url_for("web.bookmarks_delete", bookmark_id=item.id),
    }


def _dashboard_redirect(q: str | None = None):
    q = (q or "").strip()
    if q:
        return redirect(url_for("web.dashboard", q=q))
    return redirect(url_for("web.dashboard"))


def _render_dashboard(title: str = "", url: str = "", status: int = 200):
    q = (request.values.get("q") or "").strip()
    bookmarks = list_user_bookmarks(current_user.id)
    items = filter_bookmarks(bookmarks, q)
    return (
        render_template(
            "dashboard.html",
            email=current_user.email,
            total=len(bookmarks),
            items=[_serialize_bookmark_card(item) for item in items],
            q=q,
            title=title,
            url=url,
            cursor=latest_cursor(current_user.id),
        ),
        status,
    )


@web_bp.route("/")
@login_required
def dashboard():
    return _render_dashboard()


@web_bp.route("/bookmarks/live")
@login_required
def bookmarks_live():
    q = (request.args.get("q") or "").strip()
    bookmarks = list_user_bookmarks(current_user.id)
    items = filter_bookmarks(bookmarks, q)
    return jsonify(
        {
            "q": q,
            "total": len(bookmarks),
            "items": [_serialize_bookmark_card(item) for item in items],
        }
    )


@web_bp.route("/bookmarks", methods=["POST"])
@login_required
def bookmarks_create():
    title = request.form.get("title") or ""
    url = request.form.get("url") or ""
    try:
        draft = normalize_draft(title, url)
    except ValidationError as exc:
        flash(exc.message, "error")
        return _render_dashboard(title=title, url=url, status=400)

    create_bookmark(current_user.id, draft)
    flash("Bookmark added!", "success")
    return _dashboard_redirect(request.form.get("q"))


@web_bp.route("/bookmarks/<int:bookmark_id>/delete", methods=["POST"])
@login_required
def bookmarks_delete(bookmark_id: int):
    if not delete_bookmark(current_user.id, bookmark_id):
        flash("Bookmark not found.", "error")
    else:
        flash("Deleted successfully.", "success")
    return _dashboard_redirect(request.form.get("q"))
