from __future__ import annotations

from flask import current_app, g, jsonify, request

from app.api import api_bp
from app.errors import AuthError, ValidationError
from app.extensions import db
from app.services.accounts import (
    issue_api_token,
    revoke_api_token,
    sign_in_or_register,
)
from app.services.bookmarks import (
    create_bookmark,
    delete_bookmark,
    list_user_bookmarks,
)
from app.services.changes import changes_since, latest_cursor, notifier
from app.services.common import normalize_draft
from app.services.security import (
    active_token_row,
    api_auth_required,
    bearer_token_from_request,
)

MAX_CHANGES_PER_PULL = 500


def _validation_error(exc: ValidationError):
    return jsonify({"error": exc.message, "reason": exc.reason}), 400


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "SmartMark"})


@api_bp.route("/auth/token", methods=["POST"])
def create_token():
    payload = request.get_json(silent=True) or {}
    token_name = (payload.get("token_name") or "SmartMark API Token").strip()
    try:
        user = sign_in_or_register(payload.get("email"), payload.get("password"))
    except ValidationError as exc:
        return _validation_error(exc)
    except AuthError:
        return jsonify({"error": "invalid credentials"}), 401

    token = issue_api_token(user, token_name)
    return jsonify({"token": token, "token_name": token_name, "user": user.as_dict()})


@api_bp.route("/auth/revoke", methods=["POST"])
@api_auth_required(token_only=True)
def revoke_token():
    token_row = active_token_row(bearer_token_from_request())
    if token_row:
        revoke_api_token(token_row)
    return jsonify({"status": "revoked"})


@api_bp.route("/me")
@api_auth_required()
def me():
    return jsonify(g.api_user.as_dict())


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required()
def bookmarks_list_api():
    items = list_user_bookmarks(g.api_user.id)
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required()
def bookmarks_create_api():
    payload = request.get_json(silent=True) or {}
    try:
        draft = normalize_draft(payload.get("title"), payload.get("url"))
    except ValidationError as exc:
        return _validation_error(exc)

    bookmark = create_bookmark(g.api_user.id, draft)
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required()
def bookmarks_delete_api(bookmark_id: int):
    if not delete_bookmark(g.api_user.id, bookmark_id):
        return jsonify({"error": "bookmark not found"}), 404
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/changes/cursor")
@api_auth_required()
def changes_cursor():
    return jsonify({"cursor": latest_cursor(g.api_user.id)})


@api_bp.route("/changes")
@api_auth_required()
def changes_pull():
    user_id = g.api_user.id
    since = request.args.get("since", default=0, type=int)
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, MAX_CHANGES_PER_PULL))
    max_wait = current_app.config["CHANGE_FEED_MAX_WAIT_SECONDS"]
    wait = request.args.get("wait", default=0.0, type=float)
    if wait > max_wait:
        current_app.logger.warning(
            "Clamping change feed wait %.1fs to %.1fs", wait, max_wait
        )
    wait = max(0.0, min(wait, max_wait))

    events = changes_since(user_id, since, limit)
    if not events and wait > 0:
        # no open transaction while blocked
        db.session.rollback()
        if notifier.wait(user_id, since, timeout=wait):
            events = changes_since(user_id, since, limit)

    cursor = events[-1].id if events else since
    return jsonify(
        {
            "events": [event.as_dict() for event in events],
            "cursor": cursor,
            "has_more": len(events) == limit,
        }
    )
