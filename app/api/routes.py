from __future__ import annotations

from flask import current_app, g, jsonify, request

from app.api import api_bp
from app.cloud import CloudError
from app.services.bookmarks import (
    BookmarkValidationError,
    add_bookmark,
    delete_bookmark,
    list_bookmarks,
)
from app.services.security import api_auth_required


@api_bp.errorhandler(CloudError)
def handle_cloud_error(exc: CloudError):
    current_app.logger.error("Platform request failed: %s", exc)
    if exc.status_code in {401, 403}:
        return jsonify({"error": exc.message}), 401
    return jsonify({"error": exc.message}), 502


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "Smart Bookmarks"})


@api_bp.route("/session", methods=["GET"])
@api_auth_required
def session_api():
    auth_session = g.api_session
    return jsonify(
        {
            "user": auth_session.as_user().as_dict(),
            "expires_at": auth_session.expires_at,
        }
    )


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    items = list_bookmarks(g.api_session)
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON object body required"}), 400
    try:
        bookmark = add_bookmark(g.api_session, payload.get("url"), payload.get("title"))
    except BookmarkValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: str):
    deleted = delete_bookmark(g.api_session, bookmark_id)
    if not deleted:
        return jsonify({"error": "not found"}), 404
    return jsonify({"status": "deleted", "bookmark": deleted[0].as_dict()})
