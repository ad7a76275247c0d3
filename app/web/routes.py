from __future__ import annotations

from flask import (
    Response,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    stream_with_context,
    url_for,
)
from flask_login import login_required

from app.cloud import CloudError, get_cloud
from app.services.bookmarks import (
    BookmarkFeed,
    BookmarkValidationError,
    add_bookmark,
    delete_bookmark,
    fetch_bookmark_rows,
    list_bookmarks,
)
from app.services.live_updates import change_stream, format_event, subscribe_to_bookmarks
from app.services.session_store import get_session
from app.web import web_bp


AUTH_ERROR_MESSAGES = {
    "auth_failed": "Sign-in failed. Please try again.",
    "access_denied": "Sign-in was cancelled.",
}


def _auth_error_message(code: str | None) -> str | None:
    code = (code or "").strip()
    if not code:
        return None
    return AUTH_ERROR_MESSAGES.get(code, f"Sign-in error: {code}")


def _render_bookmarks(auth_session, form=None, status=200):
    bookmarks = []
    load_error = None
    try:
        bookmarks = list_bookmarks(auth_session)
    except CloudError as exc:
        current_app.logger.error("Error fetching bookmarks: %s", exc)
        load_error = "Could not load bookmarks."

    return (
        render_template(
            "bookmarks.html",
            user=auth_session.as_user(),
            bookmarks=bookmarks,
            load_error=load_error,
            form=form or {"url": "", "title": ""},
        ),
        status,
    )


@web_bp.route("/")
def index():
    auth_session = get_session()
    if auth_session is None:
        return render_template(
            "auth.html", error=_auth_error_message(request.args.get("error"))
        )
    return _render_bookmarks(auth_session)


@web_bp.route("/bookmarks", methods=["POST"])
@login_required
def bookmarks_create():
    auth_session = get_session()
    if auth_session is None:
        return redirect(url_for("web.index"))

    form = {
        "url": (request.form.get("url") or "").strip(),
        "title": (request.form.get("title") or "").strip(),
    }
    try:
        add_bookmark(auth_session, form["url"], form["title"])
    except BookmarkValidationError as exc:
        flash(str(exc), "error")
        return _render_bookmarks(auth_session, form=form, status=400)
    except CloudError as exc:
        current_app.logger.error("Error adding bookmark: %s", exc)
        flash("Failed to add bookmark", "error")
        return _render_bookmarks(auth_session, form=form, status=502)

    return redirect(url_for("web.index"))


@web_bp.route("/bookmarks/<bookmark_id>/delete", methods=["POST"])
@login_required
def bookmarks_delete(bookmark_id: str):
    auth_session = get_session()
    if auth_session is None:
        return redirect(url_for("web.index"))

    try:
        delete_bookmark(auth_session, bookmark_id)
    except CloudError as exc:
        current_app.logger.error("Error deleting bookmark: %s", exc)
        flash("Failed to delete bookmark", "error")
    return redirect(url_for("web.index"))


@web_bp.route("/bookmarks/stream")
@login_required
def bookmarks_stream():
    auth_session = get_session()
    if auth_session is None:
        return Response(format_event("expired", {}), status=401, mimetype="text/event-stream")

    cloud = get_cloud()
    table = current_app.config["BOOKMARKS_TABLE"]
    poll_seconds = current_app.config["REALTIME_POLL_SECONDS"]

    def generate():
        channel, events = subscribe_to_bookmarks(cloud, table, auth_session.user_id)
        try:
            try:
                feed = BookmarkFeed(table, list_bookmarks(auth_session))
            except CloudError as exc:
                current_app.logger.error("Error fetching bookmarks: %s", exc)
                yield format_event("error", {"error": exc.message})
                return
            yield from change_stream(
                feed,
                events,
                lambda: fetch_bookmark_rows(auth_session),
                poll_seconds,
            )
        finally:
            channel.unsubscribe()

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
