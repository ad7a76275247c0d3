from __future__ import annotations

from urllib.parse import urlparse

from flask import current_app

from app.cloud import get_cloud
from app.cloud.realtime import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    ChangePayload,
)
from app.models import AuthSession, Bookmark


MISSING_FIELDS_MESSAGE = "Please fill in both URL and title"
INVALID_URL_MESSAGE = "Please enter a valid URL"


class BookmarkValidationError(ValueError):
    pass


def _table_name() -> str:
    return current_app.config["BOOKMARKS_TABLE"]


def _table(auth_session: AuthSession):
    return get_cloud().table(_table_name(), access_token=auth_session.access_token)


def validate_bookmark(url: str | None, title: str | None) -> tuple[str, str]:
    url = (url or "").strip()
    title = (title or "").strip()
    if not url or not title:
        raise BookmarkValidationError(MISSING_FIELDS_MESSAGE)
    parsed = urlparse(url)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        raise BookmarkValidationError(INVALID_URL_MESSAGE)
    return url, title


def user_filter(user_id: str) -> str:
    return f"user_id=eq.{user_id}"


def fetch_bookmark_rows(auth_session: AuthSession) -> list[dict]:
    return (
        _table(auth_session)
        .select("*")
        .eq("user_id", auth_session.user_id)
        .order("created_at", desc=True)
        .execute()
    )


def list_bookmarks(auth_session: AuthSession) -> list[Bookmark]:
    return [Bookmark.from_row(row) for row in fetch_bookmark_rows(auth_session)]


def add_bookmark(auth_session: AuthSession, url, title) -> Bookmark:
    url, title = validate_bookmark(url, title)
    rows = (
        _table(auth_session)
        .insert([{"user_id": auth_session.user_id, "url": url, "title": title}])
        .execute()
    )
    if not rows:
        return Bookmark.from_row(
            {"user_id": auth_session.user_id, "url": url, "title": title}
        )
    _publish(ChangePayload(EVENT_INSERT, _table_name(), new=rows[0]))
    return Bookmark.from_row(rows[0])


def delete_bookmark(auth_session: AuthSession, bookmark_id) -> list[Bookmark]:
    rows = (
        _table(auth_session)
        .delete()
        .eq("id", bookmark_id)
        .eq("user_id", auth_session.user_id)
        .execute()
    )
    for row in rows:
        _publish(ChangePayload(EVENT_DELETE, _table_name(), old=row))
    return [Bookmark.from_row(row) for row in rows]


def _publish(payload: ChangePayload) -> None:
    get_cloud().realtime.broadcast(payload)


def apply_change(bookmarks: list[Bookmark], payload: ChangePayload) -> list[Bookmark]:
    if payload.event_type == EVENT_INSERT:
        return [Bookmark.from_row(payload.new), *bookmarks]
    if payload.event_type == EVENT_DELETE:
        old_id = payload.old.get("id")
        return [item for item in bookmarks if not item.same_id(old_id)]
    if payload.event_type == EVENT_UPDATE:
        new_id = payload.new.get("id")
        return [
            Bookmark.from_row(payload.new) if item.same_id(new_id) else item
            for item in bookmarks
        ]
    return bookmarks


class BookmarkFeed:
    """One viewer's copy of the list, kept current from change notifications."""

    def __init__(self, table: str, bookmarks=None):
        self.table = table
        self.bookmarks: list[Bookmark] = list(bookmarks or [])

    def __len__(self) -> int:
        return len(self.bookmarks)

    def contains(self, bookmark_id) -> bool:
        return any(item.same_id(bookmark_id) for item in self.bookmarks)

    def apply(self, payload: ChangePayload) -> bool:
        """Patch the list; returns False when the change is already reflected."""
        if payload.event_type == EVENT_INSERT and self.contains(payload.new.get("id")):
            return False
        if payload.event_type == EVENT_DELETE and not self.contains(
            payload.old.get("id")
        ):
            return False
        self.bookmarks = apply_change(self.bookmarks, payload)
        return True

    def sync(self, rows: list[dict]) -> list[ChangePayload]:
        """Diff a fresh snapshot against the local list and apply the changes."""
        current = {str(item.id): item for item in self.bookmarks}
        fresh = {str(row.get("id")): row for row in rows}
        changes: list[ChangePayload] = []

        for key, item in current.items():
            if key not in fresh:
                changes.append(
                    ChangePayload(EVENT_DELETE, self.table, old=item.as_dict())
                )

        # snapshot is newest first; insert oldest first so prepends keep that order
        for key, row in reversed(list(fresh.items())):
            if key not in current:
                changes.append(ChangePayload(EVENT_INSERT, self.table, new=row))
            elif Bookmark.from_row(row) != current[key]:
                changes.append(
                    ChangePayload(
                        EVENT_UPDATE, self.table, new=row, old=current[key].as_dict()
                    )
                )

        for payload in changes:
            self.apply(payload)
        return changes
