from __future__ import annotations

import json
import logging
import queue

from app.cloud import CloudError
from app.cloud.realtime import POSTGRES_CHANGES
from app.services.bookmarks import user_filter


log = logging.getLogger(__name__)

KEEPALIVE = ": keepalive\n\n"


def format_event(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def subscribe_to_bookmarks(cloud, table: str, user_id: str):
    """Open a channel for one user's rows; returns ``(channel, events)``."""
    events: queue.Queue = queue.Queue()
    channel = (
        cloud.channel(f"{table}-changes")
        .on(
            POSTGRES_CHANGES,
            {
                "event": "*",
                "schema": "public",
                "table": table,
                "filter": user_filter(user_id),
            },
            events.put,
        )
        .subscribe()
    )
    return channel, events


def change_stream(feed, events: queue.Queue, fetch_rows, poll_seconds: float):
    """Yield server-sent events for every change seen by ``feed``.

    Pushed notifications are delivered as they arrive; while idle the remote
    table is re-read every ``poll_seconds`` so edits made elsewhere surface too.
    """
    yield format_event("ready", {"count": len(feed)})
    while True:
        try:
            payload = events.get(timeout=poll_seconds)
        except queue.Empty:
            payload = None

        if payload is not None:
            if feed.apply(payload):
                log.debug("Real-time update: %s", payload.as_dict())
                yield format_event(payload.event_type, payload.as_dict())
            continue

        try:
            changes = feed.sync(fetch_rows())
        except CloudError as exc:
            log.warning("Real-time refresh failed: %s", exc)
            if exc.status_code in {401, 403}:
                yield format_event("expired", {"error": exc.message})
                return
            changes = []

        if not changes:
            yield KEEPALIVE
            continue
        for change in changes:
            log.debug("Real-time update: %s", change.as_dict())
            yield format_event(change.event_type, change.as_dict())
