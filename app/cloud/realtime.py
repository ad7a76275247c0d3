from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from app.models import utcnow


log = logging.getLogger(__name__)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"
EVENT_ANY = "*"
CHANGE_EVENTS = {EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE}

POSTGRES_CHANGES = "postgres_changes"


@dataclass
class ChangePayload:
    event_type: str
    table: str
    schema: str = "public"
    new: dict = field(default_factory=dict)
    old: dict = field(default_factory=dict)
    commit_timestamp: str = field(default_factory=lambda: utcnow().isoformat())

    @property
    def record(self) -> dict:
        return self.old if self.event_type == EVENT_DELETE else self.new

    def as_dict(self):
        return {
            "eventType": self.event_type,
            "schema": self.schema,
            "table": self.table,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp,
        }


def parse_filter(raw: str | None) -> tuple[str, str] | None:
    """Parse a ``column=eq.value`` row filter."""
    if not raw:
        return None
    column, sep, rest = raw.partition("=")
    operator, dot, value = rest.partition(".")
    if not sep or not dot or not column.strip():
        raise ValueError(f"malformed filter: {raw!r}")
    if operator != "eq":
        raise ValueError(f"unsupported filter operator: {operator!r}")
    return column.strip(), value


@dataclass
class _Binding:
    event: str
    schema: str
    table: str | None
    row_filter: tuple[str, str] | None
    callback: object

    def matches(self, payload: ChangePayload) -> bool:
        if self.event != EVENT_ANY and self.event != payload.event_type:
            return False
        if self.schema != payload.schema:
            return False
        if self.table and self.table != payload.table:
            return False
        if self.row_filter:
            column, expected = self.row_filter
            value = payload.record.get(column)
            if value is None or str(value) != expected:
                return False
        return True


class Channel:
    def __init__(self, hub: "RealtimeHub", name: str):
        self.hub = hub
        self.name = name
        self.bindings: list[_Binding] = []
        self.subscribed = False

    def on(self, kind: str, options: dict, callback) -> "Channel":
        if kind != POSTGRES_CHANGES:
            raise ValueError(f"unsupported channel binding: {kind!r}")
        event = (options.get("event") or EVENT_ANY).upper()
        if event != EVENT_ANY and event not in CHANGE_EVENTS:
            raise ValueError(f"unsupported change event: {event!r}")
        self.bindings.append(
            _Binding(
                event=event,
                schema=options.get("schema") or "public",
                table=options.get("table"),
                row_filter=parse_filter(options.get("filter")),
                callback=callback,
            )
        )
        return self

    def subscribe(self) -> "Channel":
        self.hub._activate(self)
        self.subscribed = True
        return self

    def unsubscribe(self) -> None:
        self.hub.remove_channel(self)

    def dispatch(self, payload: ChangePayload) -> int:
        delivered = 0
        for binding in list(self.bindings):
            if not binding.matches(payload):
                continue
            try:
                binding.callback(payload)
            except Exception:
                log.exception("Realtime callback failed on channel %s", self.name)
                continue
            delivered += 1
        return delivered


class RealtimeHub:
    """In-process fan-out of row change notifications to subscribed channels."""

    def __init__(self):
        self._lock = threading.Lock()
        self._channels: list[Channel] = []

    def channel(self, name: str) -> Channel:
        return Channel(self, name)

    def _activate(self, channel: Channel) -> None:
        with self._lock:
            if channel not in self._channels:
                self._channels.append(channel)

    def remove_channel(self, channel: Channel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)
        channel.subscribed = False

    def channels(self) -> list[Channel]:
        with self._lock:
            return list(self._channels)

    def broadcast(self, payload: ChangePayload) -> int:
        if payload.event_type not in CHANGE_EVENTS:
            raise ValueError(f"unsupported change event: {payload.event_type!r}")
        delivered = 0
        for channel in self.channels():
            delivered += channel.dispatch(payload)
        log.debug(
            "Realtime %s on %s delivered to %d listener(s)",
            payload.event_type,
            payload.table,
            delivered,
        )
        return delivered
