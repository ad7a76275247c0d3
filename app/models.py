from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from urllib.parse import urlparse

from dateutil import parser as dt_parser
from flask_login import UserMixin


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        parsed = dt_parser.isoparse(str(value))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CloudUser(UserMixin):
    def __init__(self, id: str, email: str | None = None, metadata=None):
        self.id = id
        self.email = email
        self.metadata = metadata or {}

    @classmethod
    def from_payload(cls, payload: dict) -> "CloudUser":
        return cls(
            id=str(payload.get("id") or ""),
            email=payload.get("email"),
            metadata=payload.get("user_metadata") or {},
        )

    def as_dict(self):
        return {"id": self.id, "email": self.email, "user_metadata": self.metadata}


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str | None
    expires_at: int | None
    user: dict
    token_type: str = "bearer"

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthSession":
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            expires_at = int(time.time()) + int(payload["expires_in"])
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=int(expires_at) if expires_at is not None else None,
            user=dict(payload.get("user") or {}),
            token_type=payload.get("token_type") or "bearer",
        )

    @property
    def user_id(self) -> str:
        return str(self.user.get("id") or "")

    @property
    def email(self) -> str | None:
        return self.user.get("email")

    def expires_within(self, seconds: int) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at - seconds <= time.time()

    def as_user(self) -> CloudUser:
        return CloudUser.from_payload(self.user)

    def as_dict(self):
        return asdict(self)


@dataclass
class Bookmark:
    id: object
    user_id: str
    url: str
    title: str
    created_at: str | None = None
    extra: dict = field(default_factory=dict, repr=False)

    FIELDS = ("id", "user_id", "url", "title", "created_at")

    @classmethod
    def from_row(cls, row: dict) -> "Bookmark":
        extra = {key: value for key, value in row.items() if key not in cls.FIELDS}
        return cls(
            id=row.get("id"),
            user_id=str(row.get("user_id") or ""),
            url=row.get("url") or "",
            title=row.get("title") or "",
            created_at=row.get("created_at"),
            extra=extra,
        )

    @property
    def created(self) -> datetime | None:
        return parse_timestamp(self.created_at)

    @property
    def is_web_link(self) -> bool:
        parsed = urlparse(self.url or "")
        return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)

    def same_id(self, other_id) -> bool:
        return other_id is not None and str(self.id) == str(other_id)

    def as_dict(self):
        created = self.created
        return {
            "id": self.id,
            "user_id": self.user_id,
            "url": self.url,
            "title": self.title,
            "created_at": created.isoformat() if created else self.created_at,
        }
