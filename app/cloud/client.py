from __future__ import annotations

import httpx

from app.cloud.auth import AuthAPI
from app.cloud.realtime import RealtimeHub
from app.cloud.table import TableQuery


class CloudClient:
    def __init__(self, url: str, anon_key: str, timeout: float = 10.0, transport=None):
        if not url or not anon_key:
            raise ValueError("platform url and anon key are required")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.http = httpx.Client(timeout=timeout, transport=transport)
        self.auth = AuthAPI(self)
        self.realtime = RealtimeHub()

    def headers(self, access_token: str | None = None) -> dict:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Accept": "application/json",
        }

    def table(self, name: str, access_token: str | None = None) -> TableQuery:
        return TableQuery(self, name, access_token=access_token)

    def channel(self, name: str):
        return self.realtime.channel(name)

    def close(self) -> None:
        self.http.close()
