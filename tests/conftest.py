import base64
import hashlib
import itertools
import json
import secrets
import time
import uuid
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app import create_app
from app.config import TestConfig


def _s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class FakeCloud:
    """In-memory stand-in for the hosted platform's auth and table endpoints."""

    def __init__(self, anon_key=TestConfig.CLOUD_ANON_KEY):
        self.anon_key = anon_key
        self.users = {}
        self.codes = {}
        self.access_tokens = {}
        self.refresh_tokens = {}
        self.rows = []
        self.expires_in = 3600
        self.requests = []
        self.failures = {}
        self.down = False
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    # helpers used by tests

    def add_user(self, email):
        if email not in self.users:
            self.users[email] = {"id": str(uuid.uuid4()), "email": email}
        return self.users[email]

    def issue_code(self, challenge, email):
        code = secrets.token_urlsafe(16)
        self.codes[code] = (challenge, self.add_user(email))
        return code

    def issue_session(self, user):
        access_token = f"at-{secrets.token_hex(8)}"
        refresh_token = f"rt-{secrets.token_hex(8)}"
        self.access_tokens[access_token] = user
        self.refresh_tokens[refresh_token] = user
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": self.expires_in,
            "expires_at": int(time.time()) + self.expires_in,
            "refresh_token": refresh_token,
            "user": user,
        }

    def insert_row(self, user_id, url, title):
        row = {
            "id": next(self._ids),
            "user_id": user_id,
            "url": url,
            "title": title,
            "created_at": self._tick().isoformat(),
        }
        self.rows.append(row)
        return row

    def fail(self, method, path, status, payload):
        self.failures[(method, path)] = (status, payload)

    def requests_to(self, path):
        return [request for request in self.requests if request.url.path == path]

    # transport

    def _tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def _bearer_user(self, request):
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Bearer ").strip()
        return self.access_tokens.get(token)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path

        if request.headers.get("apikey") != self.anon_key:
            return httpx.Response(401, json={"message": "Invalid API key"})
        if (request.method, path) in self.failures:
            status, payload = self.failures[(request.method, path)]
            return httpx.Response(status, json=payload)

        if path == "/auth/v1/token":
            return self._token(request)
        if path == "/auth/v1/user":
            user = self._bearer_user(request)
            if user is None:
                return httpx.Response(
                    401, json={"code": 401, "error_code": "bad_jwt", "msg": "invalid JWT"}
                )
            return httpx.Response(200, json=user)
        if path == "/auth/v1/logout":
            header = request.headers.get("Authorization", "")
            self.access_tokens.pop(header.removeprefix("Bearer ").strip(), None)
            return httpx.Response(204)
        if path == "/rest/v1/bookmarks":
            return self._table(request)
        return httpx.Response(404, json={"message": "not found"})

    def _token(self, request):
        grant_type = request.url.params.get("grant_type")
        body = json.loads(request.content or b"{}")
        if grant_type == "pkce":
            entry = self.codes.pop(body.get("auth_code"), None)
            if entry is None:
                return httpx.Response(
                    404,
                    json={
                        "code": 404,
                        "error_code": "flow_state_not_found",
                        "msg": "invalid flow state, no valid flow state found",
                    },
                )
            challenge, user = entry
            if _s256(body.get("code_verifier") or "") != challenge:
                return httpx.Response(
                    400,
                    json={
                        "code": 400,
                        "error_code": "bad_code_verifier",
                        "msg": "code challenge does not match previously saved code verifier",
                    },
                )
            return httpx.Response(200, json=self.issue_session(user))
        if grant_type == "refresh_token":
            user = self.refresh_tokens.pop(body.get("refresh_token"), None)
            if user is None:
                return httpx.Response(
                    400,
                    json={
                        "code": 400,
                        "error_code": "refresh_token_not_found",
                        "msg": "Invalid Refresh Token: Refresh Token Not Found",
                    },
                )
            return httpx.Response(200, json=self.issue_session(user))
        return httpx.Response(400, json={"error": "unsupported_grant_type"})

    def _matching(self, request, user):
        rows = [row for row in self.rows if user and row["user_id"] == user["id"]]
        for key, value in request.url.params.multi_items():
            if key in {"select", "order"}:
                continue
            operator, _, expected = value.partition(".")
            assert operator == "eq", value
            rows = [row for row in rows if str(row.get(key)) == expected]
        return rows

    def _table(self, request):
        user = self._bearer_user(request)
        representation = "return=representation" in request.headers.get("Prefer", "")

        if request.method == "GET":
            rows = self._matching(request, user)
            order = request.url.params.get("order")
            if order:
                column, _, direction = order.partition(".")
                rows = sorted(
                    rows,
                    key=lambda row: (row.get(column), row["id"]),
                    reverse=direction == "desc",
                )
            return httpx.Response(200, json=rows)

        if request.method == "POST":
            payload = json.loads(request.content or b"[]")
            created = []
            for item in payload:
                if user is None or item.get("user_id") != user["id"]:
                    return httpx.Response(
                        403,
                        json={
                            "code": "42501",
                            "message": 'new row violates row-level security policy for table "bookmarks"',
                        },
                    )
                created.append(self.insert_row(item["user_id"], item["url"], item["title"]))
            return httpx.Response(201, json=created if representation else None)

        if request.method == "DELETE":
            doomed = self._matching(request, user)
            self.rows = [row for row in self.rows if row not in doomed]
            return httpx.Response(200, json=doomed if representation else None)

        return httpx.Response(405, json={"message": "method not allowed"})


@pytest.fixture
def cloud():
    return FakeCloud()


@pytest.fixture
def app(cloud):
    app = create_app(TestConfig, cloud_transport=httpx.MockTransport(cloud.handle))
    yield app
    app.extensions["cloud"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sign_in(cloud):
    def _sign_in(client, email="ada@example.com"):
        response = client.get("/auth/signin")
        assert response.status_code == 302
        query = parse_qs(urlparse(response.headers["Location"]).query)
        code = cloud.issue_code(query["code_challenge"][0], email)
        response = client.get(f"/auth/callback?code={code}")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/")
        return cloud.users[email]

    return _sign_in
