from __future__ import annotations

import base64
import hashlib
import secrets
from urllib.parse import urlencode

import httpx

from app.cloud.errors import AuthError, raise_for_error
from app.models import AuthSession


PKCE_VERIFIER_BYTES = 56


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(PKCE_VERIFIER_BYTES)


def code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class AuthAPI:
    """Calls against the platform's `/auth/v1` endpoints."""

    def __init__(self, cloud):
        self.cloud = cloud

    def _url(self, path: str) -> str:
        return f"{self.cloud.url}/auth/v1/{path.lstrip('/')}"

    def _request(self, method: str, path: str, access_token=None, **kwargs):
        headers = self.cloud.headers(access_token)
        try:
            response = self.cloud.http.request(
                method, self._url(path), headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"auth service unreachable: {exc}", status_code=503)
        raise_for_error(response, AuthError)
        return response

    def authorize_url(self, provider: str, redirect_to: str, challenge: str) -> str:
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": challenge,
                "code_challenge_method": "s256",
            }
        )
        return f"{self._url('authorize')}?{query}"

    def exchange_code_for_session(self, auth_code: str, code_verifier: str | None):
        if not code_verifier:
            raise AuthError("missing code verifier", status_code=400, code="bad_code_verifier")
        response = self._request(
            "POST",
            "token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )
        return AuthSession.from_payload(response.json())

    def refresh_session(self, refresh_token: str | None):
        if not refresh_token:
            raise AuthError("missing refresh token", status_code=400)
        response = self._request(
            "POST",
            "token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return AuthSession.from_payload(response.json())

    def get_user(self, access_token: str) -> dict:
        response = self._request("GET", "user", access_token=access_token)
        return response.json()

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "logout", access_token=access_token)
