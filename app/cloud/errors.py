from __future__ import annotations

import httpx


class CloudError(Exception):
    """Failure reported by (or while talking to) the hosted platform."""

    def __init__(self, message: str, status_code: int | None = None, code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (status {self.status_code})"
        return self.message


class AuthError(CloudError):
    pass


class QueryError(CloudError):
    pass


def _error_message(payload: dict) -> str | None:
    for key in ("error_description", "msg", "message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def raise_for_error(response: httpx.Response, error_cls=CloudError) -> None:
    if response.is_success:
        return

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    message = _error_message(payload) or response.reason_phrase or "request failed"
    code = payload.get("error_code") or payload.get("code") or payload.get("error")
    raise error_cls(message, status_code=response.status_code, code=code)
