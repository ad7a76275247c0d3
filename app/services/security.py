from functools import wraps

from flask import g, jsonify, request

from app.cloud import AuthError, CloudError, get_cloud
from app.models import AuthSession
from app.services.session_store import get_session


REJECTED_TOKEN_STATUSES = {400, 401, 403, 404}


def _session_from_bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None
    try:
        user = get_cloud().auth.get_user(token)
    except AuthError as exc:
        if exc.status_code in REJECTED_TOKEN_STATUSES:
            return None
        raise CloudError(exc.message, status_code=exc.status_code, code=exc.code) from exc
    if not user or not user.get("id"):
        return None
    return AuthSession(access_token=token, refresh_token=None, expires_at=None, user=user)


def get_authenticated_api_session():
    auth_session = get_session()
    if auth_session is not None:
        return auth_session
    return _session_from_bearer_token()


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        auth_session = get_authenticated_api_session()
        if not auth_session:
            return jsonify({"error": "authentication required"}), 401
        g.api_session = auth_session
        return func(*args, **kwargs)

    return wrapped
