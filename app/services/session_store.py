from __future__ import annotations

from blinker import Namespace
from flask import current_app, session
from flask_login import login_user, logout_user

from app.cloud import CloudError, get_cloud
from app.extensions import login_manager
from app.models import AuthSession


SESSION_KEY = "cloud_session"
VERIFIER_KEY = "cloud_code_verifier"

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

_signals = Namespace()
auth_state_changed = _signals.signal("auth-state-changed")


def _announce(event: str, auth_session: AuthSession | None) -> None:
    auth_state_changed.send(
        current_app._get_current_object(), event=event, session=auth_session
    )


def remember_code_verifier(verifier: str) -> None:
    session[VERIFIER_KEY] = verifier


def pop_code_verifier() -> str | None:
    return session.pop(VERIFIER_KEY, None)


def load_session() -> AuthSession | None:
    raw = session.get(SESSION_KEY)
    if not raw:
        return None
    try:
        return AuthSession(**raw)
    except TypeError:
        session.pop(SESSION_KEY, None)
        return None


def store_session(auth_session: AuthSession, event: str = SIGNED_IN) -> None:
    session[SESSION_KEY] = auth_session.as_dict()
    login_user(auth_session.as_user())
    _announce(event, auth_session)


def clear_session() -> None:
    had_session = session.pop(SESSION_KEY, None) is not None
    logout_user()
    if had_session:
        _announce(SIGNED_OUT, None)


def get_session() -> AuthSession | None:
    """Return the stored session, refreshing it when it is about to expire."""
    auth_session = load_session()
    if auth_session is None:
        return None

    margin = current_app.config["SESSION_REFRESH_MARGIN_SECONDS"]
    if not auth_session.expires_within(margin):
        return auth_session

    try:
        refreshed = get_cloud().auth.refresh_session(auth_session.refresh_token)
    except CloudError as exc:
        current_app.logger.warning("Session refresh failed: %s", exc)
        clear_session()
        return None

    if not refreshed.user:
        refreshed.user = auth_session.user
    store_session(refreshed, event=TOKEN_REFRESHED)
    return refreshed


def sign_out() -> None:
    auth_session = load_session()
    if auth_session is not None:
        try:
            get_cloud().auth.sign_out(auth_session.access_token)
        except CloudError as exc:
            current_app.logger.warning("Sign-out request failed: %s", exc)
    clear_session()


@login_manager.user_loader
def load_user(user_id: str):
    auth_session = load_session()
    if auth_session is None or auth_session.user_id != user_id:
        return None
    return auth_session.as_user()
