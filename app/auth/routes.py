from flask import current_app, redirect, request, url_for

from app.auth import auth_bp
from app.cloud import CloudError, code_challenge, generate_code_verifier, get_cloud
from app.services.session_store import (
    pop_code_verifier,
    remember_code_verifier,
    sign_out,
    store_session,
)


def _callback_url() -> str:
    site_url = (current_app.config.get("SITE_URL") or "").rstrip("/")
    if site_url:
        return f"{site_url}{url_for('auth.callback')}"
    return url_for("auth.callback", _external=True)


@auth_bp.route("/auth/signin")
def signin():
    verifier = generate_code_verifier()
    remember_code_verifier(verifier)
    target = get_cloud().auth.authorize_url(
        current_app.config["OAUTH_PROVIDER"],
        _callback_url(),
        code_challenge(verifier),
    )
    return redirect(target)


@auth_bp.route("/auth/callback")
def callback():
    code = (request.args.get("code") or "").strip()
    error = (request.args.get("error") or "").strip()

    current_app.logger.info(
        "Callback - code present: %s, error: %s", bool(code), error or None
    )

    if code:
        try:
            auth_session = get_cloud().auth.exchange_code_for_session(
                code, pop_code_verifier()
            )
        except CloudError as exc:
            current_app.logger.error("Exchange error: %s", exc)
            return redirect(url_for("web.index", error="auth_failed"))
        store_session(auth_session)
        return redirect(url_for("web.index"))

    if error:
        current_app.logger.warning(
            "Provider returned an error: %s (%s)",
            error,
            request.args.get("error_description") or "no description",
        )
        return redirect(url_for("web.index", error=error))
    return redirect(url_for("web.index"))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    sign_out()
    return redirect(url_for("web.index"))
