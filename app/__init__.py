import logging

from flask import Flask

from app.api import api_bp
from app.auth import auth_bp
from app.cloud import init_cloud
from app.config import Config
from app.extensions import login_manager
from app.models import parse_timestamp
from app.services.session_store import auth_state_changed
from app.web import web_bp


def _log_auth_event(app, event=None, session=None, **_extra):
    app.logger.info(
        "Auth event: %s (user: %s)", event, session.user_id if session else None
    )


OAUTH_PROVIDER_LABELS = {
    "azure": "Microsoft",
    "github": "GitHub",
    "gitlab": "GitLab",
    "linkedin_oidc": "LinkedIn",
}


def _provider_label(provider: str) -> str:
    provider = (provider or "").strip().lower()
    return OAUTH_PROVIDER_LABELS.get(provider, provider.replace("_", " ").title())


def _added_at(value) -> str:
    created = parse_timestamp(value)
    if created is None:
        return ""
    return f"Added {created.strftime('%Y-%m-%d')} at {created.strftime('%H:%M:%S')}"


def configure_logging(app) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)


def create_app(config_object=Config, cloud_transport=None):
    app = Flask(__name__, template_folder="../templates", static_folder="../static")
    app.config.from_object(config_object)
    configure_logging(app)

    init_cloud(app, transport=cloud_transport)
    login_manager.init_app(app)
    auth_state_changed.connect(_log_auth_event, sender=app, weak=False)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    app.jinja_env.filters["added_at"] = _added_at

    @app.context_processor
    def inject_globals():
        return {
            "app_name": "Smart Bookmarks",
            "oauth_provider_label": _provider_label(app.config["OAUTH_PROVIDER"]),
        }

    return app
