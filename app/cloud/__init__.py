from flask import current_app

from app.cloud.auth import code_challenge, generate_code_verifier
from app.cloud.client import CloudClient
from app.cloud.errors import AuthError, CloudError, QueryError
from app.cloud.realtime import ChangePayload, RealtimeHub


def init_cloud(app, transport=None) -> CloudClient:
    previous = app.extensions.get("cloud")
    if previous is not None:
        previous.close()
    client = CloudClient(
        app.config["CLOUD_URL"],
        app.config["CLOUD_ANON_KEY"],
        timeout=app.config["CLOUD_TIMEOUT"],
        transport=transport,
    )
    app.extensions["cloud"] = client
    return client


def get_cloud() -> CloudClient:
    return current_app.extensions["cloud"]


__all__ = [
    "AuthError",
    "ChangePayload",
    "CloudClient",
    "CloudError",
    "QueryError",
    "RealtimeHub",
    "code_challenge",
    "generate_code_verifier",
    "get_cloud",
    "init_cloud",
]
