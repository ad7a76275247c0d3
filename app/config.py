import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    CLOUD_URL = os.environ.get("CLOUD_URL", "http://localhost:54321")
    CLOUD_ANON_KEY = os.environ.get("CLOUD_ANON_KEY", "anon-key")
    CLOUD_TIMEOUT = float(os.environ.get("CLOUD_TIMEOUT", "10"))
    OAUTH_PROVIDER = os.environ.get("OAUTH_PROVIDER", "google")
    SITE_URL = os.environ.get("SITE_URL", "")
    BOOKMARKS_TABLE = os.environ.get("BOOKMARKS_TABLE", "bookmarks")
    SESSION_REFRESH_MARGIN_SECONDS = int(
        os.environ.get("SESSION_REFRESH_MARGIN_SECONDS", "60")
    )
    REALTIME_POLL_SECONDS = float(os.environ.get("REALTIME_POLL_SECONDS", "15"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    CLOUD_URL = "https://project.cloud.test"
    CLOUD_ANON_KEY = "test-anon-key"
    SITE_URL = ""
    REALTIME_POLL_SECONDS = 0.01
    LOG_LEVEL = "DEBUG"
