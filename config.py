import os
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


DATABASE_ENV_PRIORITY = (
    "INTERNAL_DATABASE_URL",
    "DATABASE_URL",
    "EXTERNAL_DATABASE_URL",
)


def normalize_database_uri(uri: Optional[str]) -> Optional[str]:
    if not uri:
        return uri

    if uri.startswith("postgres://"):
        return "postgresql+psycopg2://" + uri[len("postgres://"):]

    if uri.startswith("postgresql://") and not uri.startswith("postgresql+psycopg2://"):
        return "postgresql+psycopg2://" + uri[len("postgresql://"):]

    return uri


def get_database_uri_from_env(default: Optional[str] = None) -> Tuple[Optional[str], Optional[str]]:
    for key in DATABASE_ENV_PRIORITY:
        value = os.getenv(key)
        if value:
            return normalize_database_uri(value), key

    if default is not None:
        return normalize_database_uri(default), "default"

    return None, None


DEFAULT_SQLITE_URI = "sqlite:///lineup_mailer.db"
RESOLVED_DATABASE_URI, RESOLVED_DATABASE_SOURCE = get_database_uri_from_env(DEFAULT_SQLITE_URI)

DEFAULT_LINEUP_BASE_URL = "http://l.103.fm:8080"


class Config:
    SQLALCHEMY_DATABASE_URI = RESOLVED_DATABASE_URI or DEFAULT_SQLITE_URI
    SQLALCHEMY_DATABASE_URI_SOURCE = RESOLVED_DATABASE_SOURCE
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # The worker keeps connections open for hours between ticks; pre-ping
    # replaces connections the server closed while idle.
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": int(os.getenv("SQLALCHEMY_POOL_RECYCLE", "280")),
        "pool_size": int(os.getenv("SQLALCHEMY_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("SQLALCHEMY_MAX_OVERFLOW", "5")),
    }

    DISPATCH_INTERVAL_MINUTES = int(os.getenv("DISPATCH_INTERVAL_MINUTES", "30"))
    DISPATCH_WINDOW_MINUTES = int(os.getenv("DISPATCH_WINDOW_MINUTES", "5"))
    DUPLICATE_GUARD_MINUTES = int(os.getenv("DUPLICATE_GUARD_MINUTES", "10"))
    DISPATCH_LOCK_TTL_SECONDS = int(os.getenv("DISPATCH_LOCK_TTL_SECONDS", "900"))
    # Empty means the host's local time, which is how the station servers run.
    DISPATCH_TIMEZONE = os.getenv("DISPATCH_TIMEZONE", "").strip()

    LINEUP_BASE_URL = (
        os.getenv("LINEUP_BASE_URL", DEFAULT_LINEUP_BASE_URL).strip().rstrip("/")
        or DEFAULT_LINEUP_BASE_URL
    )

    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATA_DIR = os.getenv("DATA_DIR", "/var/tmp")
    WORKER_HEARTBEAT_INTERVAL = int(os.getenv("WORKER_HEARTBEAT_INTERVAL", "30"))
