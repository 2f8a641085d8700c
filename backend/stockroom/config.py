# backend/stockroom/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockroom.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Audit log queue (Redis list consumed by `flask audit drain`)
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    REDIS_CONNECT_TIMEOUT = float(os.environ.get("REDIS_CONNECT_TIMEOUT", "2"))
    AUDIT_LOG_ENABLED = _env_bool("AUDIT_LOG_ENABLED", True)
    AUDIT_LOG_QUEUE = os.environ.get("AUDIT_LOG_QUEUE", "queue:audit_log")
    AUDIT_LOG_MAX_ATTEMPTS = _env_int("AUDIT_LOG_MAX_ATTEMPTS", 3)

    # Listing endpoints
    DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 50)
    MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 100)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
    AUDIT_LOG_ENABLED = True
