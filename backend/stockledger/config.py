# backend/stockledger/config.py
from __future__ import annotations
import os


def _engine_options(database_uri: str) -> dict:
    options = {"pool_pre_ping": True}
    # SQLite pools are configured by Flask-SQLAlchemy (StaticPool for :memory:)
    if not database_uri.startswith("sqlite"):
        options["pool_size"] = int(os.environ.get("DB_POOL_SIZE", "10"))
        options["max_overflow"] = int(os.environ.get("DB_MAX_OVERFLOW", "5"))
    return options


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Production runs on PostgreSQL (row-level security); SQLite for local dev
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session variable read by the row-level security policies
    TENANT_SESSION_SETTING = os.environ.get("TENANT_SESSION_SETTING", "app.current_tenant_id")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    LEDGER_LIST_LIMIT_MAX = int(os.environ.get("LEDGER_LIST_LIMIT_MAX", "500"))
