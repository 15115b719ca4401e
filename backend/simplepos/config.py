# backend/simplepos/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> set[str]:
    return {part.strip() for part in value.split(",") if part.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/simplepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///simplepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for GET /api/transactions when no limit is given
    TRANSACTION_LIST_LIMIT = int(os.environ.get("POS_LIST_LIMIT", "1000"))

    # Browser origins allowed to call the API (cashier UI dev/preview servers)
    ALLOWED_ORIGINS = _split_csv(os.environ.get(
        "POS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    ))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
