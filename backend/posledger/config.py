# backend/posledger/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/posledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Store policy used until a store_settings row overrides it
    ALLOW_NEGATIVE_STOCK = _env_flag("ALLOW_NEGATIVE_STOCK", False)

    # When enabled, cash + card + other must equal the sale total
    REQUIRE_PAYMENT_MATCH = _env_flag("REQUIRE_PAYMENT_MATCH", False)

    # Lock contention / optimistic-lock retries for a single checkout
    CHECKOUT_RETRY_ATTEMPTS = int(os.environ.get("CHECKOUT_RETRY_ATTEMPTS", "3"))
    CHECKOUT_RETRY_BACKOFF = float(os.environ.get("CHECKOUT_RETRY_BACKOFF", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
