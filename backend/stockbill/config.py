# backend/stockbill/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockbill.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockbill.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Invoicing defaults
    INVOICE_DEFAULT_TAX_PERCENT = os.environ.get("INVOICE_DEFAULT_TAX_PERCENT", "19")
    INVOICE_DEFAULT_CUSTOMER_NAME = os.environ.get("INVOICE_DEFAULT_CUSTOMER_NAME", "General Customer")

    # When False, issuing an invoice that would drive stock below zero fails
    STOCK_ALLOW_NEGATIVE = _env_bool("STOCK_ALLOW_NEGATIVE", False)

    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
