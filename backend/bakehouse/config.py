# backend/bakehouse/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bakehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bakehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "strict" raises NotFoundError on unknown ids, "compat" silently skips them
    STOCK_LOOKUP_MODE = os.environ.get("STOCK_LOOKUP_MODE", "strict")

    # Price granularity in currency units (per-product rounding_enabled decides)
    PRICE_ROUNDING_UNIT = int(os.environ.get("PRICE_ROUNDING_UNIT", "100"))
    TOTAL_ROUNDING_UNIT = int(os.environ.get("TOTAL_ROUNDING_UNIT", "1000"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
