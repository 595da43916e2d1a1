# backend/fulfillment/config.py
from __future__ import annotations

import os
from datetime import timedelta


# Tenant policy seeded at signup
DEFAULT_MAX_PRODUCTS = 5000
DEFAULT_MAX_ORDERS = 50000
DEFAULT_MAX_WAREHOUSES = 5
DEFAULT_CURRENCY = "SAR"
DEFAULT_ID_POLICY = {
    "default_product_id_len": 4,
    "product_id_min_len": 4,
    "order_id_min_len": 4,
}
DEFAULT_WAREHOUSE_NAME = "Default"
DEFAULT_PACKAGING_PRESETS = (
    ("Small Package", 200),
    ("Medium Package", 500),
    ("Large Package", 1000),
)


def _csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fulfillment.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///fulfillment.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_LIFETIME = timedelta(days=int(os.environ.get("SESSION_LIFETIME_DAYS", "150")))
    SESSION_PURGE_GRACE = timedelta(days=7)

    # Attempts for optimistic-conflict retries around engine transactions
    TRANSACTION_ATTEMPTS = int(os.environ.get("TRANSACTION_ATTEMPTS", "3"))

    ORDER_LIST_LIMIT = 100

    CORS_ALLOWED_ORIGINS = _csv_env(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )
