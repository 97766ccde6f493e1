# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Inventory status snapshots, per company
    INVENTORY_STATUS_CACHE_TTL = int(os.environ.get("INVENTORY_STATUS_CACHE_TTL", "300"))
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL")  # unset -> in-process cache

    # Settlement queue
    CELERY = {
        "broker_url": os.environ.get("CELERY_BROKER_URL", "memory://"),
        "result_backend": os.environ.get("CELERY_RESULT_BACKEND"),
        "task_always_eager": _env_bool("CELERY_TASK_ALWAYS_EAGER", False),
        "task_acks_late": True,
        "task_ignore_result": True,
    }
    SETTLEMENT_MAX_ATTEMPTS = int(os.environ.get("SETTLEMENT_MAX_ATTEMPTS", "3"))
    SETTLEMENT_TIME_LIMIT = int(os.environ.get("SETTLEMENT_TIME_LIMIT", "120"))

    SALES_REPORT_DEFAULT_PAGE_SIZE = int(os.environ.get("SALES_REPORT_DEFAULT_PAGE_SIZE", "15"))
    SALES_REPORT_MAX_PAGE_SIZE = int(os.environ.get("SALES_REPORT_MAX_PAGE_SIZE", "100"))

    STALE_INVENTORY_DAYS = int(os.environ.get("STALE_INVENTORY_DAYS", "90"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
