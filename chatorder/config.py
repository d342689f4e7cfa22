# chatorder/config.py
from __future__ import annotations

import os

from pydantic import BaseModel

# Load .env locally (safe in prod too)
try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    pass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./chatorder.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()

    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")
    # default 24h
    jwt_expire_minutes: int = _env_int("JWT_EXPIRE_MIN", 1440)

    # how long a catalog snapshot is reused before the menu table is re-read
    catalog_refresh_seconds: float = _env_float("CATALOG_REFRESH_SECONDS", 30.0)
    checkout_timeout_seconds: float = _env_float("CHECKOUT_TIMEOUT_SECONDS", 10.0)
    menu_seed_path: str = os.getenv("MENU_SEED_PATH", "").strip()

    canteen_name: str = os.getenv("CANTEEN_NAME", "SDCA Canteen")
    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "₱")

    orders_email_to: str = os.getenv("ORDERS_EMAIL_TO", "").strip()
    smtp_host: str = os.getenv("SMTP_HOST", "").strip()
    smtp_port: int = _env_int("SMTP_PORT", 587)
    smtp_user: str = os.getenv("SMTP_USER", "").strip()
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_from: str = os.getenv("SMTP_FROM", "").strip()
