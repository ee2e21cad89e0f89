# portal/settings.py
from __future__ import annotations

import os
from typing import List

from pydantic import BaseModel

# Load .env locally (safe in prod too)
try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    pass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off", ""}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./portal.db").strip()
    db_pool_size: int = _env_int("DB_POOL_SIZE", 10)

    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")

    cookie_secure: bool = _env_flag("COOKIE_SECURE", "0")
    client_session_days: int = _env_int("CLIENT_SESSION_DAYS", 7)
    admin_session_hours: int = _env_int("ADMIN_SESSION_HOURS", 24)

    tax_rate: float = _env_float("TAX_RATE", 0.18)
    free_shipping_threshold: float = _env_float("FREE_SHIPPING_THRESHOLD", 10000)
    shipping_fee: float = _env_float("SHIPPING_FEE", 500)

    order_number_prefix: str = os.getenv("ORDER_NUMBER_PREFIX", "PE").strip() or "PE"
    strict_order_transitions: bool = _env_flag("STRICT_ORDER_TRANSITIONS", "1")

    base_url: str = os.getenv("BASE_URL", "http://localhost:3000").rstrip("/")

    smtp_host: str = os.getenv("SMTP_HOST", "").strip()
    smtp_port: int = _env_int("SMTP_PORT", 587)
    smtp_user: str = os.getenv("SMTP_USER", "").strip()
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    mail_from: str = os.getenv("MAIL_FROM", "").strip()
    orders_email_to: str = os.getenv("ORDERS_EMAIL_TO", "").strip()

    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    cors_origins: List[str] = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
    ]


settings = Settings()
