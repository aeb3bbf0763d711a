"""Environment-driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_CLIENT_URL = "http://localhost:3000"
DEFAULT_SESSION_DB = "sqlite:///campusnest_session.db"
DEFAULT_UNLOCK_FEE = 200
DEFAULT_CURRENCY = "KES"
DEFAULT_PAYMENT_METHOD = "paystack"
DEFAULT_SESSION_TIMEOUT = 30 * 60
DEFAULT_HTTP_TIMEOUT = 20

CURRENCY_SYMBOLS = {"KES": "KSh"}


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    client_url: str = DEFAULT_CLIENT_URL
    session_db: str = DEFAULT_SESSION_DB
    unlock_fee: int = DEFAULT_UNLOCK_FEE
    currency: str = DEFAULT_CURRENCY
    payment_method: str = DEFAULT_PAYMENT_METHOD
    session_timeout: int = DEFAULT_SESSION_TIMEOUT
    http_timeout: int = DEFAULT_HTTP_TIMEOUT

    def format_fee(self) -> str:
        """Render the unlock fee for display before initiation."""
        symbol = CURRENCY_SYMBOLS.get(self.currency, self.currency)
        return f"{symbol} {self.unlock_fee:,}"


def load_settings_from_env() -> Settings:
    """Construct settings from CAMPUSNEST_* environment variables."""
    return Settings(
        api_url=_env_str("CAMPUSNEST_API_URL", DEFAULT_API_URL).rstrip("/"),
        client_url=_env_str("CAMPUSNEST_CLIENT_URL", DEFAULT_CLIENT_URL).rstrip("/"),
        session_db=_env_str("CAMPUSNEST_SESSION_DB", DEFAULT_SESSION_DB),
        unlock_fee=_env_int("CAMPUSNEST_UNLOCK_FEE", DEFAULT_UNLOCK_FEE),
        currency=_env_str("CAMPUSNEST_CURRENCY", DEFAULT_CURRENCY).upper(),
        payment_method=_env_str("CAMPUSNEST_PAYMENT_METHOD", DEFAULT_PAYMENT_METHOD),
        session_timeout=_env_int("CAMPUSNEST_SESSION_TIMEOUT", DEFAULT_SESSION_TIMEOUT),
        http_timeout=_env_int("CAMPUSNEST_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
    )


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value
