import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}
_FALSY = {"0", "false", "f", "no", "n", "off"}


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.env = os.getenv("ENV", "development").strip().lower()
        self.version = os.getenv("APP_VERSION", "1.0.0")
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = self._get_int("PORT", default=4000)
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        self.database_path = Path(os.getenv("DATABASE_PATH", "data/todos.db")).resolve()
        self.db_query_timeout = self._get_float("DB_QUERY_TIMEOUT", default=3.0)

        self.limiter_enabled = self._get_bool("LIMITER_ENABLED", default=True)
        self.limiter_rps = self._get_float("LIMITER_RPS", default=2.0)
        self.limiter_burst = self._get_int("LIMITER_BURST", default=4)
        self.limiter_sweep_interval = self._get_float("LIMITER_SWEEP_INTERVAL", default=60.0)
        self.limiter_idle_ttl = self._get_float("LIMITER_IDLE_TTL", default=180.0)

        origins = os.getenv("CORS_TRUSTED_ORIGINS", "")
        self.cors_trusted_origins: List[str] = [
            item.strip() for item in origins.split(",") if item.strip()
        ]

        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_sender = os.getenv("SMTP_SENDER", "Todo API <no-reply@todoapi.local>")

        self.bcrypt_rounds = self._get_int("BCRYPT_ROUNDS", default=12)
        self.shutdown_timeout = self._get_float("SHUTDOWN_TIMEOUT", default=30.0)

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None or value == "":
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be a number") from exc

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None or value == "":
            return default
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise RuntimeError(f"Environment variable {key} must be a boolean")
