"""
Configuration module for the Leilão Tracker.

Loads environment variables and provides configuration constants.
Credentials (SMTP) belong in the .env file, never in git.
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()


PRIORITY_NEIGHBORHOODS = [
    "Portão", "Batel", "Água Verde", "Centro", "Bigorrilho",
    "Cabral", "Jardim Social", "Alto da XV", "Hugo Lange",
    "Juvevê", "Rebouças", "Cristo Rei", "Boa Vista", "Bacacheri", "Tarumã",
]

GRANDE_CURITIBA = [
    "Almirante Tamandaré", "Araucária", "Campo Largo",
    "Colombo", "Fazenda Rio Grande", "Pinhais", "São José dos Pinhais",
]

TARGET_CITIES = ["Curitiba"] + GRANDE_CURITIBA


@dataclass
class EmailConfig:
    """SMTP settings for the daily top-N summary."""
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    from_email: str
    from_name: str
    to_email: str

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_user and self.to_email)

    @classmethod
    def from_env(cls) -> "EmailConfig":
        return cls(
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=_int_env("SMTP_PORT", "587"),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            from_email=os.getenv("FROM_EMAIL", "leiloes@example.com"),
            from_name=os.getenv("FROM_NAME", "Leilão Tracker"),
            to_email=os.getenv("NOTIFY_TO", ""),
        )


@dataclass
class AppConfig:
    """Main application configuration."""
    # Where dated snapshots and the override file live
    data_dir: str = "data"
    overrides_file: str = "property-overrides.json"

    # Optional JSON file replacing the built-in neighborhood price table
    price_table_file: str = ""

    # Scraping settings
    request_timeout: int = 30
    request_delay: float = 0.5   # Seconds between listing pages
    detail_delay: float = 1.0    # Seconds between detail pages (avoid 429s)

    # Opportunity criteria
    min_discount: float = 40.0
    max_price: float = 800000.0
    top_n: int = 10

    # Daily schedule (local time)
    schedule_hour: int = 7
    schedule_minute: int = 0

    priority_neighborhoods: list[str] = field(default_factory=lambda: list(PRIORITY_NEIGHBORHOODS))
    target_cities: list[str] = field(default_factory=lambda: list(TARGET_CITIES))

    @property
    def overrides_path(self) -> str:
        return os.path.join(self.data_dir, self.overrides_file)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            data_dir=os.getenv("DATA_DIR", "data"),
            overrides_file=os.getenv("OVERRIDES_FILE", "property-overrides.json"),
            price_table_file=os.getenv("PRICE_TABLE_FILE", ""),
            request_timeout=_int_env("REQUEST_TIMEOUT", "30"),
            request_delay=_float_env("REQUEST_DELAY", "0.5"),
            detail_delay=_float_env("DETAIL_DELAY", "1.0"),
            min_discount=_float_env("MIN_DISCOUNT", "40"),
            max_price=_float_env("MAX_PRICE", "800000"),
            top_n=_int_env("TOP_N", "10"),
            schedule_hour=_int_env("SCHEDULE_HOUR", "7"),
            schedule_minute=_int_env("SCHEDULE_MINUTE", "0"),
        )


def _int_env(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


# Global configuration instances (lazy loaded)
_email_config: Optional[EmailConfig] = None
_app_config: Optional[AppConfig] = None


def get_email_config() -> EmailConfig:
    """Get email configuration (cached)."""
    global _email_config
    if _email_config is None:
        _email_config = EmailConfig.from_env()
    return _email_config


def get_app_config() -> AppConfig:
    """Get app configuration (cached)."""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config
