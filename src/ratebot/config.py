"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """SQLite storage location for price history and subscriptions."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/ratebot.db"


class PriceSourceSettings(BaseSettings):
    """Public exchange ticker source used by the ingestion cycle."""

    model_config = SettingsConfigDict(env_prefix="SOURCE_")

    exchange_id: str = "binance"
    quote_currency: str = "USDT"
    timeout_seconds: float = 8.0


class SchedulerSettings(BaseSettings):
    """Periods for the ingestion and dispatch tick loops.

    work_timeout_seconds bounds every single unit of work so a hung
    dependency degrades one tick instead of stalling the loop.
    """

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    ingest_enabled: bool = True
    dispatch_enabled: bool = True
    ingest_interval_seconds: float = 300.0
    dispatch_interval_seconds: float = 60.0
    work_timeout_seconds: float = 20.0


class DispatchSettings(BaseSettings):
    """Digest dispatch parameters."""

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")

    snapshot_timeout_seconds: float = 4.0  # independent of the tick timeout
    max_concurrent_sends: int = 5


class TelegramSettings(BaseSettings):
    """Telegram bot connection and command settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    default_auto_interval: int = 10  # minutes
    request_timeout_seconds: float = 8.0
    poll_timeout_seconds: int = 10
    command_timeout_seconds: float = 3.0


class HttpSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="HTTP_")

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    tracked_symbols: list[str] = ["BTC", "ETH"]
    storage: StorageSettings = StorageSettings()
    source: PriceSourceSettings = PriceSourceSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    dispatch: DispatchSettings = DispatchSettings()
    telegram: TelegramSettings = TelegramSettings()
    http: HttpSettings = HttpSettings()

    @property
    def canonical_symbols(self) -> list[str]:
        """Tracked symbols normalized to uppercase, de-duplicated, sorted."""
        return sorted({s.strip().upper() for s in self.tracked_symbols if s.strip()})
