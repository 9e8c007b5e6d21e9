from __future__ import annotations

import os
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_MANAGED_COINS = ["BTC", "ETH", "LTC", "XRP", "BCH", "USDT", "USD", "EUR"]


def _config_file() -> str:
    return os.environ.get("COINRATE_CONFIG_FILE", "conf.json")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COINRATE_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = "0.0.0.0"
    local_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("localPort", "COINRATE_LOCAL_PORT"),
    )
    # Both intervals are milliseconds, as in conf.json.
    coin_list_fetch_interval: int = Field(
        default=60 * 60 * 1000,
        validation_alias=AliasChoices(
            "coinListFetchInterval", "COINRATE_COIN_LIST_FETCH_INTERVAL"
        ),
    )
    coin_data_fetch_interval: int = Field(
        default=60 * 1000,
        validation_alias=AliasChoices(
            "coinDataFetchInterval", "COINRATE_COIN_DATA_FETCH_INTERVAL"
        ),
    )
    managed_coins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MANAGED_COINS),
        validation_alias=AliasChoices("managedCoins", "COINRATE_MANAGED_COINS"),
    )
    pivot_currency: str = Field(
        default="USD",
        validation_alias=AliasChoices("pivotCurrency", "COINRATE_PIVOT_CURRENCY"),
    )

    upstream_base_url: str = "https://min-api.cryptocompare.com"
    upstream_timeout_seconds: float = 10.0
    cryptocompare_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "CRYPTOCOMPARE_API_KEY", "COINRATE_CRYPTOCOMPARE_API_KEY"
        ),
    )

    snapshot_backend: Literal["database", "redis"] = "database"
    database_url: str = Field(
        default="sqlite+aiosqlite://",
        validation_alias=AliasChoices("DATABASE_URL", "COINRATE_DATABASE_URL"),
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "COINRATE_REDIS_URL"),
    )
    redis_snapshot_key: str = "coinrate:snapshots"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(
                settings_cls,
                json_file=settings_cls.model_config.get("json_file") or _config_file(),
            ),
            file_secret_settings,
        )

    @field_validator("local_port", "coin_list_fetch_interval", "coin_data_fetch_interval")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("managed_coins")
    @classmethod
    def _normalize_coins(cls, value: list[str]) -> list[str]:
        coins = [coin.strip().upper() for coin in value if coin and coin.strip()]
        if not coins:
            raise ValueError("at least one managed coin is required")
        return list(dict.fromkeys(coins))

    @field_validator("pivot_currency")
    @classmethod
    def _normalize_pivot(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def coin_list_fetch_interval_seconds(self) -> float:
        return self.coin_list_fetch_interval / 1000

    @property
    def coin_data_fetch_interval_seconds(self) -> float:
        return self.coin_data_fetch_interval / 1000


def load_settings(config_file: str | None = None) -> Settings:
    if not config_file:
        return Settings()

    class FileSettings(Settings):
        model_config = SettingsConfigDict(json_file=config_file)

    return FileSettings()
