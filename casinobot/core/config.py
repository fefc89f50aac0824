"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./casinobot.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None


class LedgerSettings(BaseModel):
    daily_min_reward: int = Field(default=50, ge=1)
    daily_max_reward: int = Field(default=150, ge=1)
    daily_cooldown_seconds: int = 24 * 60 * 60


class BlackjackSettings(BaseModel):
    deck_count: int = Field(default=6, ge=1)
    session_ttl_seconds: float = Field(default=10 * 60, gt=0)
    sweep_interval_seconds: float = Field(default=30, gt=0)
    game_type: str = "blackjack"


class BiasSettings(BaseModel):
    base_win_rate: float = 0.5
    loss_increment: float = 0.08
    max_win_rate: float = 0.75
    max_reroll_chance: float = 0.5


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CASINOBOT_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "casinobot"

    database: DatabaseSettings = DatabaseSettings()
    ledger: LedgerSettings = LedgerSettings()
    blackjack: BlackjackSettings = BlackjackSettings()
    bias: BiasSettings = BiasSettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def session_ttl(self) -> float:
        return self.blackjack.session_ttl_seconds


@lru_cache()
def get_settings() -> Settings:
    return Settings()
