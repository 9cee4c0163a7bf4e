"""
Configuration for the pricing simulator backend.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def _get_default_db_path() -> Path:
    """Get default database path relative to project root."""
    # backend/app/config.py -> project root is three levels up
    config_file = Path(__file__)
    project_root = config_file.parent.parent.parent
    return project_root / "data" / "simulator.sqlite"


class Settings(BaseSettings):
    sqlite_path: Path = Field(default_factory=_get_default_db_path, alias="SQLITE_PATH")
    tax_rate: Decimal = Field(default=Decimal("0.10"), alias="TAX_RATE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def convert_path(cls, v):
        """Convert string to Path if needed."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("tax_rate", mode="before")
    @classmethod
    def convert_tax_rate(cls, v):
        """Go through str so a float env value never leaks binary rounding."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
