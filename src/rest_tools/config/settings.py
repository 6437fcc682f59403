"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "rest-tools"
    config_path: str = ""
    request_timeout_s: float = Field(default=30.0, gt=0)
    strict_arguments: bool = False
    max_log_body_chars: int = Field(default=1000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="REST_TOOLS_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_config_path(self) -> Path | None:
        if not self.config_path.strip():
            return None
        return Path(self.config_path).expanduser().resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
