from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SITEBIND_", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="")

    database_url: str = Field(default="sqlite:///./sitebind.db")
    websites_dir: str = Field(default="./websites")

    upstream_timeout_sec: float = Field(default=15.0, ge=0.5, le=300.0)
    cors_allow_origins: str = Field(default="*")

    default_page_size: int = Field(default=50, ge=1, le=500)
    max_page_size: int = Field(default=200, ge=1, le=2000)

    def parsed_cors_allow_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    def websites_path(self) -> Path:
        return Path(self.websites_dir).expanduser().resolve()

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def production_safety_errors(self) -> list[str]:
        if not self.is_production():
            return []

        errors: list[str] = []

        if "*" in self.parsed_cors_allow_origins():
            errors.append("SITEBIND_CORS_ALLOW_ORIGINS must not contain '*' in production")

        if not Path(self.websites_dir).expanduser().is_absolute():
            errors.append("SITEBIND_WEBSITES_DIR must be an absolute path in production")

        if self.database_url.strip().lower().startswith("sqlite"):
            errors.append("SITEBIND_DATABASE_URL must not use sqlite in production")

        return errors


def get_settings() -> Settings:
    return Settings()
