from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field, PositiveFloat, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RAGJOBS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "RagJobs"
    environment: str = "production"
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    log_level: str = "INFO"
    log_json: bool = False
    log_to_file: bool = False

    state_root: Path = Field(default=Path("/state"))
    database_url: str | None = None

    api_base_url: str = "http://localhost:5000"
    request_timeout_seconds: PositiveFloat | None = None

    notification_ttl_seconds: PositiveFloat = 10.0
    recover_on_startup: bool = True

    @field_validator("state_root", mode="before")
    @classmethod
    def _normalize_path(cls, value: str | Path) -> Path:
        raw = str(value)
        if "~" in raw:
            raise ValueError("Home expansion syntax is not allowed in paths")
        if "$" in raw:
            raise ValueError("Environment variable syntax is not allowed in paths")
        path = Path(raw)
        if not path.is_absolute():
            raise ValueError("Path settings must be absolute")
        return path

    @model_validator(mode="after")
    def _validate_runtime_constraints(self) -> "Settings":
        self.state_root = self.state_root.resolve(strict=False)
        self.state_root.mkdir(parents=True, exist_ok=True)

        normalized_level = self.log_level.upper().strip()
        if normalized_level not in SUPPORTED_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(SUPPORTED_LOG_LEVELS)}")
        self.log_level = normalized_level

        parsed = urlparse(self.api_base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("api_base_url must include an http(s) scheme and host")
        self.api_base_url = self.api_base_url.rstrip("/")

        return self

    @property
    def effective_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        db_path = self.state_root / "ragjobs.sqlite3"
        return f"sqlite:///{db_path.as_posix()}"

    @property
    def log_file_path(self) -> Path:
        return self.state_root / "logs" / "ragjobs.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
