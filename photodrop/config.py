# config.py - Settings for the upload server and the sync client
# Values come from environment variables (PHOTODROP_*) or a local .env file

from pathlib import Path
from typing import Literal, Optional
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Per-environment API base URLs used when PHOTODROP_API_URL is not set
ENVIRONMENT_URLS = {
    "development": "http://localhost:3001",
}

IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".gif", ".webp"]

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────

class ServerSettings(BaseSettings):
    APP_NAME: str = "Photodrop Upload Server"
    UPLOAD_DIR: Path = Path("./uploads")
    MAX_FILE_SIZE: int = MAX_FILE_SIZE
    ALLOWED_EXTENSIONS: list[str] = Field(default_factory=lambda: list(IMAGE_EXTENSIONS))
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])
    # The reference server delayed every upload by 1-3s; off unless asked for
    UPLOAD_DELAY_SECONDS: float = 0.0
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="PHOTODROP_", env_file=".env", extra="ignore")


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────

class ClientSettings(BaseSettings):
    ENV: Literal["development", "production"] = "development"
    API_URL: Optional[str] = None
    STORE_PATH: Path = Path("./photodrop-data")
    MAX_FILE_SIZE: int = MAX_FILE_SIZE
    CONNECT_TIMEOUT: float = 5.0
    READ_TIMEOUT: float = 60.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="PHOTODROP_", env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def resolve_api_url(self) -> "ClientSettings":
        if self.API_URL is None:
            if self.ENV not in ENVIRONMENT_URLS:
                raise ValueError(f"PHOTODROP_API_URL is required when ENV={self.ENV}")
            self.API_URL = ENVIRONMENT_URLS[self.ENV]
        self.API_URL = self.API_URL.rstrip("/")
        return self
