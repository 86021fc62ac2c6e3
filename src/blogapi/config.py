"""
Configuration module for the blog site client.

This module uses Pydantic Settings to handle loading environment variables
and application configuration with proper typing and validation.
"""
import json
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blogapi.utils.paths import resolve_path


class LogLevel(str, Enum):
    """Log levels for the application."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class StorageBackend(str, Enum):
    """Where credentials are persisted."""
    SQLITE = "sqlite"
    MEMORY = "memory"


class ApiSettings(BaseModel):
    """Settings for the HTTP access layer."""
    base_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the blog API",
    )
    timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single request attempt in seconds",
        ge=1,
        le=300,
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for 5xx responses",
        ge=0,
        le=10,
    )
    backoff_base_seconds: float = Field(
        default=2.0,
        description="Base of the exponential backoff between retries",
        ge=1.0,
        le=10.0,
    )
    login_path: str = Field(
        default="/login",
        description="Surface to navigate to when the session is no longer authenticated",
    )
    forbidden_path: str = Field(
        default="/forbidden",
        description="Surface to navigate to when access is forbidden",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got: {v!r}")
        return v.rstrip("/")


class StorageSettings(BaseModel):
    """Settings for credential persistence."""
    backend: StorageBackend = Field(
        default=StorageBackend.SQLITE,
        description="Credential storage backend",
    )
    credentials_db_path: Optional[Path] = Field(
        default=None,
        description="Path to the SQLite credential database (defaults to <data_dir>/credentials.db)",
    )


class FeatureSettings(BaseModel):
    """Feature flags - toggle features on/off."""
    enable_google_sso: bool = False
    enable_github_sso: bool = False
    enable_apple_sso: bool = False
    enable_email_auth: bool = True
    enable_blog_tracking: bool = True
    enable_profile_editing: bool = True

    def is_feature_enabled(self, feature: str) -> bool:
        """Check if a feature is enabled by its short name (e.g. ``email_auth``)."""
        name = feature if feature.startswith("enable_") else f"enable_{feature}"
        if name not in type(self).model_fields:
            raise KeyError(f"Unknown feature: {feature}")
        return bool(getattr(self, name))

    def is_any_sso_enabled(self) -> bool:
        return self.enable_google_sso or self.enable_github_sso or self.enable_apple_sso


class AppSettings(BaseModel):
    """Main application settings."""
    app_name: str = Field(
        default="Blog Site Client",
        description="Name of the application",
    )
    version: str = Field(
        default="1.0.0",
        description="Application version",
    )
    environment: Environment = Field(
        default=Environment.PRODUCTION,
        description="Application environment",
    )
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory for application data",
    )

    @property
    def is_development(self) -> bool:
        return self.environment != Environment.PRODUCTION


class Settings(BaseSettings):
    """Root settings class combining all application settings."""
    model_config = SettingsConfigDict(
        env_prefix="BLOGAPI_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)

    @property
    def credentials_db_path(self) -> Path:
        """Resolved path of the credential database."""
        if self.storage.credentials_db_path:
            return resolve_path(self.storage.credentials_db_path)
        return resolve_path(self.app.data_dir) / "credentials.db"

    @classmethod
    def from_json(cls, file_path: Union[str, Path]) -> "Settings":
        """Load settings from a JSON file."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")

        with open(file_path, "r") as f:
            config_data = json.load(f)

        return cls.model_validate(config_data)

    def save_to_json(self, file_path: Union[str, Path]) -> None:
        """Save settings to a JSON file."""
        file_path = Path(file_path)

        if not file_path.parent.exists():
            file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(mode="json", exclude_none=True)

        with open(file_path, "w") as f:
            json.dump(config_dict, f, indent=2)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, initializing if necessary."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(file_path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a file or environment variables."""
    global _settings

    if file_path:
        _settings = Settings.from_json(file_path)
    else:
        _settings = Settings()

    return _settings
