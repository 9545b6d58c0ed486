"""应用配置。"""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.errors import ConfigurationError


_WEAK_SECRETS = {"change-me", "super-secret", "secret"}


class Settings(BaseSettings):
    # Always load `backend/.env` no matter where uvicorn is started from.
    _backend_env_file = (Path(__file__).resolve().parents[2] / ".env").as_posix()
    model_config = SettingsConfigDict(
        env_file=_backend_env_file,
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "Library Uploads Backend"
    app_env: str = Field(default="development", validation_alias="APP_ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # The Next.js deployment used NEXT_* names; accept both so one .env serves both sides.
    imagekit_public_key: str = Field(
        ..., validation_alias=AliasChoices("IMAGEKIT_PUBLIC_KEY", "NEXT_IMAGE_KIT_PUBLIC_KEY")
    )
    imagekit_private_key: str = Field(
        ..., validation_alias=AliasChoices("IMAGEKIT_PRIVATE_KEY", "NEXT_IMAGE_KIT_PRIVATE_KEY")
    )
    imagekit_url_endpoint: str = Field(
        ..., validation_alias=AliasChoices("IMAGEKIT_URL_ENDPOINT", "NEXT_IMAGE_KIT_URL_ENDPOINT")
    )
    api_endpoint: str = Field(..., validation_alias=AliasChoices("API_ENDPOINT", "NEXT_PUBLIC_API_ENDPOINT"))
    imagekit_upload_url: str = Field(
        default="https://upload.imagekit.io/api/v1/files/upload",
        validation_alias="IMAGEKIT_UPLOAD_URL",
    )
    # ImageKit rejects expiries more than one hour ahead.
    imagekit_grant_ttl: int = Field(default=1800, ge=1, le=3600, validation_alias="IMAGEKIT_GRANT_TTL")

    # Comma-separated, e.g. "https://library.example.com,http://localhost:3000".
    cors_allow_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOW_ORIGINS")

    database_url: str = Field(default="sqlite:///./library.db", validation_alias="DATABASE_URL")
    jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
    jwt_access_token_expires: int = Field(default=30 * 24 * 3600, validation_alias="JWT_ACCESS_TOKEN_EXPIRES")
    protected_path_prefixes: str = Field(default="/admin,/dashboard", validation_alias="PROTECTED_PATH_PREFIXES")

    @field_validator("imagekit_public_key", "imagekit_private_key", "imagekit_url_endpoint", "api_endpoint")
    @classmethod
    def _require_non_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _check_production(self) -> "Settings":
        if self.is_production and self.jwt_secret_key.strip().lower() in _WEAK_SECRETS:
            raise ValueError("JWT_SECRET_KEY must be set to a strong value in production")
        return self

    @property
    def is_production(self) -> bool:
        return (self.app_env or "").strip().lower() in {"prod", "production"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    @property
    def protected_prefixes(self) -> list[str]:
        return [p.strip() for p in self.protected_path_prefixes.split(",") if p.strip()]


def load_settings(**overrides) -> Settings:
    """Build and validate settings, converting validation problems into ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = ", ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'settings'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
