from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from rackops.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Rack Operations API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Warehouse rack operations: supply (put-away), kanban picking, kobetsu picking, "
            "stock adjustment and the stock ledger."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, load the sample BOM and admin profile after migrations.",
    )

    # Tokens are issued by the identity platform; we only verify them.
    JWT_SECRET_KEY: str = Field(default="change-me", description="Shared HS256 secret of the identity platform")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_AUDIENCE: Optional[str] = Field(default=None, description="Expected 'aud' claim, if the platform sets one")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, description="Lifetime of development tokens")

    # Rack operations
    LABEL_PART_MATCH_POLICY: Literal["first", "exact"] = Field(
        default="first",
        description=(
            "How a part number is chosen among the tokens of a version 1 label: "
            "'first' takes the first token that cleans to 10 characters, 'exact' prefers "
            "a token that is already 10 characters before cleaning."
        ),
    )
    DEFAULT_MAX_CAPACITY: int = Field(
        default=100, description="max_capacity for inventory rows created by a first supply"
    )
    SESSION_TTL_MINUTES: int = Field(
        default=240, description="Idle workflow sessions older than this are discarded"
    )

    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.
    """
    return AppSettings()
