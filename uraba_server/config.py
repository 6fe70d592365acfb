# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Configuration for the Uraba tracking server."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # "production" requires TLS on the database connection
    node_env: str = "development"

    # Database: DATABASE_URL wins; otherwise the discrete DB_* values are used
    database_url: str | None = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "logistica_uraba"
    db_user: str = "postgres"
    db_password: str = "admin"

    # JWT
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 10080  # 7 days

    # One-time codes and verified sessions
    verification_code_ttl_minutes: int = Field(default=5, ge=2, le=5)
    verified_session_ttl_hours: int = 24
    token_sweep_interval_seconds: float = 3600

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    # CORS: comma-separated origins, or "*" for allow all
    cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"
    # Key rate limits on X-Forwarded-For; enable only behind a proxy that sets it
    trust_proxy_headers: bool = False

    # Email (access codes, verification links)
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from: str = "noreply@logistica-uraba.local"
    app_base_url: str = "http://localhost:3001"

    # Public tracking page encoded into package QR codes
    tracking_base_url: str = "http://localhost:3000"

    @property
    def is_production(self) -> bool:
        return self.node_env.strip().lower() == "production"

    @property
    def sqlalchemy_database_url(self) -> str:
        """Async SQLAlchemy URL, normalising plain postgres:// URLs to asyncpg."""
        if self.database_url:
            url = self.database_url
            for prefix in ("postgres://", "postgresql://"):
                if url.startswith(prefix):
                    return "postgresql+asyncpg://" + url[len(prefix):]
            return url
        return URL.create(
            "postgresql+asyncpg",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        ).render_as_string(hide_password=False)


settings = Settings()
