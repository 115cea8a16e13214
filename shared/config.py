"""
Shared configuration management for the report gateway.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


LOG_FORMATS = ("json", "console")


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="REPORTS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_format: str = Field(default="json")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    read_timeout: float = Field(default=10.0, description="Seconds allowed to receive a request body")
    write_timeout: float = Field(default=10.0, description="Per-request deadline for upstream work")
    idle_timeout: float = Field(default=60.0, description="Keep-alive timeout for idle connections")


class ServiceConfig(BaseConfig):
    """Report service configuration."""

    service_name: str = "reports"

    # Upstream API
    upstream_base_url: str = Field(default="http://localhost:5007/api/v1")
    upstream_identity: str = Field(default="")
    upstream_secret: str = Field(default="", repr=False)
    upstream_warm_login: bool = Field(default=False)
    entity_path: str = Field(default="/students")
    request_timeout: float = Field(default=30.0)
    health_timeout: float = Field(default=5.0)
    retry_attempts: int = Field(default=3)
    retry_delay: float = Field(default=1.0)

    # Report artifacts
    output_dir: str = Field(default="./reports")
    max_file_size: int = Field(default=10 * 1024 * 1024)
    cleanup_enabled: bool = Field(default=True)
    cleanup_after: float = Field(default=24 * 60 * 60)
    cleanup_interval: float = Field(default=60 * 60)
    watermark_text: str = Field(default="Student Management System - Confidential")

    def validate_required(self) -> "ServiceConfig":
        """Raise ConfigurationError when the service cannot start with these settings."""
        missing = [
            name for name in ("upstream_identity", "upstream_secret")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigurationError(
                "Service credentials not configured",
                details={"missing": missing}
            )

        for name in ("request_timeout", "health_timeout", "read_timeout", "write_timeout", "idle_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive", details={"field": name})

        if self.retry_attempts < 0 or self.retry_delay < 0:
            raise ConfigurationError("Retry settings must not be negative")

        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                f"Unknown log format: {self.log_format}",
                details={"allowed": list(LOG_FORMATS)}
            )
        return self


def get_config(**overrides) -> ServiceConfig:
    """Load configuration from the environment, applying explicit overrides."""
    return ServiceConfig(**overrides)
