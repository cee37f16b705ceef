"""
Operator configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbaas_operator import __version__


class Settings(BaseSettings):
    """Main operator settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="dbaas-operator", description="Application name")
    app_version: str = Field(default=__version__, description="Application version")
    environment: str = Field(default="development", description="Environment (development/testing/staging/production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Provisioning API
    api_token: str = Field(default="", description="Bearer token for the provisioning API")
    api_url: str = Field(default="https://api.digitalocean.com", description="Base URL of the provisioning API")
    api_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout for provisioning API calls")
    use_fake_gateway: bool = Field(default=False, description="Use the in-memory provisioning API (local development only)")

    # Desired-state store
    store_backend: str = Field(default="kubernetes", description="Desired-state store backend (kubernetes/memory)")
    kubeconfig_path: Optional[str] = Field(
        default=None, description="Path to kubeconfig file (None for in-cluster)"
    )
    watch_namespace: Optional[str] = Field(
        default=None, description="Namespace to watch (None for all namespaces)"
    )
    api_group: str = Field(default="databases.digitalocean.com", description="Custom resource API group")
    api_version: str = Field(default="v1alpha1", description="Custom resource API version")

    # Reconciliation
    finalizer_name: str = Field(default="databases.digitalocean.com", description="Finalizer added to owned records")
    field_manager: str = Field(default="dbaas-operator", description="Field manager used when applying artifacts")
    dependency_retry_interval: float = Field(
        default=30.0, gt=0, description="Seconds to wait for a referenced cluster that is still creating"
    )
    reference_refresh_interval: float = Field(
        default=300.0, gt=0, description="Seconds between refreshes of reference records"
    )
    owned_refresh_interval: float = Field(
        default=300.0, gt=0, description="Seconds between refreshes of databases and users"
    )
    cluster_creating_interval: float = Field(default=30.0, gt=0, description="Cluster re-check while creating")
    cluster_online_interval: float = Field(default=300.0, gt=0, description="Cluster re-check while online")
    cluster_default_interval: float = Field(default=60.0, gt=0, description="Cluster re-check otherwise")
    max_concurrent_reconciles: int = Field(default=2, ge=1, le=64, description="Concurrent reconciles per kind")
    backoff_base_delay: float = Field(default=0.5, gt=0, description="Initial retry delay after a failed reconcile")
    backoff_max_delay: float = Field(default=300.0, gt=0, description="Maximum retry delay after failed reconciles")

    # Leader election
    leader_election_enabled: bool = Field(default=False, description="Only reconcile while holding the Redis lease")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, le=100, description="Redis max connections")
    leader_lease_duration: int = Field(default=30, ge=5, le=300, description="Leader lease duration in seconds")

    # Probes and metrics
    probe_host: str = Field(default="0.0.0.0", description="Health/metrics server host")
    probe_port: int = Field(default=8081, ge=1, le=65535, description="Health/metrics server port")
    prometheus_enabled: bool = Field(default=True, description="Expose Prometheus metrics")

    # Sentry
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")
    sentry_traces_sample_rate: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Sentry traces sample rate"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "testing", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Validate store backend."""
        valid_backends = ["kubernetes", "memory"]
        if v.lower() not in valid_backends:
            raise ValueError(f"Store backend must be one of {valid_backends}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def resource_api_version(self) -> str:
        """apiVersion string of the managed custom resources."""
        return f"{self.api_group}/{self.api_version}"


# Global settings instance
settings = Settings()
