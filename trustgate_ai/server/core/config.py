"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
#
# Views over the flat ``Settings`` fields. Defaults and constraints live on
# ``Settings`` only; every field here is required and is filled from
# ``Settings.model_dump(by_alias=True)``.
# =====================================================================


class PolicyFileConfig(BaseModel):
    """Policy document persistence configuration."""

    path: str = Field(alias="TRUSTGATE_POLICY_FILE")
    reports_dir: str = Field(alias="TRUSTGATE_REPORTS_DIR")
    backup: bool = Field(alias="TRUSTGATE_POLICY_BACKUP")

    model_config = {"populate_by_name": True}


class AuditConfig(BaseModel):
    """Audit log configuration."""

    directory: str = Field(alias="TRUSTGATE_AUDIT_DIR")
    retention_days: int = Field(alias="TRUSTGATE_AUDIT_RETENTION_DAYS")

    model_config = {"populate_by_name": True}


class MetricsSettings(BaseModel):
    """Metrics collector configuration."""

    directory: str | None = Field(alias="TRUSTGATE_METRICS_DIR")
    retention_days: int = Field(alias="TRUSTGATE_METRICS_RETENTION_DAYS")
    queue_size: int = Field(alias="TRUSTGATE_METRICS_QUEUE_SIZE")
    rolling_window: int = Field(alias="TRUSTGATE_METRICS_ROLLING_WINDOW")
    alert_threshold_ms: float = Field(alias="TRUSTGATE_METRICS_ALERT_THRESHOLD_MS")
    fast_threshold_ms: float = Field(alias="TRUSTGATE_METRICS_FAST_THRESHOLD_MS")
    slow_threshold_ms: float = Field(alias="TRUSTGATE_METRICS_SLOW_THRESHOLD_MS")

    model_config = {"populate_by_name": True}


class SecurityConfig(BaseModel):
    """Security event log configuration."""

    directory: str | None = Field(alias="TRUSTGATE_SECURITY_DIR")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # TrustGate-AI Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="TrustGate-AI server host address to bind to",
        alias="TRUSTGATE_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="TrustGate-AI server port number",
        alias="TRUSTGATE_SERVER_PORT",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="TRUSTGATE_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log format (simple, detailed, json)",
        alias="TRUSTGATE_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file when file logging is enabled",
        alias="TRUSTGATE_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Write logs to <log_file_dir>/trustgate_ai.log as well as the console",
        alias="TRUSTGATE_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Policy / Audit / Metrics / Security (flat env bindings, grouped below)
    # =====================================================================
    policy_file: str = Field(
        default=".trustgate/trust-policy.json",
        alias="TRUSTGATE_POLICY_FILE",
        description="Path of the JSON policy document",
    )
    reports_dir: str = Field(
        default=".trustgate/reports",
        alias="TRUSTGATE_REPORTS_DIR",
        description="Directory for policy update markdown reports",
    )
    policy_backup: bool = Field(
        default=True,
        alias="TRUSTGATE_POLICY_BACKUP",
        description="Keep a timestamped backup when the policy file is overwritten",
    )

    audit_dir: str = Field(
        default=".trustgate/audit", alias="TRUSTGATE_AUDIT_DIR", description="Directory for daily audit JSONL files"
    )
    audit_retention_days: int = Field(
        default=30, ge=1, alias="TRUSTGATE_AUDIT_RETENTION_DAYS", description="Days to keep audit records"
    )

    metrics_dir: str | None = Field(
        default=".trustgate/metrics",
        alias="TRUSTGATE_METRICS_DIR",
        description="Directory for daily metrics JSONL files (unset to keep metrics in memory only)",
    )
    metrics_retention_days: int = Field(
        default=30,
        ge=1,
        alias="TRUSTGATE_METRICS_RETENTION_DAYS",
        description="Days of metrics kept in memory and on disk; also the audit window replayed at startup",
    )
    metrics_queue_size: int = Field(
        default=10000, ge=1, alias="TRUSTGATE_METRICS_QUEUE_SIZE", description="Capacity of the metrics ingest queue"
    )
    metrics_rolling_window: int = Field(
        default=10, ge=1, alias="TRUSTGATE_METRICS_ROLLING_WINDOW", description="Samples in the rolling average"
    )
    metrics_alert_threshold_ms: float = Field(
        default=100.0,
        gt=0,
        alias="TRUSTGATE_METRICS_ALERT_THRESHOLD_MS",
        description="Rolling average processing time that raises an alert",
    )
    metrics_fast_threshold_ms: float = Field(
        default=50.0, alias="TRUSTGATE_METRICS_FAST_THRESHOLD_MS", description="Upper bound of the fast bucket"
    )
    metrics_slow_threshold_ms: float = Field(
        default=100.0, alias="TRUSTGATE_METRICS_SLOW_THRESHOLD_MS", description="Lower bound of the slow bucket"
    )

    security_dir: str | None = Field(
        default=".trustgate/security",
        alias="TRUSTGATE_SECURITY_DIR",
        description="Directory for daily security event JSONL files (unset to keep events in memory only)",
    )

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def policy(self) -> PolicyFileConfig:
        """Get policy file configuration from environment variables."""
        return PolicyFileConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def audit(self) -> AuditConfig:
        """Get audit configuration from environment variables."""
        return AuditConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def metrics(self) -> MetricsSettings:
        """Get metrics configuration from environment variables."""
        return MetricsSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def security(self) -> SecurityConfig:
        """Get security event configuration from environment variables."""
        return SecurityConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
