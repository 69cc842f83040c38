"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr

from src.core.types import PerformanceThresholds

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class AwsConfig(BaseModel):
    """AWS client configuration shared by the SQS, CloudWatch and SNS adapters."""

    region: str = "us-east-1"
    endpoint_url: str | None = None  # e.g. http://localhost:4566 for LocalStack


class QueuesConfig(BaseModel):
    """Primary notification queue and its dead-letter queue."""

    backend: str = "sqs"  # "sqs" or "memory"
    dlq_url: str = ""
    primary_url: str = ""


class MetricsConfig(BaseModel):
    """Metrics sink configuration."""

    backend: str = "cloudwatch"  # "cloudwatch" or "memory"
    dlq_namespace: str = "NotificationSystem/DLQ"
    performance_namespace: str = "NotificationSystem/Performance"
    source_namespace: str = "AWS/SQS"


class PerformanceConfig(BaseModel):
    """Latency thresholds per operation kind and memory alert levels."""

    thresholds: PerformanceThresholds = PerformanceThresholds()
    memory_warning_pct: float = 75.0
    memory_critical_pct: float = 90.0


class DLQMonitorConfig(BaseModel):
    """DLQ polling interval and alert thresholds."""

    interval_secs: float = 60.0
    message_count_threshold: float = 10
    oldest_message_age_hours: float = 2.0
    message_rate_per_minute: float = 5.0
    rate_window_secs: int = 300
    # Per-window depth increase is divided by this to get the per-minute rate.
    rate_divisor: float = 60.0
    history_hours: int = 24


class ReprocessorConfig(BaseModel):
    """DLQ redrive safety controls."""

    max_receive_count: int = 5
    batch_size: int = 5
    inter_batch_delay_secs: float = 1.0
    receive_batch_size: int = 10
    receive_wait_secs: int = 1
    report_dir: str = "reports"
    required_event_fields: list[str] = ["eventType", "bookId", "userId"]


class SnsConfig(BaseModel):
    """SNS topic used as the operational alert channel."""

    enabled: bool = False
    topic_arn: str = ""


class DiscordConfig(BaseModel):
    """Discord webhook alert channel."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")


class AlertsConfig(BaseModel):
    """Alert dispatch configuration."""

    throttle_secs: float = 0.0
    sns: SnsConfig = SnsConfig()
    discord: DiscordConfig = DiscordConfig()


class DashboardConfig(BaseModel):
    """HTTP health/dashboard endpoint."""

    host: str = "127.0.0.1"
    port: int = 8080
    username: str = ""
    password: SecretStr = SecretStr("")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    service: str = "notification-reliability"


class Settings(BaseModel):
    """Root settings container."""

    aws: AwsConfig = AwsConfig()
    queues: QueuesConfig = QueuesConfig()
    metrics: MetricsConfig = MetricsConfig()
    performance: PerformanceConfig = PerformanceConfig()
    dlq_monitor: DLQMonitorConfig = DLQMonitorConfig()
    reprocessor: ReprocessorConfig = ReprocessorConfig()
    alerts: AlertsConfig = AlertsConfig()
    dashboard: DashboardConfig = DashboardConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
