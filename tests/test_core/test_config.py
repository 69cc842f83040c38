"""Tests for src/core/config.py — YAML loading, defaults, SecretStr, thresholds."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from src.core.config import (
    DiscordConfig,
    DLQMonitorConfig,
    LoggingConfig,
    ReprocessorConfig,
    Settings,
    get_settings,
    load_settings,
    reset_settings,
)
from src.core.types import OperationKind, OperationThresholds, PerformanceThresholds


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    """Reset the global settings cache before each test."""
    reset_settings()


class TestDefaults:
    """Settings should have sensible defaults when no YAML is provided."""

    def test_default_dlq_monitor_config(self) -> None:
        cfg = DLQMonitorConfig()
        assert cfg.interval_secs == 60
        assert cfg.message_count_threshold == 10
        assert cfg.oldest_message_age_hours == 2
        assert cfg.message_rate_per_minute == 5
        assert cfg.rate_window_secs == 300
        assert cfg.rate_divisor == 60.0

    def test_default_reprocessor_config(self) -> None:
        cfg = ReprocessorConfig()
        assert cfg.max_receive_count == 5
        assert cfg.batch_size == 5
        assert cfg.inter_batch_delay_secs == 1.0
        assert cfg.required_event_fields == ["eventType", "bookId", "userId"]

    def test_default_logging_config(self) -> None:
        cfg = LoggingConfig()
        assert cfg.level == "INFO"
        assert cfg.format == "json"

    def test_default_settings(self) -> None:
        s = Settings()
        assert s.aws.region == "us-east-1"
        assert s.queues.backend == "sqs"
        assert s.metrics.dlq_namespace == "NotificationSystem/DLQ"
        assert s.metrics.source_namespace == "AWS/SQS"
        assert s.alerts.sns.enabled is False

    def test_default_thresholds(self) -> None:
        t = Settings().performance.thresholds
        assert t.event_processing.warning_ms == 5000
        assert t.event_processing.escalation_ms == 10000
        assert t.event_processing.critical_ms == 30000
        assert (t.delivery.warning_ms, t.delivery.critical_ms) == (3000, 10000)
        assert (t.batch_processing.warning_ms, t.batch_processing.critical_ms) == (10000, 60000)
        assert (t.fan_out_publish.warning_ms, t.fan_out_publish.critical_ms) == (2000, 5000)


class TestYamlLoading:
    """Settings should load correctly from YAML files."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "queues": {
                "backend": "memory",
                "dlq_url": "https://sqs.example/123/orders-dlq",
            },
            "dlq_monitor": {"message_count_threshold": 25, "interval_secs": 5},
            "performance": {
                "thresholds": {"delivery": {"warning_ms": 100, "critical_ms": 200}},
            },
            "logging": {"level": "DEBUG", "format": "console"},
        }
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump(config_data))

        settings = load_settings(config_file)

        assert settings.queues.backend == "memory"
        assert settings.queues.dlq_url.endswith("orders-dlq")
        assert settings.dlq_monitor.message_count_threshold == 25
        assert settings.dlq_monitor.interval_secs == 5
        assert settings.performance.thresholds.delivery.warning_ms == 100
        # Untouched kinds keep their defaults
        assert settings.performance.thresholds.fan_out_publish.critical_ms == 5000
        assert settings.logging.level == "DEBUG"

    def test_load_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.reprocessor.max_receive_count == 5

    def test_load_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        settings = load_settings(config_file)
        assert settings.dlq_monitor.rate_window_secs == 300

    def test_get_settings_caches(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump({"aws": {"region": "eu-west-1"}}))
        loaded = load_settings(config_file)
        assert get_settings() is loaded
        assert get_settings().aws.region == "eu-west-1"


class TestThresholdValidation:
    def test_critical_below_warning_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OperationThresholds(warning_ms=500, critical_ms=100)

    def test_escalation_outside_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OperationThresholds(warning_ms=100, critical_ms=500, escalation_ms=900)

    def test_thresholds_are_frozen(self) -> None:
        t = PerformanceThresholds()
        with pytest.raises(ValidationError):
            t.delivery = OperationThresholds(warning_ms=1, critical_ms=2)  # type: ignore[misc]

    def test_for_kind(self) -> None:
        t = PerformanceThresholds()
        assert t.for_kind(OperationKind.FAN_OUT_PUBLISH) is t.fan_out_publish


class TestSecretStr:
    """Sensitive fields should use SecretStr to prevent leaking."""

    def test_secret_str_repr_does_not_leak(self) -> None:
        cfg = DiscordConfig(
            enabled=True,
            webhook_url="https://discord.example/hook/secret-token",  # type: ignore[arg-type]
        )
        assert "secret-token" not in repr(cfg)
        assert cfg.webhook_url.get_secret_value().endswith("secret-token")
