"""Tests for centralized configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from rotation_core.config import (
    AppConfig,
    FeatureFlags,
    LoggingConfig,
    ProcessingConfig,
    QueueConfig,
    SecurityConfig,
    get_config,
    reset_config,
    set_config,
)
from rotation_core.constants import Limits, LogLevel


class TestQueueConfig:
    """Test QueueConfig model."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            config = QueueConfig()
        assert config.connection_string == ""
        assert config.logs_queue_name == "logs-queue"

    def test_from_env(self):
        with patch.dict(os.environ, {"AzureWebJobsStorage": "DefaultEndpointsProtocol=https;..."}):
            config = QueueConfig()
            assert config.connection_string == "DefaultEndpointsProtocol=https;..."


class TestLoggingConfig:
    """Test LoggingConfig model."""

    def test_default_level(self):
        with patch.dict(os.environ, {}, clear=True):
            assert LoggingConfig().level == LogLevel.INFO.value

    def test_level_is_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="LOUD")


class TestFeatureFlags:
    def test_logs_queue_disabled_by_default(self):
        with patch.dict(os.environ, {}, clear=True):
            flags = FeatureFlags()
        assert flags.enable_logs_queue is False
        assert flags.enable_transition_history is True

    def test_logs_queue_from_env(self):
        with patch.dict(os.environ, {"ENABLE_LOGS_QUEUE": "true"}):
            assert FeatureFlags().enable_logs_queue is True


class TestProcessingConfig:
    """Test reconciliation defaults."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = ProcessingConfig()
        assert config.max_read_attempts == Limits.MAX_READ_ATTEMPTS
        assert config.provisioning_timeout == Limits.DEFAULT_TIMEOUT_SECONDS
        assert config.lock_ttl_seconds == Limits.DEFAULT_LOCK_TTL_SECONDS

    def test_from_env(self):
        env = {
            "PROVISIONING_TIMEOUT_SECONDS": "12.5",
            "RECONCILIATION_LOCK_TTL_SECONDS": "60",
        }
        with patch.dict(os.environ, env):
            config = ProcessingConfig()
        assert config.provisioning_timeout == 12.5
        assert config.lock_ttl_seconds == 60

    def test_timeout_upper_bound(self):
        with pytest.raises(PydanticValidationError):
            ProcessingConfig(provisioning_timeout=Limits.MAX_TIMEOUT_SECONDS + 1)


class TestSecurityConfig:
    def test_encryption_key_from_env(self):
        with patch.dict(os.environ, {"ROTATION_ENCRYPTION_KEY": "k-123"}):
            assert SecurityConfig().encryption_key == "k-123"


class TestAppConfig:
    """Test the global configuration accessors."""

    def test_sub_configs_present(self):
        config = AppConfig()
        assert isinstance(config.queue, QueueConfig)
        assert isinstance(config.logging, LoggingConfig)
        assert isinstance(config.features, FeatureFlags)
        assert isinstance(config.security, SecurityConfig)
        assert isinstance(config.processing, ProcessingConfig)

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_and_reset(self):
        custom = AppConfig(debug=True)
        set_config(custom)
        assert get_config() is custom

        reset_config()
        assert get_config() is not custom
