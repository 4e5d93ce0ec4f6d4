"""Tests for configuration validation."""

import pytest

from snapstage.config import Config, Priority, TransferConfig, TransferKind
from snapstage.errors import ConfigError


class TestTransferConfig:
    """Tests for TransferConfig."""

    def test_defaults(self):
        config = TransferConfig()

        assert config.kind is TransferKind.COPY
        assert config.concurrency == 4
        assert config.priority is Priority.NORMAL
        assert config.retry_interval == 60.0
        assert config.retry_timeout == 1200.0

    @pytest.mark.parametrize("concurrency", [0, 11])
    def test_concurrency_range(self, concurrency: int):
        with pytest.raises(ConfigError, match="concurrency"):
            TransferConfig(concurrency=concurrency)

    def test_concurrency_bounds_accepted(self):
        assert TransferConfig(concurrency=1).concurrency == 1
        assert TransferConfig(concurrency=10).concurrency == 10

    def test_retry_interval_minimum(self):
        with pytest.raises(ConfigError, match="retry_interval"):
            TransferConfig(retry_interval=0.5)

    def test_timeout_shorter_than_interval(self):
        with pytest.raises(ConfigError, match="retry_timeout"):
            TransferConfig(retry_interval=30, retry_timeout=10)

    def test_poll_interval_positive(self):
        with pytest.raises(ConfigError):
            TransferConfig(poll_interval=0)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            TransferConfig(concurrency=0)


def test_config_defaults():
    config = Config()

    assert config.log_level == "WARNING"
    assert config.snapshot.exclude_patterns == []
    assert config.transfer.kind is TransferKind.COPY
