"""
Unit tests for configuration validation and logging setup.
"""

import logging
import pytest
from unittest.mock import patch

from config.settings import AppConfig, HealthCheckFilter, _env_bool, setup_logging


class TestAppConfigValidate:
    def test_defaults_are_valid(self):
        assert AppConfig.validate() is True

    @pytest.mark.parametrize("attr,value", [
        ("PORT", 0),
        ("PORT", 70000),
        ("SYNC_INTERVAL_MINUTES", 0),
        ("SYNC_BATCH_SIZE", 0),
        ("TOKEN_SAFETY_MARGIN_SECONDS", -1),
        ("PRERELEASE_PATTERN", "-rc[0-9+$"),
    ])
    def test_rejects_bad_values(self, attr, value):
        with patch.object(AppConfig, attr, value):
            with pytest.raises(ValueError):
                AppConfig.validate()


class TestEnvBool:
    @pytest.mark.parametrize("raw,expected", [
        ("1", True), ("true", True), ("YES", True), ("on", True),
        ("0", False), ("false", False), ("", False),
    ])
    def test_parses_flags(self, raw, expected, monkeypatch):
        monkeypatch.setenv("IMAGESET_TEST_FLAG", raw)

        assert _env_bool("IMAGESET_TEST_FLAG") is expected

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("IMAGESET_TEST_FLAG", raising=False)

        assert _env_bool("IMAGESET_TEST_FLAG", True) is True


class TestHealthCheckFilter:
    def _record(self, message):
        return logging.LogRecord("uvicorn.access", logging.INFO, __file__, 1, message, None, None)

    def test_drops_successful_health_checks(self):
        assert HealthCheckFilter().filter(self._record('127.0.0.1:1 - "GET /health HTTP/1.1" 200 OK')) is False

    def test_keeps_other_requests(self):
        assert HealthCheckFilter().filter(self._record('127.0.0.1:1 - "GET /images/v1.6.10 HTTP/1.1" 200 OK')) is True


class TestSetupLogging:
    @pytest.fixture
    def restore_root_logger(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        yield
        for handler in root.handlers[:]:
            if handler not in saved_handlers:
                handler.close()
                root.removeHandler(handler)
        root.setLevel(saved_level)

    def test_creates_log_dir_and_rotating_file(self, tmp_path, restore_root_logger):
        log_dir = tmp_path / "data" / "logs"

        with patch("config.paths.LOG_DIR", str(log_dir)):
            setup_logging("DEBUG")

        assert log_dir.is_dir()
        files = [h.baseFilename for h in logging.getLogger().handlers if hasattr(h, "baseFilename")]
        assert files == [str(log_dir / "imageset.log")]
