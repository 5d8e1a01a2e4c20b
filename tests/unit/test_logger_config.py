"""
Logger configuration tests.
"""

import json
import logging

import pytest


@pytest.fixture(autouse=True)
def restore_debug_mode(monkeypatch):
    """configure_logger_from_file changes module state; put it back afterwards."""
    import appservice_deployer.logger as logger_module

    monkeypatch.setattr(logger_module, "DEBUG_MODE", logger_module.DEBUG_MODE)
    yield
    logger_module.setup_logger(debug_mode=False)


class TestConfigureLoggerFromFile:

    def test_debug_mode_from_file(self, tmp_path):
        from appservice_deployer.logger import configure_logger_from_file, get_debug_mode

        config = tmp_path / "azure-deploy.json"
        config.write_text(json.dumps({"appName": "my-functions", "mode": "debug"}))

        logger = configure_logger_from_file(config)

        assert get_debug_mode() is True
        assert logger.level == logging.DEBUG

    def test_missing_file_keeps_defaults(self, tmp_path):
        from appservice_deployer.logger import configure_logger_from_file, get_debug_mode

        configure_logger_from_file(tmp_path / "missing.json")

        assert get_debug_mode() is False

    def test_non_object_json_raises(self, tmp_path):
        from appservice_deployer.logger import configure_logger_from_file
        from appservice_deployer.core.exceptions import ConfigurationError

        config = tmp_path / "azure-deploy.json"
        config.write_text(json.dumps(["my-functions"]))

        with pytest.raises(ConfigurationError, match="JSON object"):
            configure_logger_from_file(config)
