"""Tests for configuration module."""

import json
import logging
import os
import pytest

from taskbot_deploy.infrastructure.config import (
    ImagesConfig,
    InstallConfig,
    PortsConfig,
    ReadinessConfig,
    RemoteConfig,
    TaskbotDeployConfig,
    TelemetryConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("TASKBOT_"):
            monkeypatch.delenv(key)


class TestDefaultConfig:
    def test_defaults(self):
        config = load_config(path="/nonexistent/taskbot-deploy.json")
        assert config.log_level == "WARNING"
        assert config.install.directory == "/opt/taskbot"
        assert config.install.project_name == "taskbot"
        assert config.images.namespace == "neaitaskbot"
        assert config.images.tag == "1.0"
        assert config.ports.frontend == 3000
        assert config.readiness.timeout_seconds == 180.0
        assert config.remote.target == ""
        assert config.telemetry.endpoint == ""

    def test_all_sections_present(self):
        config = load_config(path="/nonexistent/taskbot-deploy.json")
        assert isinstance(config.install, InstallConfig)
        assert isinstance(config.images, ImagesConfig)
        assert isinstance(config.ports, PortsConfig)
        assert isinstance(config.readiness, ReadinessConfig)
        assert isinstance(config.remote, RemoteConfig)
        assert isinstance(config.telemetry, TelemetryConfig)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            TaskbotDeployConfig().log_level = "DEBUG"


class TestFileConfig:
    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text(json.dumps({
            "log_level": "DEBUG",
            "install": {"directory": "/srv/taskbot"},
            "images": {"tag": "1.1"},
            "ports": {"frontend": 3100},
            "remote": {"target": "deploy@10.0.0.5:2222"},
        }))

        config = load_config(path=str(config_file))
        assert config.log_level == "DEBUG"
        assert config.install.directory == "/srv/taskbot"
        assert config.images.tag == "1.1"
        assert config.ports.frontend == 3100
        assert config.remote.target == "deploy@10.0.0.5:2222"

    def test_partial_config(self, tmp_path):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text(json.dumps({"images": {"tag": "2.0"}}))

        config = load_config(path=str(config_file))
        assert config.images.tag == "2.0"
        assert config.images.namespace == "neaitaskbot"  # default preserved
        assert config.install.directory == "/opt/taskbot"  # default preserved

    def test_invalid_json_returns_defaults(self, tmp_path):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text("not valid json{{{")

        config = load_config(path=str(config_file))
        assert config.install.directory == "/opt/taskbot"

    def test_non_object_returns_defaults(self, tmp_path):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text("[1, 2]")

        assert load_config(path=str(config_file)) == TaskbotDeployConfig()

    def test_unknown_keys_ignored(self, tmp_path):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text(json.dumps({
            "install": {"directory": "/srv/x", "unknown_key": "ignored"},
        }))

        config = load_config(path=str(config_file))
        assert config.install.directory == "/srv/x"

    def test_default_path_in_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "taskbot-deploy.json").write_text(json.dumps({"log_level": "INFO"}))
        assert load_config().log_level == "INFO"


class TestEnvOverride:
    def test_env_overrides_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text(json.dumps({"install": {"directory": "/srv/file"}}))
        monkeypatch.setenv("TASKBOT_INSTALL_DIRECTORY", "/srv/env")

        config = load_config(path=str(config_file))
        assert config.install.directory == "/srv/env"

    def test_env_values_converted(self, monkeypatch):
        monkeypatch.setenv("TASKBOT_PORTS_GATEWAY", "9090")
        monkeypatch.setenv("TASKBOT_READINESS_TIMEOUT_SECONDS", "60.5")
        monkeypatch.setenv("TASKBOT_TELEMETRY_INSECURE", "yes")

        config = load_config(path="/nonexistent/taskbot-deploy.json")
        assert config.ports.gateway == 9090
        assert config.readiness.timeout_seconds == 60.5
        assert config.telemetry.insecure is True

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("ACME_IMAGES_TAG", "9.9")
        config = load_config(path="/nonexistent/x.json", env_prefix="ACME")
        assert config.images.tag == "9.9"

    def test_log_level_from_env(self, tmp_path, monkeypatch):
        config_file = tmp_path / "taskbot-deploy.json"
        config_file.write_text(json.dumps({"log_level": "ERROR"}))
        monkeypatch.setenv("TASKBOT_LOG_LEVEL", "info")

        config = load_config(path=str(config_file))
        assert config.log_level == "info"
        assert config.logging_level == logging.INFO

    def test_unknown_log_level_raises(self, monkeypatch):
        monkeypatch.setenv("TASKBOT_LOG_LEVEL", "chatty")
        with pytest.raises(ValueError, match="log_level"):
            load_config(path="/nonexistent/taskbot-deploy.json")

    def test_bad_number_raises(self, monkeypatch):
        monkeypatch.setenv("TASKBOT_PORTS_REDIS", "not-a-port")
        with pytest.raises(ValueError):
            load_config(path="/nonexistent/taskbot-deploy.json")
