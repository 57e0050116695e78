"""Tests for the environment file writer."""

import pytest
from taskbot_deploy.domain.entities.deployment_config import ServicePorts, TlsMode
from taskbot_deploy.domain.services.env_files import (
    API_ENV,
    ENV_FILE_MODE,
    FRONTEND_ENV,
    GATEWAY_ENV,
    INSTALLER_ENV,
    MARIADB_ENV,
    MONGODB_ENV,
    RABBITMQ_ENV,
    REDIS_ENV,
    EnvFileWriter,
    parse_env,
    render_env,
)


def _files(config):
    return {a.path: a for a in EnvFileWriter().render(config)}


def _env(config, name):
    return parse_env(_files(config)[name].content)


class TestRenderEnv:
    def test_header_and_sections(self):
        text = render_env("Demo", [("First", [("A", 1)]), ("Second", [("B", True)])])
        assert text.startswith("# Demo (generated by taskbot-deploy, do not edit)\n")
        assert "# === First\nA=1\n" in text
        assert "B=true" in text
        assert text.endswith("\n")

    def test_duplicate_keys_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            render_env("Demo", [("S", [("A", 1), ("A", 2)])])

    def test_multiline_values_rejected(self):
        with pytest.raises(ValueError):
            render_env("Demo", [("S", [("A", "one\ntwo")])])


class TestParseEnv:
    def test_ignores_comments_and_quotes(self):
        text = "# comment\n\nexport A=1\nB='two'\nC=\"three\"\nnot a pair\n"
        assert parse_env(text) == {"A": "1", "B": "two", "C": "three"}

    def test_value_may_contain_equals(self):
        assert parse_env("URL=jdbc:x?a=b&c=d") == {"URL": "jdbc:x?a=b&c=d"}


class TestEnvFileWriter:
    def test_one_file_per_container(self, config):
        assert set(_files(config)) == {
            API_ENV, GATEWAY_ENV, FRONTEND_ENV, INSTALLER_ENV,
            MARIADB_ENV, MONGODB_ENV, REDIS_ENV, RABBITMQ_ENV,
        }

    def test_all_files_owner_only(self, config):
        assert all(a.mode == ENV_FILE_MODE == 0o600 for a in _files(config).values())

    def test_api_env_uses_public_url_and_secrets(self, config):
        env = _env(config, API_ENV)
        assert env["PUBLIC_DOMAIN"] == "http://taskbot.example.com"
        assert env["FRONT_ENDPOINT"] == "http://taskbot.example.com"
        assert env["JDBC_PWD"] == config.secrets.mariadb_password
        assert env["JWT_SECRET"] == env["JWT_BASE64_SECRET"] == config.secrets.jwt_secret
        assert env["REDIS_PWD"] == config.secrets.redis_password
        assert env["RABBITMQ_PASSWORD"] == config.secrets.rabbitmq_password
        assert config.secrets.mongo_password in env["SPRING_DATA_MONGODB_URI"]
        assert env["SERVER_PORT"] == "18902"

    def test_https_scheme_follows_tls(self, config_factory):
        env = _env(config_factory(tls=TlsMode.SELF_SIGNED), API_ENV)
        assert env["PUBLIC_DOMAIN"] == "https://taskbot.example.com"

    def test_jdbc_url_follows_port(self, config_factory):
        config = config_factory(ports=ServicePorts(mariadb=3307))
        assert "mariadb:3307/nucleus" in _env(config, API_ENV)["JDBC_URL"]

    def test_gateway_env_has_no_database_credentials(self, config):
        text = _files(config)[GATEWAY_ENV].content
        for secret in (
            config.secrets.mariadb_password,
            config.secrets.mariadb_root_password,
            config.secrets.mongo_password,
            config.secrets.rabbitmq_password,
        ):
            assert secret not in text

    def test_frontend_env_has_no_secrets(self, config):
        text = _files(config)[FRONTEND_ENV].content
        for secret in config.secrets.to_dict().values():
            assert secret not in text
        env = parse_env(text)
        assert env["NEXT_PUBLIC_API_ENDPOINT_CORE"] == "http://taskbot.example.com/core"

    def test_installer_gets_licence_token(self, config):
        assert _env(config, INSTALLER_ENV)["LICENSE_TOKEN"] == "lic-123456"

    def test_datastore_files_match_api_credentials(self, config):
        api = _env(config, API_ENV)
        assert _env(config, MARIADB_ENV)["MYSQL_PASSWORD"] == api["JDBC_PWD"]
        assert _env(config, MARIADB_ENV)["MYSQL_ROOT_PASSWORD"] == (
            config.secrets.mariadb_root_password
        )
        assert _env(config, MONGODB_ENV)["MONGO_INITDB_ROOT_USERNAME"] == "mymongo"
        assert _env(config, REDIS_ENV)["REDIS_PASSWORD"] == api["REDIS_PWD"]
        assert _env(config, RABBITMQ_ENV)["RABBITMQ_DEFAULT_PASS"] == (
            api["RABBITMQ_PASSWORD"]
        )

    def test_rendering_is_deterministic(self, config):
        first = [a.content for a in EnvFileWriter().render(config)]
        second = [a.content for a in EnvFileWriter().render(config)]
        assert first == second
