"""Shared fixtures for taskbot-deploy tests."""

import pytest
from taskbot_deploy.domain.entities.deployment_config import (
    DeploymentConfig,
    GeneratedSecrets,
    ServicePorts,
    TlsMode,
    TlsSettings,
)
from taskbot_deploy.domain.value_objects.public_host import PublicHost


def make_secrets(**overrides) -> GeneratedSecrets:
    values = {
        "jwt_secret": "j" * 96,
        "mariadb_password": "mariadbpass0001",
        "mariadb_root_password": "mariadbroot0001",
        "mongo_password": "mongopass000001",
        "redis_password": "redispass000001",
        "rabbitmq_password": "rabbitpass00001",
    }
    values.update(overrides)
    return GeneratedSecrets(**values)


def make_config(
    host: str = "taskbot.example.com",
    tls: TlsMode = TlsMode.NONE,
    cert_path: str = None,
    key_path: str = None,
    serve_uploads: bool = True,
    ports: ServicePorts = None,
) -> DeploymentConfig:
    return DeploymentConfig(
        public_host=PublicHost(host),
        license_token="lic-123456",
        secrets=make_secrets(),
        tls=TlsSettings(mode=tls, cert_path=cert_path, key_path=key_path),
        ports=ports or ServicePorts(),
        serve_uploads=serve_uploads,
    )


class CountingRandom:
    """Deterministic, never-repeating byte source."""

    def __init__(self):
        self.calls = 0

    def __call__(self, n: int) -> bytes:
        self.calls += 1
        return bytes((self.calls + i) % 256 for i in range(n))


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def secrets_factory():
    return make_secrets


@pytest.fixture
def counting_random():
    return CountingRandom()
