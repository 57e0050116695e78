"""Tests for ConfigurationRenderer."""

import os
import pytest
from taskbot_deploy.domain.entities.deployment_config import (
    ImageSettings,
    ServicePorts,
    TlsMode,
)
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.errors import ConfigurationError
from taskbot_deploy.domain.services.config_renderer import (
    ConfigurationRenderer,
    validate_license_token,
)
from taskbot_deploy.domain.services.secret_generator import SecretGenerator
from taskbot_deploy.domain.value_objects.provision_answers import ProvisionAnswers


@pytest.fixture
def renderer(counting_random):
    return ConfigurationRenderer(SecretGenerator(random_bytes=counting_random))


class TestLicenseToken:
    def test_strips_whitespace(self):
        assert validate_license_token("  abc-123 ") == "abc-123"

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing(self, token):
        with pytest.raises(ConfigurationError) as exc:
            validate_license_token(token)
        assert exc.value.field == "license_token"

    @pytest.mark.parametrize("token", ["YOUR_LICENSE_TOKEN", "changeme", "<license>"])
    def test_placeholder(self, token):
        with pytest.raises(ConfigurationError, match="placeholder"):
            validate_license_token(token)


class TestRender:
    def test_fresh_install_defaults(self, renderer):
        config = renderer.render(ProvisionAnswers(license_token="lic-1"))
        assert str(config.public_host) == "localhost"
        assert config.tls.mode == TlsMode.NONE
        assert config.public_url == "http://localhost"
        assert config.ports == ServicePorts()
        assert config.serve_uploads is True

    def test_answers_take_precedence_over_state(self, renderer, secrets_factory):
        previous = DeploymentState(
            public_host="old.example.com",
            license_token="old-licence",
            tls_mode="self_signed",
            secrets=secrets_factory().to_dict(),
        )
        config = renderer.render(
            ProvisionAnswers(public_host="new.example.com", tls_mode="none"),
            previous,
        )
        assert str(config.public_host) == "new.example.com"
        assert config.license_token == "old-licence"
        assert config.tls.mode == TlsMode.NONE

    def test_state_takes_precedence_over_defaults(self, renderer, secrets_factory):
        previous = DeploymentState(
            public_host="kept.example.com",
            license_token="lic-1",
            tls_mode="self_signed",
            serve_uploads=False,
            ports={"frontend": 3100},
            secrets=secrets_factory().to_dict(),
        )
        config = renderer.render(ProvisionAnswers(), previous)
        assert config.public_url == "https://kept.example.com"
        assert config.ports.frontend == 3100
        assert config.serve_uploads is False

    def test_secrets_are_reused_not_rotated(self, renderer, secrets_factory):
        previous = DeploymentState(
            license_token="lic-1", secrets=secrets_factory().to_dict()
        )
        first = renderer.render(ProvisionAnswers(), previous)
        second = renderer.render(ProvisionAnswers(), previous)
        assert first.secrets == second.secrets == secrets_factory()

    def test_partial_secrets_are_completed(self, renderer):
        previous = DeploymentState(
            license_token="lic-1", secrets={"redis_password": "legacyredis1"}
        )
        config = renderer.render(ProvisionAnswers(), previous)
        assert config.secrets.redis_password == "legacyredis1"
        assert config.secrets.mongo_password

    def test_host_is_normalised(self, renderer):
        config = renderer.render(
            ProvisionAnswers(public_host="https://Taskbot.Example.com/", license_token="l1")
        )
        assert str(config.public_host) == "taskbot.example.com"

    @pytest.mark.parametrize("host", ["", "exa mple.com", "bad_host!"])
    def test_invalid_host(self, renderer, host):
        with pytest.raises(ConfigurationError) as exc:
            renderer.render(ProvisionAnswers(public_host=host, license_token="l1"))
        assert exc.value.field == "public_host"

    def test_ipv6_host_url_is_bracketed(self, renderer):
        config = renderer.render(
            ProvisionAnswers(public_host="fe80::1", license_token="l1")
        )
        assert config.public_url == "http://[fe80::1]"

    def test_unknown_tls_mode(self, renderer):
        with pytest.raises(ConfigurationError) as exc:
            renderer.render(ProvisionAnswers(tls_mode="letsencrypt", license_token="l1"))
        assert exc.value.field == "tls_mode"

    def test_tls_mode_accepts_hyphens(self, renderer):
        config = renderer.render(
            ProvisionAnswers(tls_mode="host-delegated", license_token="l1")
        )
        assert config.tls.mode == TlsMode.HOST_DELEGATED
        assert config.public_url.startswith("https://")

    def test_user_provided_requires_both_paths(self, renderer):
        with pytest.raises(ConfigurationError) as exc:
            renderer.render(ProvisionAnswers(
                tls_mode="user_provided", cert_path="/tmp/cert.pem", license_token="l1"
            ))
        assert exc.value.field == "key_path"

    def test_user_provided_paths_are_absolute(self, renderer):
        config = renderer.render(ProvisionAnswers(
            tls_mode="user_provided",
            cert_path="certs/fullchain.pem",
            key_path="certs/privkey.pem",
            license_token="l1",
        ))
        assert config.tls.cert_path == os.path.abspath("certs/fullchain.pem")
        assert os.path.isabs(config.tls.key_path)

    def test_cert_paths_carry_over_with_same_mode(self, renderer):
        previous = DeploymentState(
            license_token="l1",
            tls_mode="user_provided",
            cert_path="/etc/ssl/a.pem",
            key_path="/etc/ssl/a.key",
        )
        config = renderer.render(ProvisionAnswers(), previous)
        assert config.tls.cert_path == "/etc/ssl/a.pem"

    def test_invalid_port(self, renderer):
        with pytest.raises(ConfigurationError) as exc:
            renderer.render(ProvisionAnswers(license_token="l1", ports={"frontend": 70000}))
        assert exc.value.field == "ports"

    def test_images_come_from_renderer(self, counting_random):
        renderer = ConfigurationRenderer(
            SecretGenerator(random_bytes=counting_random),
            images=ImageSettings(namespace="mirror.local/taskbot", tag="2.0"),
        )
        config = renderer.render(ProvisionAnswers(license_token="l1"))
        assert config.images.image("taskbot-api") == "mirror.local/taskbot/taskbot-api:2.0"

    def test_config_repr_hides_secrets(self, renderer):
        config = renderer.render(ProvisionAnswers(license_token="l1"))
        assert config.secrets.jwt_secret not in repr(config)
