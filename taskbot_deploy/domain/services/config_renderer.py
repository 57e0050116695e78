"""
Configuration Renderer

Architectural Intent:
- Merges operator answers, persisted state and defaults into DeploymentConfig
- Precedence per field: explicit answer > persisted state > default
- Secrets are only ever taken from persisted state or freshly generated for
  keys that are missing, never rotated on a re-run

Validation:
- License token present and not a placeholder
- Public host present and a valid DNS name or IP address
- User-provided TLS needs both certificate and key paths
"""

from __future__ import annotations
import logging
import os
from typing import Optional, TypeVar
from taskbot_deploy.domain.entities.deployment_config import (
    DeploymentConfig,
    ImageSettings,
    ServicePorts,
    TlsMode,
    TlsSettings,
)
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.errors import ConfigurationError
from taskbot_deploy.domain.services.secret_generator import SecretGenerator
from taskbot_deploy.domain.value_objects.provision_answers import ProvisionAnswers
from taskbot_deploy.domain.value_objects.public_host import PublicHost

logger = logging.getLogger(__name__)

LICENSE_PLACEHOLDERS = frozenset({
    "your_license_token",
    "your_license_key",
    "<license_token>",
    "<license>",
    "change_me",
    "changeme",
    "placeholder",
    "todo",
    "xxx",
})

T = TypeVar("T")


def _first(*values: Optional[T]) -> Optional[T]:
    for value in values:
        if value is not None:
            return value
    return None


def validate_license_token(token: Optional[str]) -> str:
    token = (token or "").strip()
    if not token:
        raise ConfigurationError("license_token", "a license token is required")
    if token.lower() in LICENSE_PLACEHOLDERS:
        raise ConfigurationError(
            "license_token", f"'{token}' is a placeholder, not a license token"
        )
    return token


class ConfigurationRenderer:
    def __init__(
        self,
        secret_generator: SecretGenerator,
        default_ports: Optional[ServicePorts] = None,
        images: Optional[ImageSettings] = None,
        default_host: str = "localhost",
    ) -> None:
        self.secret_generator = secret_generator
        self.default_ports = default_ports or ServicePorts()
        self.images = images or ImageSettings()
        self.default_host = default_host

    def render(
        self,
        answers: ProvisionAnswers,
        previous: Optional[DeploymentState] = None,
    ) -> DeploymentConfig:
        previous = previous or DeploymentState()

        license_token = validate_license_token(
            _first(answers.license_token, previous.license_token)
        )
        public_host = self._resolve_host(
            _first(answers.public_host, previous.public_host, self.default_host)
        )
        tls = self._resolve_tls(answers, previous)

        ports = {**self.default_ports.to_dict(), **previous.ports, **answers.ports}
        try:
            service_ports = ServicePorts.from_dict(ports)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("ports", str(e)) from e

        serve_uploads = _first(answers.serve_uploads, previous.serve_uploads, True)

        if previous.has_secrets:
            logger.info("Reusing secrets from the existing deployment")
        secrets = self.secret_generator.fill_missing(previous.secrets)

        return DeploymentConfig(
            public_host=public_host,
            license_token=license_token,
            secrets=secrets,
            tls=tls,
            ports=service_ports,
            images=self.images,
            serve_uploads=bool(serve_uploads),
        )

    def _resolve_host(self, raw: Optional[str]) -> PublicHost:
        if not raw or not raw.strip():
            raise ConfigurationError("public_host", "a domain name or IP is required")
        try:
            return PublicHost.parse(raw)
        except ValueError as e:
            raise ConfigurationError("public_host", str(e)) from e

    def _resolve_tls(
        self, answers: ProvisionAnswers, previous: DeploymentState
    ) -> TlsSettings:
        raw_mode = _first(answers.tls_mode, previous.tls_mode, TlsMode.NONE.value)
        try:
            mode = TlsMode.parse(raw_mode)
        except ValueError as e:
            raise ConfigurationError("tls_mode", str(e)) from e

        if mode != TlsMode.USER_PROVIDED:
            return TlsSettings(mode=mode)

        # paths only carry over from state when the mode did not change
        same_mode = answers.tls_mode is None or previous.tls_mode == mode.value
        cert_path = _first(answers.cert_path, previous.cert_path if same_mode else None)
        key_path = _first(answers.key_path, previous.key_path if same_mode else None)
        if not cert_path:
            raise ConfigurationError("cert_path", "required for user-provided TLS")
        if not key_path:
            raise ConfigurationError("key_path", "required for user-provided TLS")
        return TlsSettings(
            mode=mode,
            cert_path=os.path.abspath(os.path.expanduser(cert_path)),
            key_path=os.path.abspath(os.path.expanduser(key_path)),
        )
