"""
Deployment State

Architectural Intent:
- What a previous run left behind on the host: its inputs and its secrets
- Secrets may be partial when imported from a legacy installer .env file
- Serialised by the state repository; the domain only reads it
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional
from taskbot_deploy.domain.entities.deployment_config import (
    DeploymentConfig,
    SECRET_KEYS,
)

STATE_VERSION = 1


@dataclass(frozen=True)
class DeploymentState:
    public_host: Optional[str] = None
    license_token: Optional[str] = None
    tls_mode: Optional[str] = None
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    serve_uploads: Optional[bool] = None
    ports: dict[str, int] = field(default_factory=dict)
    secrets: dict[str, str] = field(default_factory=dict)

    @property
    def has_secrets(self) -> bool:
        return any(self.secrets.get(key) for key in SECRET_KEYS)

    @classmethod
    def from_config(cls, config: DeploymentConfig) -> "DeploymentState":
        return cls(
            public_host=str(config.public_host),
            license_token=config.license_token,
            tls_mode=config.tls.mode.value,
            cert_path=config.tls.cert_path,
            key_path=config.tls.key_path,
            serve_uploads=config.serve_uploads,
            ports=config.ports.to_dict(),
            secrets=config.secrets.to_dict(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "public_host": self.public_host,
            "license_token": self.license_token,
            "tls": {
                "mode": self.tls_mode,
                "cert_path": self.cert_path,
                "key_path": self.key_path,
            },
            "serve_uploads": self.serve_uploads,
            "ports": dict(sorted(self.ports.items())),
            "secrets": {k: self.secrets[k] for k in SECRET_KEYS if k in self.secrets},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeploymentState":
        tls = data.get("tls") or {}
        return cls(
            public_host=data.get("public_host"),
            license_token=data.get("license_token"),
            tls_mode=tls.get("mode"),
            cert_path=tls.get("cert_path"),
            key_path=tls.get("key_path"),
            serve_uploads=data.get("serve_uploads"),
            ports={k: int(v) for k, v in (data.get("ports") or {}).items()},
            secrets={
                k: str(v)
                for k, v in (data.get("secrets") or {}).items()
                if k in SECRET_KEYS and v
            },
        )

    def __repr__(self) -> str:
        return (
            f"DeploymentState(public_host={self.public_host}, "
            f"tls_mode={self.tls_mode}, secrets=<{len(self.secrets)} redacted>)"
        )
