"""
Deployment Configuration Module

Architectural Intent:
- DeploymentConfig is the single source of truth for one deployment
- Every phase after rendering receives the same immutable instance
- Secrets, ports and TLS settings are sub-value-objects so they cannot be
  mutated piecemeal (partial mutation desynchronises env files and volumes)
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Optional
from taskbot_deploy.domain.value_objects.public_host import PublicHost


class Scheme(Enum):
    HTTP = "http"
    HTTPS = "https"


class TlsMode(Enum):
    NONE = "none"
    SELF_SIGNED = "self_signed"
    USER_PROVIDED = "user_provided"
    HOST_DELEGATED = "host_delegated"

    @classmethod
    def parse(cls, value: str) -> "TlsMode":
        normalized = value.strip().lower().replace("-", "_")
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(f"Unknown TLS mode: {value!r}")


SECRET_KEYS = (
    "jwt_secret",
    "mariadb_password",
    "mariadb_root_password",
    "mongo_password",
    "redis_password",
    "rabbitmq_password",
)


@dataclass(frozen=True)
class GeneratedSecrets:
    jwt_secret: str
    mariadb_password: str
    mariadb_root_password: str
    mongo_password: str
    redis_password: str
    rabbitmq_password: str

    def __post_init__(self) -> None:
        for f in fields(self):
            if not getattr(self, f.name):
                raise ValueError(f"Secret '{f.name}' cannot be empty")

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "GeneratedSecrets":
        return cls(**{key: data[key] for key in SECRET_KEYS})

    def __repr__(self) -> str:
        return "GeneratedSecrets(<redacted>)"


@dataclass(frozen=True)
class ServicePorts:
    """Internal container ports."""
    frontend: int = 3000
    gateway: int = 8080
    api: int = 18902
    api_data: int = 8080
    installer: int = 5000
    mariadb: int = 3306
    redis: int = 6379
    rabbitmq: int = 5672
    mongodb: int = 27017

    def __post_init__(self) -> None:
        for f in fields(self):
            port = getattr(self, f.name)
            if not isinstance(port, int) or not (1 <= port <= 65535):
                raise ValueError(f"Port for '{f.name}' must be 1-65535, got {port!r}")

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServicePorts":
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in data.items() if k in known})


@dataclass(frozen=True)
class TlsSettings:
    mode: TlsMode = TlsMode.NONE
    cert_path: Optional[str] = None
    key_path: Optional[str] = None

    @property
    def scheme(self) -> Scheme:
        return Scheme.HTTP if self.mode == TlsMode.NONE else Scheme.HTTPS

    @property
    def terminates_locally(self) -> bool:
        return self.mode in (TlsMode.SELF_SIGNED, TlsMode.USER_PROVIDED)


@dataclass(frozen=True)
class ImageSettings:
    namespace: str = "neaitaskbot"
    tag: str = "1.0"

    def image(self, name: str) -> str:
        return f"{self.namespace}/{name}:{self.tag}"


@dataclass(frozen=True)
class DeploymentConfig:
    public_host: PublicHost
    license_token: str
    secrets: GeneratedSecrets
    tls: TlsSettings = field(default_factory=TlsSettings)
    ports: ServicePorts = field(default_factory=ServicePorts)
    images: ImageSettings = field(default_factory=ImageSettings)
    serve_uploads: bool = True

    @property
    def scheme(self) -> Scheme:
        return self.tls.scheme

    @property
    def public_url(self) -> str:
        return f"{self.scheme.value}://{self.public_host.url_host}"

    def __repr__(self) -> str:
        return (
            f"DeploymentConfig(public_host={self.public_host}, "
            f"tls={self.tls.mode.value}, ports={self.ports})"
        )
