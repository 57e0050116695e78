"""
Stack Definition

Architectural Intent:
- Service catalog for the Taskbot stack, derived from DeploymentConfig
- Replaces the downloaded static compose file: image tags, ports and the
  presence of the nginx container all follow the configuration
- Datastores declare healthchecks; dependants wait on service_healthy

Design Decisions:
- Each container reads its own env file, so the compose file carries no
  secrets and no ${VAR} interpolation
- Datastore ports are not published on the host
- Host-delegated TLS drops nginx and binds app ports to 127.0.0.1 only
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional
from taskbot_deploy.domain.entities.deployment_config import (
    DeploymentConfig,
    TlsMode,
)
from taskbot_deploy.domain.services import env_files
from taskbot_deploy.domain.services.proxy_config import NGINX_CONF, LOOPBACK

COMPOSE_FILE = "docker-compose.yml"

NAMED_VOLUMES = (
    "installer-data",
    "uploads-data",
    "mariadb-data",
    "redis-data",
    "rabbitmq-data",
    "mongodb-data",
)

_LOGGING = {
    "driver": "json-file",
    "options": {"max-size": "100m", "max-file": "3"},
}


@dataclass(frozen=True)
class Healthcheck:
    test: tuple[str, ...]
    interval: str = "10s"
    timeout: str = "5s"
    retries: int = 12
    start_period: str = "20s"

    def to_compose(self) -> dict[str, Any]:
        return {
            "test": list(self.test),
            "interval": self.interval,
            "timeout": self.timeout,
            "retries": self.retries,
            "start_period": self.start_period,
        }


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    image: str
    container_name: str
    env_file: Optional[str] = None
    required: bool = True
    command: tuple[str, ...] = ()
    volumes: tuple[str, ...] = ()
    ports: tuple[str, ...] = ()
    # service name -> (condition, required)
    depends_on: tuple[tuple[str, str, bool], ...] = ()
    healthcheck: Optional[Healthcheck] = None
    extra_hosts: tuple[str, ...] = ()

    def to_compose(self) -> dict[str, Any]:
        svc: dict[str, Any] = {
            "image": self.image,
            "container_name": self.container_name,
            "restart": "unless-stopped",
        }
        if self.env_file:
            svc["env_file"] = [self.env_file]
        if self.command:
            svc["command"] = list(self.command)
        if self.ports:
            svc["ports"] = list(self.ports)
        if self.volumes:
            svc["volumes"] = list(self.volumes)
        if self.extra_hosts:
            svc["extra_hosts"] = list(self.extra_hosts)
        if self.depends_on:
            svc["depends_on"] = {
                name: {"condition": condition, "required": required}
                for name, condition, required in self.depends_on
            }
        if self.healthcheck:
            svc["healthcheck"] = self.healthcheck.to_compose()
        svc["logging"] = _LOGGING
        return svc


@dataclass(frozen=True)
class StackDefinition:
    services: tuple[ServiceSpec, ...]
    volumes: tuple[str, ...] = field(default=NAMED_VOLUMES)

    @property
    def service_names(self) -> list[str]:
        return [s.name for s in self.services]

    def get(self, name: str) -> ServiceSpec:
        for service in self.services:
            if service.name == name:
                return service
        raise KeyError(name)

    def to_compose(self) -> dict[str, Any]:
        return {
            "services": {s.name: s.to_compose() for s in self.services},
            "volumes": {v: {} for v in self.volumes},
        }


def _loopback(port: int) -> tuple[str, ...]:
    return (f"{LOOPBACK}:{port}:{port}",)


def build_stack(config: DeploymentConfig) -> StackDefinition:
    p = config.ports
    img = config.images
    delegated = config.tls.mode == TlsMode.HOST_DELEGATED

    healthy = "service_healthy"
    started = "service_started"

    services = [
        ServiceSpec(
            name="mariadb",
            image="mariadb:11.3",
            container_name="taskbot-mariadb",
            env_file=env_files.MARIADB_ENV,
            command=(f"--port={p.mariadb}",),
            volumes=("mariadb-data:/var/lib/mysql",),
            healthcheck=Healthcheck((
                "CMD-SHELL",
                f"mariadb-admin ping -h 127.0.0.1 -P {p.mariadb} -u root "
                '-p"$$MYSQL_ROOT_PASSWORD" --silent',
            )),
        ),
        ServiceSpec(
            name="redis",
            image="redis:7.2",
            container_name="taskbot-redis",
            env_file=env_files.REDIS_ENV,
            command=(
                "sh", "-c",
                'exec redis-server --port "$$REDIS_PORT" --requirepass "$$REDIS_PASSWORD"',
            ),
            volumes=("redis-data:/data",),
            healthcheck=Healthcheck((
                "CMD-SHELL",
                'redis-cli -p "$$REDIS_PORT" -a "$$REDIS_PASSWORD" '
                "--no-auth-warning ping | grep -q PONG",
            )),
        ),
        ServiceSpec(
            name="rabbitmq",
            image="rabbitmq:3-management",
            container_name="taskbot-rabbitmq",
            env_file=env_files.RABBITMQ_ENV,
            volumes=("rabbitmq-data:/var/lib/rabbitmq",),
            healthcheck=Healthcheck(("CMD", "rabbitmq-diagnostics", "-q", "ping")),
        ),
        ServiceSpec(
            name="mongodb",
            image="mongo:4.4",
            container_name="taskbot-mongodb",
            env_file=env_files.MONGODB_ENV,
            command=("mongod", "--port", str(p.mongodb)),
            volumes=("mongodb-data:/data/db",),
            healthcheck=Healthcheck((
                "CMD-SHELL",
                f"mongo --port {p.mongodb} --quiet --eval "
                "\"db.adminCommand('ping').ok\" | grep -q 1",
            )),
        ),
        ServiceSpec(
            name="taskbot-api-service",
            image=img.image("taskbot-api"),
            container_name="taskbot-api-service",
            env_file=env_files.API_ENV,
            volumes=("uploads-data:/storage/uploads",),
            depends_on=(
                ("mariadb", healthy, True),
                ("redis", healthy, True),
                ("rabbitmq", healthy, True),
                ("mongodb", healthy, True),
            ),
        ),
        ServiceSpec(
            name="gateway",
            image=img.image("taskbot-gw"),
            container_name="taskbot-gateway",
            env_file=env_files.GATEWAY_ENV,
            ports=_loopback(p.gateway) if delegated else (),
            depends_on=(
                ("taskbot-api-service", started, True),
                ("redis", healthy, True),
            ),
        ),
        ServiceSpec(
            name="installer",
            image=img.image("taskbot-installer"),
            container_name="taskbot-installer",
            env_file=env_files.INSTALLER_ENV,
            required=False,
            ports=_loopback(p.installer) if delegated else (),
            volumes=(
                "installer-data:/data",
                "./keys:/etc/taskbot/keys:ro",
                "./certs:/etc/taskbot/certs:ro",
            ),
            extra_hosts=("host.docker.internal:host-gateway",),
        ),
        ServiceSpec(
            name="frontend",
            image=img.image("taskbot-portal"),
            container_name="taskbot-frontend",
            env_file=env_files.FRONTEND_ENV,
            ports=_loopback(p.frontend) if delegated else (),
            depends_on=(("gateway", started, True),),
        ),
    ]

    if not delegated:
        nginx_ports = ["80:80"]
        if config.tls.terminates_locally:
            nginx_ports.append("443:443")
        services.append(
            ServiceSpec(
                name="nginx",
                image="nginx:1.27-alpine",
                container_name="taskbot-nginx",
                ports=tuple(nginx_ports),
                volumes=(
                    f"./{NGINX_CONF}:/etc/nginx/conf.d/default.conf:ro",
                    "./certs:/etc/nginx/certs:ro",
                    "uploads-data:/var/www/uploads:ro",
                ),
                depends_on=(
                    ("frontend", started, True),
                    ("gateway", started, True),
                    ("installer", started, False),
                ),
            )
        )

    return StackDefinition(services=tuple(services))
