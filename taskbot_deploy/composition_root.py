"""
Composition Root

Architectural Intent:
- Dependency injection composition root for taskbot-deploy
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from the tool config
- A configured remote target swaps the local compose adapter for the
  Fabric one; everything else is identical
- Telemetry is created here but initialized by the caller (async)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from taskbot_deploy.application.orchestration.stack_lifecycle import (
    ReadinessPolicy,
    StackLifecycleManager,
)
from taskbot_deploy.application.use_cases.provision_stack import ProvisionStack
from taskbot_deploy.application.use_cases.stack_status import StackStatus
from taskbot_deploy.application.use_cases.teardown_stack import TeardownStack
from taskbot_deploy.domain.entities.deployment_config import (
    ImageSettings,
    ServicePorts,
)
from taskbot_deploy.domain.events.event_base import (
    ProvisioningFailedEvent,
    ProvisioningStartedEvent,
    StackStartedEvent,
)
from taskbot_deploy.domain.ports.container_runtime_port import ContainerRuntimePort
from taskbot_deploy.domain.services.config_renderer import ConfigurationRenderer
from taskbot_deploy.domain.services.env_files import EnvFileWriter
from taskbot_deploy.domain.services.proxy_config import ProxyConfigGenerator
from taskbot_deploy.domain.services.secret_generator import SecretGenerator
from taskbot_deploy.domain.value_objects.remote_target import RemoteTarget
from taskbot_deploy.infrastructure.adapters.compose_adapter import ComposeAdapter
from taskbot_deploy.infrastructure.adapters.fabric_adapter import FabricComposeAdapter
from taskbot_deploy.infrastructure.adapters.openssl_adapter import OpenSSLAdapter
from taskbot_deploy.infrastructure.compose_file import render_compose_file
from taskbot_deploy.infrastructure.config import TaskbotDeployConfig
from taskbot_deploy.infrastructure.event_bus import EventBus
from taskbot_deploy.infrastructure.repositories.file_artifact_store import (
    FileArtifactStore,
)
from taskbot_deploy.infrastructure.repositories.state_repository import (
    JsonStateRepository,
)
from taskbot_deploy.infrastructure.telemetry.otel_exporter import (
    OTELConfig,
    OTELExporter,
)


@dataclass
class TaskbotDeployContainer:
    """DI container holding all wired dependencies."""

    config: TaskbotDeployConfig
    runtime: ContainerRuntimePort
    artifact_store: FileArtifactStore
    state_repository: JsonStateRepository
    certificates: OpenSSLAdapter
    event_bus: EventBus
    telemetry: OTELExporter
    lifecycle: StackLifecycleManager
    provision: ProvisionStack
    teardown: TeardownStack
    status: StackStatus


def create_runtime(
    config: TaskbotDeployConfig, directory: Path
) -> ContainerRuntimePort:
    project = config.install.project_name
    if config.remote.target:
        target = RemoteTarget.parse(config.remote.target)
        remote_dir = config.remote.directory or config.install.directory
        return FabricComposeAdapter(target, remote_dir, project)
    return ComposeAdapter(directory, project)


def create_container(
    config: Optional[TaskbotDeployConfig] = None,
    runtime: Optional[ContainerRuntimePort] = None,
) -> TaskbotDeployContainer:
    """Create and wire all dependencies."""
    config = config or TaskbotDeployConfig()
    directory = Path(config.install.directory)

    runtime = runtime or create_runtime(config, directory)
    artifact_store = FileArtifactStore(directory)
    state_repository = JsonStateRepository(directory)
    certificates = OpenSSLAdapter()
    event_bus = EventBus()
    telemetry = OTELExporter(
        OTELConfig(
            endpoint=config.telemetry.endpoint,
            insecure=config.telemetry.insecure,
        )
    )
    for event_type in (
        ProvisioningStartedEvent,
        StackStartedEvent,
        ProvisioningFailedEvent,
    ):
        event_bus.subscribe(event_type, telemetry.on_provisioning_event)

    lifecycle = StackLifecycleManager(
        runtime,
        ReadinessPolicy(
            timeout_seconds=config.readiness.timeout_seconds,
            initial_delay=config.readiness.initial_delay,
            max_delay=config.readiness.max_delay,
        ),
    )
    renderer = ConfigurationRenderer(
        SecretGenerator(),
        default_ports=ServicePorts.from_dict(vars(config.ports)),
        images=ImageSettings(
            namespace=config.images.namespace, tag=config.images.tag
        ),
    )
    provision = ProvisionStack(
        renderer=renderer,
        env_writer=EnvFileWriter(),
        proxy_generator=ProxyConfigGenerator(),
        compose_renderer=render_compose_file,
        artifact_store=artifact_store,
        state_repository=state_repository,
        certificates=certificates,
        lifecycle=lifecycle,
        event_bus=event_bus,
        tracer=telemetry,
    )

    return TaskbotDeployContainer(
        config=config,
        runtime=runtime,
        artifact_store=artifact_store,
        state_repository=state_repository,
        certificates=certificates,
        event_bus=event_bus,
        telemetry=telemetry,
        lifecycle=lifecycle,
        provision=provision,
        teardown=TeardownStack(lifecycle, state_repository),
        status=StackStatus(lifecycle, state_repository),
    )
