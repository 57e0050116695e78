"""
Provision Stack Use Case

Architectural Intent:
- Orchestrates install, update and reset of the Taskbot stack
- Renders everything in memory first: validation errors abort before any
  file is written or any container is touched
- Phases run strictly in sequence through PhasePipeline

Phase Order:
    prerequisites -> render -> reset -> write -> sync -> teardown -> pull -> start

Data Safety:
- update/install keep named volumes and reuse persisted secrets
- update/install refuse to run when containers exist but no secrets are
  persisted, since new secrets would not match the initialised volumes
- reset removes volumes and state before new secrets reach disk, so the
  datastores are always initialised with the secrets that are on disk
"""

from __future__ import annotations
import dataclasses
import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Optional
from taskbot_deploy.application.dtos.provision_dtos import (
    ProvisionRequest,
    ProvisionResponse,
)
from taskbot_deploy.application.orchestration.pipeline import (
    Phase,
    PhaseFailed,
    PhasePipeline,
    Tracer,
)
from taskbot_deploy.application.orchestration.stack_lifecycle import (
    PullReport,
    StackLifecycleManager,
)
from taskbot_deploy.domain.entities.deployment_config import DeploymentConfig, TlsMode
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.entities.provisioning import Provisioning, ProvisioningMode
from taskbot_deploy.domain.errors import (
    ConfigurationError,
    MissingCertificateError,
    PrerequisiteMissing,
)
from taskbot_deploy.domain.ports.artifact_store_port import ArtifactStorePort
from taskbot_deploy.domain.ports.certificate_port import CertificatePort
from taskbot_deploy.domain.ports.event_bus_port import EventBusPort
from taskbot_deploy.domain.ports.state_repository_port import StateRepositoryPort
from taskbot_deploy.domain.services.config_renderer import ConfigurationRenderer
from taskbot_deploy.domain.services.env_files import EnvFileWriter
from taskbot_deploy.domain.services.proxy_config import (
    FULLCHAIN,
    HOST_SNIPPET,
    PRIVKEY,
    ProxyConfigGenerator,
)
from taskbot_deploy.domain.services.stack_definition import (
    StackDefinition,
    build_stack,
)
from taskbot_deploy.domain.value_objects.rendered_artifact import RenderedArtifact

logger = logging.getLogger(__name__)

CERT_DIR = "certs"


class ProvisionStack:
    def __init__(
        self,
        renderer: ConfigurationRenderer,
        env_writer: EnvFileWriter,
        proxy_generator: ProxyConfigGenerator,
        compose_renderer: Callable[[StackDefinition], RenderedArtifact],
        artifact_store: ArtifactStorePort,
        state_repository: StateRepositoryPort,
        certificates: CertificatePort,
        lifecycle: StackLifecycleManager,
        event_bus: Optional[EventBusPort] = None,
        tracer: Optional[Tracer] = None,
    ):
        self.renderer = renderer
        self.env_writer = env_writer
        self.proxy_generator = proxy_generator
        self.compose_renderer = compose_renderer
        self.artifact_store = artifact_store
        self.state_repository = state_repository
        self.certificates = certificates
        self.lifecycle = lifecycle
        self.event_bus = event_bus
        self.tracer = tracer

    async def check_secrets_recoverable(self, request: ProvisionRequest) -> None:
        """
        Refuses to generate new secrets for a project whose containers, and so
        whose data volumes, already exist. Reset is exempt: it removes them.
        """
        if request.mode == ProvisioningMode.RESET:
            return
        previous = self.state_repository.load()
        if previous is not None and previous.has_secrets:
            return
        try:
            existing = await self.lifecycle.detect_existing()
        except PrerequisiteMissing:
            if request.start_stack:
                raise
            # render-only: no runtime means no containers to conflict with
            logger.debug("Container runtime unavailable, skipping existing-stack check")
            return
        if existing:
            raise ConfigurationError(
                "secrets",
                "Taskbot containers already exist for this project but no "
                "deployment state with secrets was found in "
                f"{self.artifact_store.root}. Restore deployment.json or the "
                "installer's .env there, or run "
                "'taskbot-deploy reset' to delete all data and start over.",
            )

    def render_config(self, request: ProvisionRequest) -> DeploymentConfig:
        previous = self.state_repository.load()
        if previous and request.mode == ProvisioningMode.RESET:
            # keep the operator's answers, forget the secrets
            previous = dataclasses.replace(previous, secrets={})
        return self.renderer.render(request.answers, previous)

    def render_artifacts(
        self, config: DeploymentConfig
    ) -> tuple[StackDefinition, list[RenderedArtifact]]:
        stack = build_stack(config)
        artifacts = [
            self.compose_renderer(stack),
            *self.env_writer.render(config),
            *self.proxy_generator.render(config),
            *self._user_certificates(config),
        ]
        return stack, artifacts

    async def execute(self, request: ProvisionRequest) -> ProvisionResponse:
        provisioning = Provisioning(run_id=uuid.uuid4().hex[:12], mode=request.mode)
        start = request.start_stack
        reset = request.mode == ProvisioningMode.RESET

        async def prerequisites_step(ctx: dict[str, Any]) -> None:
            await self.lifecycle.check_prerequisites()

        async def render_step(ctx: dict[str, Any]) -> DeploymentConfig:
            nonlocal provisioning
            await self.check_secrets_recoverable(request)
            config = self.render_config(request)
            ctx["stack"], ctx["artifacts"] = self.render_artifacts(config)
            provisioning = provisioning.rendered(str(config.public_host))
            return config

        async def reset_step(ctx: dict[str, Any]) -> None:
            nonlocal provisioning
            await self.lifecycle.teardown(destroy_volumes=True)
            self.state_repository.delete()
            provisioning = provisioning.torn_down(volumes_removed=True)

        async def write_step(ctx: dict[str, Any]) -> bool:
            nonlocal provisioning
            config: DeploymentConfig = ctx["render"]
            self.artifact_store.prepare()
            written = self.artifact_store.write_all(ctx["artifacts"])
            generated = False
            if config.tls.mode == TlsMode.SELF_SIGNED:
                generated = await self.certificates.ensure_self_signed(
                    self.artifact_store.root / CERT_DIR, config.public_host
                )
            self.state_repository.save(DeploymentState.from_config(config))
            provisioning = provisioning.artifacts_written(written)
            logger.info("Wrote %d artifacts to %s", len(written), self.artifact_store.root)
            return generated

        async def sync_step(ctx: dict[str, Any]) -> None:
            await self.lifecycle.runtime.sync(self.artifact_store.root)

        async def teardown_step(ctx: dict[str, Any]) -> None:
            nonlocal provisioning
            await self.lifecycle.teardown(destroy_volumes=False)
            provisioning = provisioning.torn_down(volumes_removed=False)

        async def pull_step(ctx: dict[str, Any]) -> PullReport:
            return await self.lifecycle.pull_images(ctx["stack"])

        async def start_step(ctx: dict[str, Any]) -> list[str]:
            nonlocal provisioning
            report: PullReport = ctx["pull"]
            services = await self.lifecycle.start(ctx["stack"], skip=report.skipped)
            provisioning = provisioning.started(services)
            return services

        pipeline = PhasePipeline(
            [
                Phase("prerequisites", prerequisites_step, enabled=start),
                Phase("render", render_step),
                Phase("reset", reset_step, enabled=reset),
                Phase("write", write_step),
                Phase("sync", sync_step, enabled=start),
                Phase("teardown", teardown_step, enabled=start and not reset),
                Phase("pull", pull_step, enabled=start),
                Phase("start", start_step, enabled=start),
            ],
            tracer=self.tracer,
        )

        try:
            ctx = await pipeline.run({})
        except PhaseFailed as e:
            provisioning = provisioning.fail(e.phase, str(e.cause))
            logger.error("Provisioning failed in phase %s: %s", e.phase, e.cause)
            await self._publish(provisioning)
            raise e.cause

        await self._publish(provisioning)
        config: DeploymentConfig = ctx["render"]
        artifacts: list[RenderedArtifact] = ctx["artifacts"]
        report: Optional[PullReport] = ctx.get("pull")
        return ProvisionResponse(
            success=True,
            public_url=config.public_url,
            tls_mode=config.tls.mode.value,
            artifacts=tuple(a.path for a in artifacts),
            services=tuple(ctx.get("start") or ()),
            skipped_services=report.skipped if report else (),
            certificate_generated=bool(ctx.get("write")),
            host_snippet=next(
                (a.content for a in artifacts if a.path == HOST_SNIPPET), None
            ),
            message="Stack is running" if start else "Artifacts rendered",
        )

    def _user_certificates(self, config: DeploymentConfig) -> list[RenderedArtifact]:
        if config.tls.mode != TlsMode.USER_PROVIDED:
            return []
        artifacts = []
        for source, target, mode, role in (
            (config.tls.cert_path, FULLCHAIN, 0o644, "certificate"),
            (config.tls.key_path, PRIVKEY, 0o600, "private key"),
        ):
            try:
                data = Path(source).read_bytes()
            except OSError as e:
                raise MissingCertificateError(source, role) from e
            artifacts.append(RenderedArtifact(f"{CERT_DIR}/{target}", data, mode))
        return artifacts

    async def _publish(self, provisioning: Provisioning) -> None:
        if self.event_bus:
            await self.event_bus.publish(list(provisioning.domain_events))
