"""Tests for the ProvisionStack use case."""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from taskbot_deploy.application.dtos.provision_dtos import ProvisionRequest
from taskbot_deploy.application.orchestration.stack_lifecycle import (
    ReadinessPolicy,
    StackLifecycleManager,
)
from taskbot_deploy.application.use_cases.provision_stack import ProvisionStack
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.entities.provisioning import ProvisioningMode
from taskbot_deploy.domain.errors import (
    ConfigurationError,
    ImagePullError,
    MissingCertificateError,
    PrerequisiteMissing,
)
from taskbot_deploy.domain.events.event_base import (
    ArtifactsWrittenEvent,
    ProvisioningFailedEvent,
    ProvisioningStartedEvent,
    StackStartedEvent,
    StackTornDownEvent,
)
from taskbot_deploy.domain.ports.artifact_store_port import ArtifactStorePort
from taskbot_deploy.domain.ports.container_runtime_port import ContainerRuntimePort
from taskbot_deploy.domain.ports.state_repository_port import StateRepositoryPort
from taskbot_deploy.domain.services.config_renderer import ConfigurationRenderer
from taskbot_deploy.domain.services.env_files import EnvFileWriter
from taskbot_deploy.domain.services.proxy_config import ProxyConfigGenerator
from taskbot_deploy.domain.services.secret_generator import SecretGenerator
from taskbot_deploy.domain.services.stack_definition import COMPOSE_FILE
from taskbot_deploy.domain.value_objects.provision_answers import ProvisionAnswers
from taskbot_deploy.domain.value_objects.rendered_artifact import RenderedArtifact
from taskbot_deploy.domain.value_objects.service_state import (
    CommandResult,
    ServiceState,
)


class FakeRuntime(ContainerRuntimePort):
    def __init__(self, log, existing=(), unavailable=()):
        self.log = log
        self.running = set(existing)
        self.unavailable = set(unavailable)

    async def check_available(self):
        self.log.append("check_available")

    async def sync(self, local_dir):
        self.log.append("sync")

    async def ps(self):
        return [ServiceState(name, "running") for name in sorted(self.running)]

    async def pull(self, service):
        self.log.append(f"pull:{service}")
        return CommandResult(service not in self.unavailable, stderr="not found")

    async def image_exists(self, image):
        return False

    async def up(self, services=None):
        self.log.append(f"up:{services}")
        self.running.update(services or [
            "mariadb", "redis", "rabbitmq", "mongodb", "taskbot-api-service",
            "gateway", "installer", "frontend", "nginx",
        ])
        return CommandResult(True)

    async def down(self, remove_volumes=False):
        self.log.append(f"down:volumes={remove_volumes}")
        self.running.clear()
        return CommandResult(True)


class MemoryStore(ArtifactStorePort):
    def __init__(self, log, root):
        self.log = log
        self._root = root
        self.files = {}

    @property
    def root(self):
        return self._root

    def prepare(self):
        pass

    def write_all(self, artifacts):
        self.log.append("write")
        for artifact in artifacts:
            self.files[artifact.path] = artifact
        return [a.path for a in artifacts]


class MemoryState(StateRepositoryPort):
    def __init__(self, log, state=None):
        self.log = log
        self.state = state

    def load(self):
        return self.state

    def save(self, state):
        self.log.append("save_state")
        self.state = state

    def delete(self):
        self.log.append("delete_state")
        self.state = None


@pytest.fixture
def harness(tmp_path, counting_random):
    class Harness:
        def __init__(self, existing=(), unavailable=(), state=None):
            self.log = []
            self.runtime = FakeRuntime(self.log, existing, unavailable)
            self.store = MemoryStore(self.log, tmp_path)
            self.state = MemoryState(self.log, state)
            self.certificates = MagicMock()
            self.certificates.ensure_self_signed = AsyncMock(return_value=True)
            self.event_bus = MagicMock()
            self.event_bus.publish = AsyncMock()
            self.tracer = MagicMock()
            self.use_case = ProvisionStack(
                renderer=ConfigurationRenderer(SecretGenerator(random_bytes=counting_random)),
                env_writer=EnvFileWriter(),
                proxy_generator=ProxyConfigGenerator(),
                compose_renderer=lambda stack: RenderedArtifact(COMPOSE_FILE, "services: {}\n"),
                artifact_store=self.store,
                state_repository=self.state,
                certificates=self.certificates,
                lifecycle=StackLifecycleManager(
                    self.runtime,
                    ReadinessPolicy(timeout_seconds=5),
                    sleep=AsyncMock(),
                ),
                event_bus=self.event_bus,
                tracer=self.tracer,
            )

        @property
        def published(self):
            return [
                e for call in self.event_bus.publish.call_args_list for e in call.args[0]
            ]

        def actions(self):
            return [entry for entry in self.log if not entry.startswith("pull:")]

    return Harness


def _answers(**overrides):
    values = {"public_host": "taskbot.example.com", "license_token": "lic-123456"}
    values.update(overrides)
    return ProvisionAnswers(**values)


class TestInstall:
    @pytest.mark.asyncio
    async def test_fresh_install(self, harness):
        h = harness()
        response = await h.use_case.execute(ProvisionRequest(answers=_answers()))

        assert response.success
        assert response.public_url == "http://taskbot.example.com"
        assert response.tls_mode == "none"
        assert "nginx" in response.services
        assert COMPOSE_FILE in response.artifacts
        assert "nginx/app.conf" in response.artifacts
        assert response.message == "Stack is running"
        assert h.actions() == ["check_available", "write", "save_state", "sync", "up:None"]
        assert h.state.state.has_secrets

    @pytest.mark.asyncio
    async def test_events_published(self, harness):
        h = harness()
        await h.use_case.execute(ProvisionRequest(answers=_answers()))
        assert [type(e) for e in h.published] == [
            ProvisioningStartedEvent,
            ArtifactsWrittenEvent,
            StackTornDownEvent,
            StackStartedEvent,
        ]
        assert h.published[0].public_host == "taskbot.example.com"

    @pytest.mark.asyncio
    async def test_phase_spans(self, harness):
        h = harness()
        await h.use_case.execute(ProvisionRequest(answers=_answers()))
        spans = [c.args[0] for c in h.tracer.start_span.call_args_list]
        assert spans == [
            "provision.prerequisites", "provision.render", "provision.write",
            "provision.sync", "provision.teardown", "provision.pull", "provision.start",
        ]

    @pytest.mark.asyncio
    async def test_existing_containers_replaced_keeping_volumes(
        self, harness, secrets_factory
    ):
        previous = DeploymentState(secrets=secrets_factory().to_dict())
        h = harness(existing=["redis"], state=previous)
        await h.use_case.execute(ProvisionRequest(answers=_answers()))
        assert "down:volumes=False" in h.log
        assert h.log.index("write") < h.log.index("down:volumes=False")

    @pytest.mark.asyncio
    async def test_optional_service_skipped(self, harness):
        h = harness(unavailable=["installer"])
        response = await h.use_case.execute(ProvisionRequest(answers=_answers()))
        assert response.skipped_services == ("installer",)
        assert "installer" not in response.services
        assert h.actions()[-1].startswith("up:['mariadb'")

    @pytest.mark.asyncio
    async def test_required_image_missing(self, harness):
        h = harness(unavailable=["gateway"])
        with pytest.raises(ImagePullError):
            await h.use_case.execute(ProvisionRequest(answers=_answers()))
        failed = h.published[-1]
        assert isinstance(failed, ProvisioningFailedEvent)
        assert failed.phase == "pull"
        assert not any(a.startswith("up:") for a in h.log)


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_licence_writes_nothing(self, harness):
        h = harness()
        with pytest.raises(ConfigurationError):
            await h.use_case.execute(ProvisionRequest(answers=_answers(license_token=None)))
        assert h.log == ["check_available"]
        assert h.store.files == {}
        assert [type(e) for e in h.published] == [ProvisioningFailedEvent]
        assert h.published[0].phase == "render"

    @pytest.mark.asyncio
    async def test_missing_user_certificate(self, harness, tmp_path):
        h = harness()
        answers = _answers(
            tls_mode="user_provided",
            cert_path=str(tmp_path / "missing.pem"),
            key_path=str(tmp_path / "missing.key"),
        )
        with pytest.raises(MissingCertificateError):
            await h.use_case.execute(ProvisionRequest(answers=answers, start_stack=False))
        assert h.store.files == {}


class TestRenderOnly:
    @pytest.mark.asyncio
    async def test_no_runtime_calls(self, harness):
        h = harness()
        response = await h.use_case.execute(
            ProvisionRequest(answers=_answers(), start_stack=False)
        )
        assert h.log == ["write", "save_state"]
        assert response.services == ()
        assert response.message == "Artifacts rendered"


class TestUpdate:
    @pytest.mark.asyncio
    async def test_secrets_reused(self, harness, secrets_factory):
        secrets = secrets_factory().to_dict()
        previous = DeploymentState(
            public_host="taskbot.example.com", license_token="lic-123456", secrets=secrets
        )
        h = harness(existing=["redis"], state=previous)
        await h.use_case.execute(ProvisionRequest(
            answers=ProvisionAnswers(), mode=ProvisioningMode.UPDATE,
        ))
        assert h.state.state.secrets == secrets
        env = h.store.files[".env.mariadb"].content
        assert "mariadbpass0001" in env


class TestExistingStackWithoutSecrets:
    DATASTORES = ["mariadb", "mongodb", "redis", "rabbitmq"]

    @pytest.mark.asyncio
    async def test_update_refuses_fresh_secrets(self, harness):
        h = harness(existing=self.DATASTORES)
        with pytest.raises(ConfigurationError, match="reset") as excinfo:
            await h.use_case.execute(ProvisionRequest(
                answers=_answers(), mode=ProvisioningMode.UPDATE,
            ))
        assert excinfo.value.field == "secrets"
        assert h.log == ["check_available"]
        assert h.store.files == {}
        assert h.state.state is None
        assert h.runtime.running == set(self.DATASTORES)
        assert h.published[-1].phase == "render"

    @pytest.mark.asyncio
    async def test_install_refuses_when_state_has_no_secrets(self, harness):
        h = harness(
            existing=["redis"],
            state=DeploymentState(public_host="taskbot.example.com"),
        )
        with pytest.raises(ConfigurationError):
            await h.use_case.execute(ProvisionRequest(answers=_answers()))
        assert "write" not in h.log
        assert not any(entry.startswith("down:") for entry in h.log)

    @pytest.mark.asyncio
    async def test_render_only_refuses(self, harness):
        h = harness(existing=["redis"])
        with pytest.raises(ConfigurationError):
            await h.use_case.execute(
                ProvisionRequest(answers=_answers(), start_stack=False)
            )
        assert h.store.files == {}

    @pytest.mark.asyncio
    async def test_render_only_without_runtime(self, harness):
        h = harness()
        h.runtime.ps = AsyncMock(side_effect=PrerequisiteMissing("docker not found"))
        response = await h.use_case.execute(
            ProvisionRequest(answers=_answers(), start_stack=False)
        )
        assert response.success
        assert h.log == ["write", "save_state"]

    @pytest.mark.asyncio
    async def test_reset_is_allowed(self, harness):
        h = harness(existing=self.DATASTORES)
        response = await h.use_case.execute(ProvisionRequest(
            answers=_answers(), mode=ProvisioningMode.RESET, confirmed_destroy=True,
        ))
        assert response.success
        assert h.log.index("down:volumes=True") < h.log.index("write")


class TestReset:
    @pytest.mark.asyncio
    async def test_volumes_removed_before_new_secrets_written(self, harness, secrets_factory):
        secrets = secrets_factory().to_dict()
        previous = DeploymentState(
            public_host="old.example.com", license_token="lic-123456", secrets=secrets
        )
        h = harness(existing=["redis"], state=previous)
        response = await h.use_case.execute(ProvisionRequest(
            answers=ProvisionAnswers(), mode=ProvisioningMode.RESET, confirmed_destroy=True,
        ))

        assert h.actions()[:5] == [
            "check_available", "down:volumes=True", "delete_state", "write", "save_state",
        ]
        assert "down:volumes=False" not in h.log
        assert h.state.state.secrets["mariadb_password"] != secrets["mariadb_password"]
        assert response.public_url == "http://old.example.com"
        torn = [e for e in h.published if isinstance(e, StackTornDownEvent)]
        assert [e.volumes_removed for e in torn] == [True]


class TestTls:
    @pytest.mark.asyncio
    async def test_self_signed_generated(self, harness, tmp_path):
        h = harness()
        response = await h.use_case.execute(
            ProvisionRequest(answers=_answers(tls_mode="self_signed"), start_stack=False)
        )
        cert_dir, host = h.certificates.ensure_self_signed.call_args.args
        assert cert_dir == Path(tmp_path) / "certs"
        assert str(host) == "taskbot.example.com"
        assert response.certificate_generated
        assert response.public_url == "https://taskbot.example.com"

    @pytest.mark.asyncio
    async def test_user_certificates_copied(self, harness, tmp_path):
        cert = tmp_path / "fullchain.pem"
        key = tmp_path / "privkey.pem"
        cert.write_bytes(b"CERT")
        key.write_bytes(b"KEY")
        h = harness()
        await h.use_case.execute(ProvisionRequest(
            answers=_answers(tls_mode="user_provided", cert_path=str(cert), key_path=str(key)),
            start_stack=False,
        ))
        assert h.store.files["certs/fullchain.pem"].data == b"CERT"
        assert h.store.files["certs/privkey.pem"].mode == 0o600
        h.certificates.ensure_self_signed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_host_delegated_returns_snippet(self, harness):
        h = harness()
        response = await h.use_case.execute(
            ProvisionRequest(answers=_answers(tls_mode="host_delegated"), start_stack=False)
        )
        assert "proxy_pass http://127.0.0.1:3000;" in response.host_snippet
        assert "nginx/app.conf" not in response.artifacts


class TestRequestValidation:
    def test_reset_requires_confirmation(self):
        with pytest.raises(ValueError, match="confirmed"):
            ProvisionRequest(answers=_answers(), mode=ProvisioningMode.RESET)

    def test_reset_cannot_be_render_only(self):
        with pytest.raises(ValueError, match="render-only"):
            ProvisionRequest(
                answers=_answers(), mode=ProvisioningMode.RESET,
                confirmed_destroy=True, start_stack=False,
            )
