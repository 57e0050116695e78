"""
Stack Status Use Case

Architectural Intent:
- Read-only view of a deployment: persisted inputs plus live container state
- Never renders, writes or starts anything
"""

from taskbot_deploy.application.dtos.provision_dtos import StatusResponse
from taskbot_deploy.application.orchestration.stack_lifecycle import (
    StackLifecycleManager,
)
from taskbot_deploy.domain.entities.deployment_config import TlsMode, TlsSettings
from taskbot_deploy.domain.ports.state_repository_port import StateRepositoryPort
from taskbot_deploy.domain.value_objects.public_host import PublicHost


class StackStatus:
    def __init__(
        self,
        lifecycle: StackLifecycleManager,
        state_repository: StateRepositoryPort,
    ):
        self.lifecycle = lifecycle
        self.state_repository = state_repository

    async def execute(self) -> StatusResponse:
        state = self.state_repository.load()
        services = tuple(await self.lifecycle.status())
        if state is None or not state.public_host:
            return StatusResponse(deployed=bool(services), services=services)

        mode = TlsMode.parse(state.tls_mode) if state.tls_mode else TlsMode.NONE
        host = PublicHost.parse(state.public_host)
        return StatusResponse(
            deployed=True,
            public_url=f"{TlsSettings(mode).scheme.value}://{host.url_host}",
            tls_mode=mode.value,
            services=services,
        )
