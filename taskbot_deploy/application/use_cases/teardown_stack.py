"""
Teardown Stack Use Case

Architectural Intent:
- Stops the Taskbot stack without touching the rendered artifacts
- Named volumes survive unless the operator confirmed their removal
- Removing volumes also forgets the persisted secrets, since the datastores
  they initialised no longer exist
"""

import logging
from taskbot_deploy.application.dtos.provision_dtos import TeardownRequest
from taskbot_deploy.application.orchestration.stack_lifecycle import (
    StackLifecycleManager,
)
from taskbot_deploy.domain.ports.state_repository_port import StateRepositoryPort

logger = logging.getLogger(__name__)


class TeardownStack:
    def __init__(
        self,
        lifecycle: StackLifecycleManager,
        state_repository: StateRepositoryPort,
    ):
        self.lifecycle = lifecycle
        self.state_repository = state_repository

    async def execute(self, request: TeardownRequest) -> bool:
        """
        Returns True if containers were running before the call.
        """
        existed = await self.lifecycle.detect_existing()
        await self.lifecycle.teardown(destroy_volumes=request.destroy_volumes)
        if request.destroy_volumes:
            self.state_repository.delete()
            logger.info("Deployment state removed together with the volumes")
        return existed
