"""
Container Runtime Port

Architectural Intent:
- Port interface for the container orchestration API (docker compose)
- Operations mirror the compose verbs the lifecycle needs: ps, pull, up, down
- Implemented by ComposeAdapter (local) and FabricComposeAdapter (over SSH)
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from taskbot_deploy.domain.value_objects.service_state import (
    CommandResult,
    ServiceState,
)


class ContainerRuntimePort(ABC):
    """
    Port interface for running compose commands against one project.
    """

    @abstractmethod
    async def check_available(self) -> None:
        """
        Raises PrerequisiteMissing if docker or the compose plugin is absent.
        """
        pass

    @abstractmethod
    async def sync(self, local_dir: Path) -> None:
        """
        Makes the rendered deployment directory visible to the runtime.
        A no-op for a local runtime.
        """
        pass

    @abstractmethod
    async def ps(self) -> list[ServiceState]:
        """
        Lists every container of the project, running or not.
        """
        pass

    @abstractmethod
    async def pull(self, service: str) -> CommandResult:
        """
        Pulls the image of a single service.
        """
        pass

    @abstractmethod
    async def image_exists(self, image: str) -> bool:
        """
        True if the image is already present in the local image cache.
        """
        pass

    @abstractmethod
    async def up(self, services: Optional[list[str]] = None) -> CommandResult:
        """
        Starts the project detached, removing orphaned containers.
        """
        pass

    @abstractmethod
    async def down(self, remove_volumes: bool = False) -> CommandResult:
        """
        Stops and removes the project's containers, and its named volumes
        only when remove_volumes is True.
        """
        pass
