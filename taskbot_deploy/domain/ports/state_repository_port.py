"""
State Repository Port

Architectural Intent:
- Port interface for the persisted state of a deployment
- Lets a re-run find the secrets the datastore volumes were initialised with
"""

from abc import ABC, abstractmethod
from typing import Optional
from taskbot_deploy.domain.entities.deployment_state import DeploymentState


class StateRepositoryPort(ABC):
    @abstractmethod
    def load(self) -> Optional[DeploymentState]:
        """
        Returns the previous deployment's state, or None on a fresh host.
        """
        pass

    @abstractmethod
    def save(self, state: DeploymentState) -> None:
        pass

    @abstractmethod
    def delete(self) -> None:
        """
        Forgets the deployment, including its secrets. Only used on reset.
        """
        pass
