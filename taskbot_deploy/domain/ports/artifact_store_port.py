"""
Artifact Store Port

Architectural Intent:
- Port interface for writing rendered artifacts into the deployment directory
- Every write is atomic: readers see the old file or the new one, never half
- Implemented by FileArtifactStore
"""

from abc import ABC, abstractmethod
from pathlib import Path
from taskbot_deploy.domain.value_objects.rendered_artifact import RenderedArtifact


class ArtifactStorePort(ABC):
    """
    Port interface for the on-disk deployment directory.
    """

    @property
    @abstractmethod
    def root(self) -> Path:
        pass

    @abstractmethod
    def prepare(self) -> None:
        """
        Creates the directory layout and raises ArtifactWriteError if the
        deployment directory is not writable.
        """
        pass

    @abstractmethod
    def write_all(self, artifacts: list[RenderedArtifact]) -> list[str]:
        """
        Writes each artifact atomically and returns the written paths.
        """
        pass
