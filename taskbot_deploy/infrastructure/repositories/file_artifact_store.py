"""
File Artifact Store

Architectural Intent:
- Infrastructure adapter implementing ArtifactStorePort on the local disk
- Each file is written to a sibling temp file, fsynced, chmodded and then
  renamed over the target, so a crash never leaves a half-written config
- Secret-bearing files get their restrictive mode before they are visible
"""

import logging
import os
import tempfile
from pathlib import Path
from taskbot_deploy.domain.errors import ArtifactWriteError
from taskbot_deploy.domain.ports.artifact_store_port import ArtifactStorePort
from taskbot_deploy.domain.value_objects.rendered_artifact import RenderedArtifact

logger = logging.getLogger(__name__)

# subdirectory -> mode; keys/ holds the installer's agent SSH keys
LAYOUT = {
    "certs": 0o755,
    "nginx": 0o755,
    "keys": 0o700,
}


def atomic_write(path: Path, data: bytes, mode: int) -> None:
    """Replaces path with data, or leaves the previous file untouched."""
    fd, tmp = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), mode)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class FileArtifactStore(ArtifactStorePort):
    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def prepare(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            for name, mode in LAYOUT.items():
                directory = self._root / name
                directory.mkdir(exist_ok=True)
                os.chmod(directory, mode)
        except OSError as e:
            raise ArtifactWriteError(str(self._root), e.strerror or str(e)) from e
        if not os.access(self._root, os.W_OK):
            raise ArtifactWriteError(str(self._root), "directory is not writable")

    def write_all(self, artifacts: list[RenderedArtifact]) -> list[str]:
        written = []
        for artifact in artifacts:
            target = self._root / artifact.path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                atomic_write(target, artifact.data, artifact.mode)
            except OSError as e:
                raise ArtifactWriteError(str(target), e.strerror or str(e)) from e
            logger.debug("Wrote %s (mode %o)", target, artifact.mode)
            written.append(artifact.path)
        return written
