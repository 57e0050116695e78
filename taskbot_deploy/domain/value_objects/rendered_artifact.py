from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Union


@dataclass(frozen=True)
class RenderedArtifact:
    """
    A generated file, relative to the deployment directory.
    Content is either text (written as UTF-8) or raw bytes.
    """
    path: str
    content: Union[str, bytes]
    mode: int = 0o644

    def __post_init__(self):
        relative = PurePosixPath(self.path)
        if not self.path or relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Artifact path must be relative: {self.path!r}")
        if not (0 <= self.mode <= 0o777):
            raise ValueError(f"Invalid file mode: {oct(self.mode)}")

    @property
    def data(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")

    def __str__(self):
        return self.path
