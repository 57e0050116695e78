from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one container-runtime command."""
    ok: bool
    stdout: str = ""
    stderr: str = ""

    @property
    def detail(self) -> str:
        return (self.stderr or self.stdout).strip()


@dataclass(frozen=True)
class ServiceState:
    """
    Runtime state of one compose service, as reported by `compose ps`.
    `health` is empty when the service defines no healthcheck.
    """
    service: str
    state: str
    health: str = ""

    @property
    def is_running(self) -> bool:
        return self.state == "running"

    @property
    def is_ready(self) -> bool:
        return self.is_running and self.health in ("", "healthy")

    @property
    def has_failed(self) -> bool:
        return self.state in ("exited", "dead") or self.health == "unhealthy"

    def __str__(self):
        if self.health:
            return f"{self.service}: {self.state} ({self.health})"
        return f"{self.service}: {self.state}"
