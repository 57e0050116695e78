"""
Provisioning DTOs

Architectural Intent:
- Data Transfer Objects for the provisioning use case boundaries
- Input validation at the application boundary
- Decouples CLI representation from the domain model
"""

from dataclasses import dataclass, field
from typing import Optional
from taskbot_deploy.domain.entities.provisioning import ProvisioningMode
from taskbot_deploy.domain.value_objects.provision_answers import ProvisionAnswers
from taskbot_deploy.domain.value_objects.service_state import ServiceState


@dataclass(frozen=True)
class ProvisionRequest:
    answers: ProvisionAnswers
    mode: ProvisioningMode = ProvisioningMode.INSTALL
    start_stack: bool = True
    confirmed_destroy: bool = False

    def __post_init__(self) -> None:
        if self.mode == ProvisioningMode.RESET and not self.confirmed_destroy:
            raise ValueError("reset destroys all data and must be confirmed")
        if self.mode == ProvisioningMode.RESET and not self.start_stack:
            raise ValueError("reset cannot be combined with render-only")


@dataclass(frozen=True)
class ProvisionResponse:
    success: bool
    public_url: str
    tls_mode: str
    artifacts: tuple[str, ...] = ()
    services: tuple[str, ...] = ()
    skipped_services: tuple[str, ...] = ()
    certificate_generated: bool = False
    host_snippet: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class TeardownRequest:
    destroy_volumes: bool = False
    confirmed_destroy: bool = False

    def __post_init__(self) -> None:
        if self.destroy_volumes and not self.confirmed_destroy:
            raise ValueError("removing volumes destroys all data and must be confirmed")


@dataclass(frozen=True)
class StatusResponse:
    deployed: bool
    public_url: Optional[str] = None
    tls_mode: Optional[str] = None
    services: tuple[ServiceState, ...] = field(default_factory=tuple)
