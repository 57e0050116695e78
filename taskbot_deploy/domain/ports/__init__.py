"""
Domain Ports Package

Architectural Intent:
- Port interfaces for everything outside the provisioning logic
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from taskbot_deploy.domain.ports.container_runtime_port import ContainerRuntimePort
from taskbot_deploy.domain.ports.artifact_store_port import ArtifactStorePort
from taskbot_deploy.domain.ports.certificate_port import CertificatePort
from taskbot_deploy.domain.ports.state_repository_port import StateRepositoryPort
from taskbot_deploy.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "ContainerRuntimePort",
    "ArtifactStorePort",
    "CertificatePort",
    "StateRepositoryPort",
    "EventBusPort",
]
