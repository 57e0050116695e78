"""
Domain Events Package

Architectural Intent:
- Events raised by the Provisioning aggregate as phases complete or fail
- Consumed by the event bus (telemetry, audit logging)
"""

from taskbot_deploy.domain.events.event_base import (
    DomainEvent,
    ProvisioningStartedEvent,
    ArtifactsWrittenEvent,
    StackStartedEvent,
    StackTornDownEvent,
    ProvisioningFailedEvent,
)

__all__ = [
    "DomainEvent",
    "ProvisioningStartedEvent",
    "ArtifactsWrittenEvent",
    "StackStartedEvent",
    "StackTornDownEvent",
    "ProvisioningFailedEvent",
]
