"""
Domain Events Module

Architectural Intent:
- Base class for events raised by the Provisioning aggregate
- Events are immutable and capture significant provisioning milestones
- Events are collected in the aggregate and dispatched via the event bus
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, UTC
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    aggregate_id: str = ""
    occurred_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(), compare=False, repr=False
    )

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        return data


@dataclass(frozen=True)
class ProvisioningStartedEvent(DomainEvent):
    mode: str = ""
    public_host: str = ""


@dataclass(frozen=True)
class ArtifactsWrittenEvent(DomainEvent):
    paths: tuple[str, ...] = ()


@dataclass(frozen=True)
class StackStartedEvent(DomainEvent):
    services: tuple[str, ...] = ()


@dataclass(frozen=True)
class StackTornDownEvent(DomainEvent):
    volumes_removed: bool = False


@dataclass(frozen=True)
class ProvisioningFailedEvent(DomainEvent):
    phase: str = ""
    error_message: str = ""
