"""
Provisioning Module

Architectural Intent:
- Provisioning aggregate records one run of the installer against a host
- Phase order is enforced by the transition methods, never by callers
- All state changes produce new instances to keep the run auditable
- Domain events collected here are published by the application layer

Domain Events:
- ProvisioningStartedEvent: configuration rendered, run begins
- ArtifactsWrittenEvent: env files, proxy config and compose file on disk
- StackTornDownEvent: previous containers removed
- StackStartedEvent: every service reached a running state
- ProvisioningFailedEvent: a phase raised
"""

from __future__ import annotations
from enum import Enum, auto
from typing import Optional
from taskbot_deploy.domain.events.event_base import (
    DomainEvent,
    ProvisioningStartedEvent,
    ArtifactsWrittenEvent,
    StackStartedEvent,
    StackTornDownEvent,
    ProvisioningFailedEvent,
)


class ProvisioningMode(Enum):
    INSTALL = "install"
    UPDATE = "update"
    RESET = "reset"

    @property
    def destroys_volumes(self) -> bool:
        return self is ProvisioningMode.RESET


class ProvisioningStatus(Enum):
    PENDING = auto()
    RENDERED = auto()
    ARTIFACTS_WRITTEN = auto()
    STARTED = auto()
    FAILED = auto()


class Provisioning:
    __slots__ = (
        "_run_id",
        "_mode",
        "_status",
        "_phase",
        "_error_message",
        "_domain_events",
    )

    def __init__(
        self,
        run_id: str,
        mode: ProvisioningMode,
        status: ProvisioningStatus = ProvisioningStatus.PENDING,
        phase: str = "",
        error_message: Optional[str] = None,
        domain_events: tuple[DomainEvent, ...] = (),
    ):
        self._run_id = run_id
        self._mode = mode
        self._status = status
        self._phase = phase
        self._error_message = error_message
        self._domain_events = domain_events

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def mode(self) -> ProvisioningMode:
        return self._mode

    @property
    def status(self) -> ProvisioningStatus:
        return self._status

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def domain_events(self) -> tuple[DomainEvent, ...]:
        return self._domain_events

    def _evolve(
        self,
        status: ProvisioningStatus,
        event: DomainEvent,
        phase: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> "Provisioning":
        return Provisioning(
            run_id=self._run_id,
            mode=self._mode,
            status=status,
            phase=self._phase if phase is None else phase,
            error_message=error_message,
            domain_events=self._domain_events + (event,),
        )

    def rendered(self, public_host: str) -> "Provisioning":
        if self._status != ProvisioningStatus.PENDING:
            raise ValueError("Provisioning can only render from PENDING state")
        return self._evolve(
            ProvisioningStatus.RENDERED,
            ProvisioningStartedEvent(
                aggregate_id=self._run_id,
                mode=self._mode.value,
                public_host=public_host,
            ),
            phase="render",
        )

    def artifacts_written(self, paths: list[str]) -> "Provisioning":
        if self._status != ProvisioningStatus.RENDERED:
            raise ValueError("Artifacts can only be written after rendering")
        return self._evolve(
            ProvisioningStatus.ARTIFACTS_WRITTEN,
            ArtifactsWrittenEvent(aggregate_id=self._run_id, paths=tuple(paths)),
            phase="write",
        )

    def torn_down(self, volumes_removed: bool) -> "Provisioning":
        if self._status not in (
            ProvisioningStatus.RENDERED,
            ProvisioningStatus.ARTIFACTS_WRITTEN,
        ):
            raise ValueError("Teardown requires a rendered configuration")
        if volumes_removed and not self._mode.destroys_volumes:
            raise ValueError(
                f"Volumes may only be removed in reset mode, not {self._mode.value}"
            )
        return self._evolve(
            self._status,
            StackTornDownEvent(
                aggregate_id=self._run_id, volumes_removed=volumes_removed
            ),
            phase="teardown",
        )

    def started(self, services: list[str]) -> "Provisioning":
        if self._status != ProvisioningStatus.ARTIFACTS_WRITTEN:
            raise ValueError("Stack can only start once artifacts are written")
        return self._evolve(
            ProvisioningStatus.STARTED,
            StackStartedEvent(aggregate_id=self._run_id, services=tuple(services)),
            phase="start",
        )

    def fail(self, phase: str, message: str) -> "Provisioning":
        return self._evolve(
            ProvisioningStatus.FAILED,
            ProvisioningFailedEvent(
                aggregate_id=self._run_id, phase=phase, error_message=message
            ),
            phase=phase,
            error_message=message,
        )

    def __repr__(self) -> str:
        return (
            f"Provisioning(run_id={self._run_id}, mode={self._mode.value}, "
            f"status={self._status.name}, phase={self._phase})"
        )
