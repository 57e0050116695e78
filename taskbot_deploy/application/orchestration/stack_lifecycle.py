"""
Stack Lifecycle Manager

Architectural Intent:
- Idempotent lifecycle operations over a ContainerRuntimePort
- Teardown keeps named volumes unless destroy_volumes is explicitly True
- Image pulls degrade to the local cache; only a missing required image is fatal
- Start is verified by bounded polling with exponential backoff rather than
  trusting container start order

Failure Policy:
- No automatic retry of pulls or starts; errors name the service and point
  at `docker compose logs`
"""

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from taskbot_deploy.domain.errors import ImagePullError, LifecycleError
from taskbot_deploy.domain.ports.container_runtime_port import ContainerRuntimePort
from taskbot_deploy.domain.services.stack_definition import StackDefinition
from taskbot_deploy.domain.value_objects.service_state import ServiceState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadinessPolicy:
    timeout_seconds: float = 180.0
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("Readiness timeout must be positive")
        if self.initial_delay <= 0 or self.max_delay < self.initial_delay:
            raise ValueError("Readiness delays must satisfy 0 < initial <= max")
        if self.backoff_factor < 1:
            raise ValueError("Backoff factor must be >= 1")


@dataclass(frozen=True)
class PullReport:
    pulled: tuple[str, ...] = ()
    cached: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()


class StackLifecycleManager:
    def __init__(
        self,
        runtime: ContainerRuntimePort,
        readiness: Optional[ReadinessPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runtime = runtime
        self.readiness = readiness or ReadinessPolicy()
        self._sleep = sleep
        self._clock = clock

    async def check_prerequisites(self) -> None:
        await self.runtime.check_available()

    async def detect_existing(self) -> bool:
        containers = await self.runtime.ps()
        if containers:
            logger.info("Found %d existing containers", len(containers))
        return bool(containers)

    async def status(self) -> list[ServiceState]:
        return sorted(await self.runtime.ps(), key=lambda s: s.service)

    async def teardown(self, destroy_volumes: bool = False) -> None:
        if not await self.detect_existing():
            logger.info("No existing containers, nothing to tear down")
            if not destroy_volumes:
                return
        if destroy_volumes:
            logger.warning("Removing containers AND persistent volumes")
        result = await self.runtime.down(remove_volumes=destroy_volumes)
        if not result.ok:
            raise LifecycleError(
                f"Failed to stop the existing stack: {result.detail}"
            )

    async def pull_images(self, stack: StackDefinition) -> PullReport:
        pulled: list[str] = []
        cached: list[str] = []
        skipped: list[str] = []

        for service in stack.services:
            result = await self.runtime.pull(service.name)
            if result.ok:
                pulled.append(service.name)
                continue

            if await self.runtime.image_exists(service.image):
                logger.warning(
                    "Pull failed for %s (%s), using cached image: %s",
                    service.name, service.image, result.detail,
                    extra={"service": service.name},
                )
                cached.append(service.name)
            elif service.required:
                raise ImagePullError(service.name, service.image, result.detail)
            else:
                logger.warning(
                    "Optional service %s skipped: image %s unavailable (%s)",
                    service.name, service.image, result.detail,
                    extra={"service": service.name},
                )
                skipped.append(service.name)

        return PullReport(tuple(pulled), tuple(cached), tuple(skipped))

    async def start(
        self, stack: StackDefinition, skip: tuple[str, ...] = ()
    ) -> list[str]:
        services = [name for name in stack.service_names if name not in skip]
        selected = services if skip else None
        result = await self.runtime.up(selected)
        if not result.ok:
            raise LifecycleError(
                f"Failed to start containers: {result.detail}. "
                "Inspect the logs with 'docker compose logs' and re-run the installer."
            )
        await self.wait_until_ready(services)
        return services

    async def wait_until_ready(self, services: list[str]) -> None:
        policy = self.readiness
        deadline = self._clock() + policy.timeout_seconds
        delay = policy.initial_delay
        pending = list(services)

        while True:
            states = {s.service: s for s in await self.runtime.ps()}
            for name in pending:
                state = states.get(name)
                if state is not None and state.has_failed:
                    raise LifecycleError(
                        f"Service '{name}' failed to start ({state}).", service=name
                    )
            pending = [
                name for name in pending
                if name not in states or not states[name].is_ready
            ]
            if not pending:
                logger.info("All %d services are running", len(services))
                return

            remaining = deadline - self._clock()
            if remaining <= 0:
                name = pending[0]
                state = states.get(name)
                observed = str(state) if state else "no container"
                raise LifecycleError(
                    f"Service '{name}' did not reach a running state within "
                    f"{policy.timeout_seconds:g}s ({observed}; still waiting on: "
                    f"{', '.join(pending)}).",
                    service=name,
                )

            logger.debug("Waiting %.1fs for: %s", delay, ", ".join(pending))
            await self._sleep(min(delay, remaining))
            delay = min(delay * policy.backoff_factor, policy.max_delay)
