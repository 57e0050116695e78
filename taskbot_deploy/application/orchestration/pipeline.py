"""
Phase Pipeline

Architectural Intent:
- Runs provisioning phases strictly one after another
- Later phases read what earlier ones produced, so nothing runs concurrently
- The first failing phase stops the run; its name travels with the error

Observability:
- Each phase is wrapped in a telemetry span when a tracer is supplied
- Phase durations are logged at DEBUG
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

PhaseFn = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass
class Phase:
    name: str
    execute: PhaseFn
    enabled: bool = True


class PhaseFailed(Exception):
    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"Phase '{phase}' failed: {cause}")
        self.phase = phase
        self.cause = cause


class Tracer(Protocol):
    def start_span(self, name: str, attributes: Optional[dict[str, str]] = None) -> Any: ...

    def end_span(self, span: Any) -> None: ...


class PhasePipeline:
    def __init__(self, phases: list[Phase], tracer: Optional[Tracer] = None) -> None:
        names = [p.name for p in phases]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate phase names: {names}")
        self.phases = phases
        self.tracer = tracer

    async def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """
        Runs every enabled phase in order. Each phase's return value is
        stored in context under its name for the phases after it.
        """
        for phase in self.phases:
            if not phase.enabled:
                logger.debug("Skipping phase %s", phase.name, extra={"phase": phase.name})
                continue

            span = self.tracer.start_span(f"provision.{phase.name}") if self.tracer else None
            started = time.monotonic()
            try:
                context[phase.name] = await phase.execute(context)
            except Exception as e:
                logger.debug(
                    "Phase %s failed after %.2fs", phase.name,
                    time.monotonic() - started, extra={"phase": phase.name},
                )
                raise PhaseFailed(phase.name, e) from e
            finally:
                if self.tracer:
                    self.tracer.end_span(span)
            logger.debug(
                "Phase %s done in %.2fs", phase.name, time.monotonic() - started,
                extra={"phase": phase.name},
            )

        return context
