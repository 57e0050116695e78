"""
Application Orchestration Package

Architectural Intent:
- Sequential phase pipeline for the provisioning workflow
- Stack lifecycle operations over the container runtime port
"""

from taskbot_deploy.application.orchestration.pipeline import (
    Phase,
    PhasePipeline,
    PhaseFailed,
)
from taskbot_deploy.application.orchestration.stack_lifecycle import (
    StackLifecycleManager,
    ReadinessPolicy,
    PullReport,
)

__all__ = [
    "Phase",
    "PhasePipeline",
    "PhaseFailed",
    "StackLifecycleManager",
    "ReadinessPolicy",
    "PullReport",
]
