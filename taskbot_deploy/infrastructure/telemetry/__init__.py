"""
taskbot-deploy Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for provisioning runs
- Phase spans and run duration metrics
"""

from taskbot_deploy.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    PROVISION_DURATION_METRIC,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "PROVISION_DURATION_METRIC",
    "create_exporter",
]
