"""
Provisioning Errors

Architectural Intent:
- Single taxonomy for every failure the provisioning workflow can surface
- Validation errors are raised before any artifact is written
- Lifecycle errors carry the remediation hint shown to the operator
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""


class PrerequisiteMissing(ProvisioningError):
    """The container runtime or compose plugin is not available."""


class ConfigurationError(ProvisioningError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Invalid configuration for '{field}': {message}")
        self.field = field


class MissingCertificateError(ProvisioningError):
    def __init__(self, path: str, role: str = "certificate") -> None:
        super().__init__(f"TLS {role} file not found: {path}")
        self.path = path
        self.role = role


class ArtifactWriteError(ProvisioningError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = path


class SecretGenerationError(ProvisioningError):
    """The platform's secure random source is unavailable."""


class ImagePullError(ProvisioningError):
    def __init__(self, service: str, image: str, detail: str = "") -> None:
        message = f"Failed to pull required image {image} for service '{service}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.service = service
        self.image = image


class LifecycleError(ProvisioningError):
    def __init__(self, message: str, service: Optional[str] = None) -> None:
        if service:
            message = (
                f"{message} Inspect the logs with "
                f"'docker compose logs {service}' and re-run the installer."
            )
        super().__init__(message)
        self.service = service
