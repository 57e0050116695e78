"""
Secret Generator

Architectural Intent:
- Produces credentials from the OS CSPRNG (secrets module), never from random
- One independent draw per credential purpose
- Existing secrets are returned untouched; only absent keys are generated
"""

import base64
import logging
import secrets
from typing import Callable, Mapping, Optional
from taskbot_deploy.domain.entities.deployment_config import (
    GeneratedSecrets,
    SECRET_KEYS,
)
from taskbot_deploy.domain.errors import SecretGenerationError

logger = logging.getLogger(__name__)

PASSWORD_BYTES = 16
JWT_SECRET_BYTES = 48

SECRET_LENGTHS = {
    "jwt_secret": JWT_SECRET_BYTES,
    "mariadb_password": PASSWORD_BYTES,
    "mariadb_root_password": PASSWORD_BYTES,
    "mongo_password": PASSWORD_BYTES,
    "redis_password": PASSWORD_BYTES,
    "rabbitmq_password": PASSWORD_BYTES,
}


class SecretGenerator:
    def __init__(
        self,
        encoding: str = "hex",
        random_bytes: Optional[Callable[[int], bytes]] = None,
    ) -> None:
        if encoding not in ("hex", "base64"):
            raise ValueError(f"Unsupported secret encoding: {encoding}")
        self._encoding = encoding
        self._random_bytes = random_bytes or secrets.token_bytes

    def generate(self, length: int) -> str:
        """Return `length` random bytes encoded as hex or URL-safe base64."""
        if length < 8:
            raise ValueError(f"Secret length must be at least 8 bytes, got {length}")
        try:
            raw = self._random_bytes(length)
        except NotImplementedError as e:
            raise SecretGenerationError(
                "No secure random source is available on this platform"
            ) from e
        if len(raw) != length:
            raise SecretGenerationError(
                f"Secure random source returned {len(raw)} of {length} bytes"
            )
        if self._encoding == "hex":
            return raw.hex()
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    def fill_missing(self, existing: Mapping[str, str]) -> GeneratedSecrets:
        values: dict[str, str] = {}
        generated = []
        for key in SECRET_KEYS:
            current = existing.get(key)
            if current:
                values[key] = current
            else:
                values[key] = self.generate(SECRET_LENGTHS[key])
                generated.append(key)

        fresh = [values[key] for key in generated]
        preserved = {values[key] for key in SECRET_KEYS if key not in generated}
        if len(set(fresh)) != len(fresh) or preserved.intersection(fresh):
            # two purposes sharing one fresh value means a broken random source
            raise SecretGenerationError("Generated secrets are not independent")

        if generated:
            logger.info("Generated new secrets: %s", ", ".join(generated))
        else:
            logger.debug("All secrets preserved from previous deployment")
        return GeneratedSecrets(**values)
