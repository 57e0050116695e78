"""
JSON State Repository

Architectural Intent:
- Infrastructure adapter implementing StateRepositoryPort
- deployment.json (mode 0600) in the deployment directory holds the
  operator's answers and the generated secrets
- Hosts provisioned by the shell installer have no deployment.json; their
  secrets are recovered from the .env files it left behind, because the
  datastore volumes were initialised with them

Security:
- The state file is written atomically with owner-only permissions
- A corrupt state file is an error, never silently replaced: regenerating
  secrets would lock the stack out of its own datastores
"""

import json
import logging
from pathlib import Path
from typing import Optional
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.errors import ConfigurationError
from taskbot_deploy.domain.ports.state_repository_port import StateRepositoryPort
from taskbot_deploy.domain.services.env_files import (
    API_ENV,
    INSTALLER_ENV,
    MARIADB_ENV,
    MONGODB_ENV,
    parse_env,
)
from taskbot_deploy.domain.value_objects.public_host import PublicHost
from taskbot_deploy.infrastructure.repositories.file_artifact_store import atomic_write

logger = logging.getLogger(__name__)

STATE_FILE = "deployment.json"
STATE_FILE_MODE = 0o600

# secret field -> env keys to try, first match wins
LEGACY_SECRET_KEYS = {
    "mariadb_password": ("JDBC_PWD", "MYSQL_PASSWORD"),
    "mariadb_root_password": ("MYSQL_ROOT_PASSWORD", "JDBC_PWD"),
    "mongo_password": ("MONGO_INITDB_ROOT_PASSWORD",),
    "redis_password": ("REDIS_PWD", "REDIS_PASSWORD"),
    "rabbitmq_password": ("RABBITMQ_PASSWORD", "RABBITMQ_DEFAULT_PASS"),
    "jwt_secret": ("JWT_SECRET", "JWT_BASE64_SECRET"),
}


class JsonStateRepository(StateRepositoryPort):
    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @property
    def path(self) -> Path:
        return self.directory / STATE_FILE

    def load(self) -> Optional[DeploymentState]:
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError:
            return self._import_legacy()
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                STATE_FILE, f"{self.path} is corrupt ({e}); restore it or run reset"
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(STATE_FILE, f"{self.path} is not a JSON object")
        return DeploymentState.from_dict(data)

    def save(self, state: DeploymentState) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.to_dict(), indent=2) + "\n"
        atomic_write(self.path, payload.encode(), STATE_FILE_MODE)
        logger.debug("Saved deployment state to %s", self.path)

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)

    def _import_legacy(self) -> Optional[DeploymentState]:
        env: dict[str, str] = {}
        for name in (API_ENV, MARIADB_ENV, MONGODB_ENV, INSTALLER_ENV):
            path = self.directory / name
            if path.exists():
                for key, value in parse_env(path.read_text()).items():
                    env.setdefault(key, value)
        if not env:
            return None

        secrets = {}
        for field_name, keys in LEGACY_SECRET_KEYS.items():
            value = next((env[k] for k in keys if env.get(k)), None)
            if value:
                secrets[field_name] = value

        public_host = None
        if env.get("PUBLIC_DOMAIN"):
            try:
                public_host = str(PublicHost.parse(env["PUBLIC_DOMAIN"]))
            except ValueError:
                logger.warning("Ignoring unparseable PUBLIC_DOMAIN in legacy .env")

        logger.info(
            "Imported %d secrets from a previous installation in %s",
            len(secrets), self.directory,
        )
        return DeploymentState(
            public_host=public_host,
            license_token=env.get("LICENSE_TOKEN") or None,
            secrets=secrets,
        )
