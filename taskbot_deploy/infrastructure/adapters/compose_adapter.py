"""
Compose Adapter

Architectural Intent:
- Infrastructure adapter implementing ContainerRuntimePort with the
  `docker compose` CLI on the local host
- Every command is scoped to one project name and one compose file
- Uses subprocess for docker CLI operations wrapped in async

Security:
- Arguments are passed as a list, never through a shell
- Command output may echo env values; it is only surfaced on failure
"""

import asyncio
import json
import logging
import subprocess
from pathlib import Path
from typing import Optional
from taskbot_deploy.domain.errors import PrerequisiteMissing
from taskbot_deploy.domain.ports.container_runtime_port import ContainerRuntimePort
from taskbot_deploy.domain.services.stack_definition import COMPOSE_FILE
from taskbot_deploy.domain.value_objects.service_state import (
    CommandResult,
    ServiceState,
)

logger = logging.getLogger(__name__)

PULL_TIMEOUT = 900
COMMAND_TIMEOUT = 300


def parse_ps_output(output: str) -> list[ServiceState]:
    """
    Parses `docker compose ps --format json`. Compose v2.21+ prints one
    object per line; older releases print a single JSON array.
    """
    text = output.strip()
    if not text:
        return []
    if text.startswith("["):
        rows = json.loads(text)
    else:
        rows = []
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug("Ignoring non-JSON line from compose ps: %s", line)

    states = []
    for row in rows:
        service = row.get("Service") or row.get("Name", "")
        if not service:
            continue
        states.append(
            ServiceState(
                service=service,
                state=str(row.get("State", "")).lower(),
                health=str(row.get("Health") or "").lower(),
            )
        )
    return states


class ComposeAdapter(ContainerRuntimePort):
    def __init__(self, project_dir: Path, project_name: str = "taskbot"):
        self.project_dir = Path(project_dir)
        self.project_name = project_name

    async def compose_args(self, *args: str) -> list[str]:
        # without a compose file, compose falls back to the project labels
        argv = ["docker", "compose", "-p", self.project_name]
        if await self._has_compose_file():
            argv += ["-f", COMPOSE_FILE]
        return argv + list(args)

    async def _has_compose_file(self) -> bool:
        return (self.project_dir / COMPOSE_FILE).exists()

    async def _run(
        self, argv: list[str], timeout: int = COMMAND_TIMEOUT
    ) -> CommandResult:
        def _execute():
            logger.debug("Running: %s", " ".join(argv))
            result = subprocess.run(
                argv,
                cwd=self.project_dir if self.project_dir.is_dir() else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            return CommandResult(result.returncode == 0, result.stdout, result.stderr)

        try:
            return await asyncio.get_running_loop().run_in_executor(None, _execute)
        except FileNotFoundError as e:
            raise PrerequisiteMissing(
                f"'{argv[0]}' not found. Install Docker Engine and the compose "
                "plugin, then re-run the installer."
            ) from e
        except subprocess.TimeoutExpired:
            return CommandResult(False, stderr=f"timed out after {timeout}s")

    async def check_available(self) -> None:
        result = await self._run(["docker", "compose", "version"])
        if not result.ok:
            raise PrerequisiteMissing(
                f"The docker compose plugin is not available: {result.detail}"
            )
        result = await self._run(["docker", "info", "--format", "{{.ServerVersion}}"])
        if not result.ok:
            raise PrerequisiteMissing(
                f"The Docker daemon is not reachable: {result.detail}"
            )

    async def sync(self, local_dir: Path) -> None:
        if Path(local_dir).resolve() != self.project_dir.resolve():
            raise ValueError(
                f"Local runtime expects artifacts in {self.project_dir}, got {local_dir}"
            )

    async def ps(self) -> list[ServiceState]:
        argv = await self.compose_args("ps", "-a", "--format", "json")
        result = await self._run(argv)
        if not result.ok:
            logger.warning("compose ps failed: %s", result.detail)
            return []
        return parse_ps_output(result.stdout)

    async def pull(self, service: str) -> CommandResult:
        return await self._run(
            await self.compose_args("pull", "--quiet", service), timeout=PULL_TIMEOUT
        )

    async def image_exists(self, image: str) -> bool:
        result = await self._run(["docker", "image", "inspect", image])
        return result.ok

    async def up(self, services: Optional[list[str]] = None) -> CommandResult:
        argv = await self.compose_args("up", "-d", "--remove-orphans", *(services or []))
        return await self._run(argv)

    async def down(self, remove_volumes: bool = False) -> CommandResult:
        args = ["down", "--remove-orphans"]
        if remove_volumes:
            args.append("-v")
        return await self._run(await self.compose_args(*args))
