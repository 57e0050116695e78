"""
Fabric Compose Adapter

Architectural Intent:
- Infrastructure adapter implementing ContainerRuntimePort on a remote
  host via Fabric/SSH
- Same compose verbs as ComposeAdapter; only transport and sync differ
- sync uploads the rendered deployment directory before any compose call

Security:
- SSH connections use connect_timeout, allow_agent, look_for_keys
- Remote commands are built with shlex quoting
- A timed-out command is a failed result; SSH and socket errors are
  PrerequisiteMissing
- The local state file never leaves the provisioning host
"""

import asyncio
import logging
import shlex
from pathlib import Path, PurePosixPath
from typing import Optional
from fabric import Connection
from invoke.exceptions import CommandTimedOut
from paramiko.ssh_exception import SSHException
from taskbot_deploy.domain.errors import PrerequisiteMissing
from taskbot_deploy.domain.services.stack_definition import COMPOSE_FILE
from taskbot_deploy.domain.value_objects.remote_target import RemoteTarget
from taskbot_deploy.domain.value_objects.service_state import CommandResult
from taskbot_deploy.infrastructure.adapters.compose_adapter import (
    COMMAND_TIMEOUT,
    ComposeAdapter,
)
from taskbot_deploy.infrastructure.repositories.state_repository import STATE_FILE

logger = logging.getLogger(__name__)


class FabricComposeAdapter(ComposeAdapter):
    """ComposeAdapter that runs every command over SSH."""

    def __init__(
        self,
        target: RemoteTarget,
        remote_dir: str,
        project_name: str = "taskbot",
        connection: Optional[Connection] = None,
    ):
        super().__init__(Path(remote_dir), project_name)
        self.target = target
        self.remote_dir = PurePosixPath(remote_dir)
        self._connection = connection

    def _get_connection(self) -> Connection:
        if self._connection is None:
            self._connection = Connection(
                host=self.target.host,
                user=self.target.user,
                port=self.target.port,
                connect_timeout=30,
                connect_kwargs={
                    "allow_agent": True,
                    "look_for_keys": True,
                },
            )
        return self._connection

    async def _has_compose_file(self) -> bool:
        path = shlex.quote(str(self.remote_dir / COMPOSE_FILE))
        result = await self._execute(f"test -f {path}")
        return result.ok

    def _remote(self, command: str, timeout: int = COMMAND_TIMEOUT) -> CommandResult:
        conn = self._get_connection()
        try:
            result = conn.run(command, hide=True, warn=True, timeout=timeout)
        except CommandTimedOut:
            logger.warning("Command on %s timed out after %ds", self.target, timeout)
            return CommandResult(False, stderr=f"timed out after {timeout}s")
        except (SSHException, OSError) as e:
            raise PrerequisiteMissing(
                f"Cannot run commands on {self.target}: {e}"
            ) from e
        return CommandResult(result.ok, result.stdout, result.stderr)

    async def _execute(
        self, command: str, timeout: int = COMMAND_TIMEOUT
    ) -> CommandResult:
        def _call():
            logger.debug("Running on %s: %s", self.target, command)
            return self._remote(command, timeout)

        return await asyncio.get_running_loop().run_in_executor(None, _call)

    async def _run(
        self, argv: list[str], timeout: int = COMMAND_TIMEOUT
    ) -> CommandResult:
        remote_dir = shlex.quote(str(self.remote_dir))
        return await self._execute(
            f"mkdir -p {remote_dir} && cd {remote_dir} && {shlex.join(argv)}", timeout
        )

    async def sync(self, local_dir: Path) -> None:
        local_dir = Path(local_dir)

        def _upload():
            conn = self._get_connection()
            self._remote(f"mkdir -p {shlex.quote(str(self.remote_dir))}")
            uploaded = 0
            for path in sorted(local_dir.rglob("*")):
                relative = path.relative_to(local_dir)
                if relative.as_posix() == STATE_FILE:
                    continue
                remote = self.remote_dir / relative.as_posix()
                mode = path.stat().st_mode & 0o777
                if path.is_dir():
                    self._remote(f"mkdir -p {shlex.quote(str(remote))}")
                    self._remote(f"chmod {mode:o} {shlex.quote(str(remote))}")
                    continue
                conn.put(str(path), remote=str(remote), preserve_mode=True)
                uploaded += 1
            logger.info(
                "Uploaded %d files to %s:%s", uploaded, self.target, self.remote_dir
            )

        await asyncio.get_running_loop().run_in_executor(None, _upload)
