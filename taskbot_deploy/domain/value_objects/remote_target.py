"""
Remote Target Value Object

Architectural Intent:
- Immutable value object for the SSH destination of a remote deployment
- Supports IPv6 bracket notation in parse() (e.g., deploy@[::1]:2222)
"""

from dataclasses import dataclass
from taskbot_deploy.domain.value_objects.public_host import PublicHost


@dataclass(frozen=True)
class RemoteTarget:
    host: str
    user: str = "root"
    port: int = 22

    def __post_init__(self) -> None:
        if not self.user:
            raise ValueError("Remote user cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        PublicHost(self.host)

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"

    @staticmethod
    def parse(connection_string: str) -> "RemoteTarget":
        """
        Parses 'user@host:port', 'host' or 'user@[::1]:port'.
        """
        user = "root"
        port = 22
        host = connection_string.strip()

        if "@" in host:
            user, host = host.split("@", 1)

        if host.startswith("["):
            bracket_end = host.find("]")
            if bracket_end == -1:
                raise ValueError(f"Unterminated IPv6 bracket in: {connection_string}")
            remainder = host[bracket_end + 1:]
            if remainder.startswith(":"):
                port = int(remainder[1:])
            host = host[1:bracket_end]
        elif host.count(":") == 1:
            host, _, raw_port = host.partition(":")
            port = int(raw_port)

        return RemoteTarget(host=host, user=user, port=port)
