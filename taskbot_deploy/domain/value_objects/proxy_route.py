"""
Proxy Route Value Objects

Architectural Intent:
- Describes one reverse-proxy location and the upstream it forwards to
- RouteTable keeps routes ordered longest prefix first, so first match by
  prefix is also the longest-prefix match a real proxy would pick
"""

from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class ProxyRoute:
    path_prefix: str
    upstream_service: Optional[str]
    upstream_port: Optional[int]
    websocket_upgrade: bool = False
    timeout: int = 60  # seconds
    static_root: Optional[str] = None
    # resolved per request so nginx starts even when the service is absent
    optional_upstream: bool = False

    def __post_init__(self) -> None:
        if not self.path_prefix.startswith("/"):
            raise ValueError(f"Route prefix must start with '/': {self.path_prefix!r}")
        if self.timeout <= 0:
            raise ValueError(f"Route timeout must be positive, got {self.timeout}")
        if self.static_root is None:
            if not self.upstream_service or self.upstream_port is None:
                raise ValueError(
                    f"Route {self.path_prefix} needs an upstream or a static root"
                )
            if not (1 <= self.upstream_port <= 65535):
                raise ValueError(f"Port must be 1-65535, got {self.upstream_port}")
        elif self.websocket_upgrade:
            raise ValueError("Static routes cannot upgrade to WebSocket")

    @property
    def is_static(self) -> bool:
        return self.static_root is not None

    def matches(self, path: str) -> bool:
        return path.startswith(self.path_prefix)


class RouteTable:
    """Ordered, immutable collection of proxy routes."""

    def __init__(self, routes: list[ProxyRoute]) -> None:
        prefixes = [r.path_prefix for r in routes]
        duplicates = {p for p in prefixes if prefixes.count(p) > 1}
        if duplicates:
            raise ValueError(f"Duplicate route prefixes: {sorted(duplicates)}")
        self._routes = tuple(
            sorted(routes, key=lambda r: len(r.path_prefix), reverse=True)
        )

    def __iter__(self) -> Iterator[ProxyRoute]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def get(self, prefix: str) -> Optional[ProxyRoute]:
        for route in self._routes:
            if route.path_prefix == prefix:
                return route
        return None

    def resolve(self, path: str) -> Optional[ProxyRoute]:
        for route in self._routes:
            if route.matches(path):
                return route
        return None
