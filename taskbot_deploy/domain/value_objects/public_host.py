"""
Public Host Value Object

Architectural Intent:
- Immutable value object for the domain or IP the stack is served on
- Validates hostname format (DNS, IPv4, IPv6)
- Rejects schemes, paths and ports so the value is safe in server_name and URLs
"""

import re
from dataclasses import dataclass

# RFC 1123 hostname: labels of alnum/hyphens, dot-separated
_HOSTNAME_RE = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$"
)

_IPV4_RE = re.compile(
    r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$"
)

# simplified, accepts ::1, fe80::1 and friends
_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def is_ip_address(host: str) -> bool:
    m = _IPV4_RE.match(host)
    if m:
        return all(0 <= int(g) <= 255 for g in m.groups())
    return bool(_IPV6_RE.match(host)) and ":" in host


def _is_valid_host(host: str) -> bool:
    if not host:
        return False
    if _IPV4_RE.match(host):
        return is_ip_address(host)
    if is_ip_address(host):
        return True
    return bool(_HOSTNAME_RE.match(host)) and len(host) <= 253


@dataclass(frozen=True)
class PublicHost:
    """
    Value Object representing the public domain name or IP of a deployment.
    """
    value: str

    def __post_init__(self) -> None:
        if not _is_valid_host(self.value):
            raise ValueError(f"Invalid public host: {self.value!r}")

    @property
    def is_ip(self) -> bool:
        return is_ip_address(self.value)

    @property
    def url_host(self) -> str:
        """Host as it appears in a URL (IPv6 addresses are bracketed)."""
        if ":" in self.value:
            return f"[{self.value}]"
        return self.value

    def __str__(self) -> str:
        return self.value

    @staticmethod
    def parse(raw: str) -> "PublicHost":
        """
        Accepts 'example.com', 'https://example.com/' or '[::1]' and strips
        the decoration an operator is likely to paste in.
        """
        host = raw.strip()
        for prefix in ("https://", "http://"):
            if host.lower().startswith(prefix):
                host = host[len(prefix):]
        host = host.rstrip("/")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        return PublicHost(host.lower())
