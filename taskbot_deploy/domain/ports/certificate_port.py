"""
Certificate Port

Architectural Intent:
- Port interface for TLS material the proxy container mounts
- Cryptography is delegated to openssl; the domain only asks for files
"""

from abc import ABC, abstractmethod
from pathlib import Path
from taskbot_deploy.domain.value_objects.public_host import PublicHost


class CertificatePort(ABC):
    @abstractmethod
    async def ensure_self_signed(self, cert_dir: Path, host: PublicHost) -> bool:
        """
        Creates fullchain.pem / privkey.pem in cert_dir unless both exist.
        Returns True when a new certificate was generated.
        """
        pass
