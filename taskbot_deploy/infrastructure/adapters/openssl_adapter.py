"""
OpenSSL Adapter

Architectural Intent:
- Infrastructure adapter implementing CertificatePort with the openssl CLI
- Generates a self-signed certificate whose SAN matches the public host
- An existing certificate that still matches the host is kept, so re-runs
  do not rotate the certificate browsers have already accepted
"""

import asyncio
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from taskbot_deploy.domain.errors import PrerequisiteMissing, ProvisioningError
from taskbot_deploy.domain.ports.certificate_port import CertificatePort
from taskbot_deploy.domain.services.proxy_config import FULLCHAIN, PRIVKEY
from taskbot_deploy.domain.value_objects.public_host import PublicHost

logger = logging.getLogger(__name__)

VALIDITY_DAYS = 365
KEY_SIZE = 2048


class OpenSSLAdapter(CertificatePort):
    def __init__(self, openssl: str = "openssl"):
        self.openssl = openssl

    async def ensure_self_signed(self, cert_dir: Path, host: PublicHost) -> bool:
        cert_dir = Path(cert_dir)
        cert, key = cert_dir / FULLCHAIN, cert_dir / PRIVKEY

        def _ensure() -> bool:
            if cert.exists() and key.exists():
                if self._matches(cert, host):
                    logger.info("Keeping existing certificate for %s", host)
                    return False
                logger.warning(
                    "Existing certificate does not match %s, replacing", host
                )
            self._generate(cert_dir, host)
            return True

        return await asyncio.get_running_loop().run_in_executor(None, _ensure)

    def _matches(self, cert: Path, host: PublicHost) -> bool:
        check = "-checkip" if host.is_ip else "-checkhost"
        result = self._run(
            [self.openssl, "x509", "-in", str(cert), "-noout", check, str(host)]
        )
        return result.returncode == 0 and "NOT match" not in result.stdout

    def _generate(self, cert_dir: Path, host: PublicHost) -> None:
        san = f"IP:{host}" if host.is_ip else f"DNS:{host}"
        cert_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=cert_dir) as tmp:
            tmp_cert = Path(tmp) / FULLCHAIN
            tmp_key = Path(tmp) / PRIVKEY
            result = self._run([
                self.openssl, "req", "-x509", "-nodes",
                "-newkey", f"rsa:{KEY_SIZE}",
                "-days", str(VALIDITY_DAYS),
                "-subj", f"/CN={host}",
                "-addext", f"subjectAltName={san}",
                "-keyout", str(tmp_key),
                "-out", str(tmp_cert),
            ])
            if result.returncode != 0:
                raise ProvisioningError(
                    f"Self-signed certificate generation failed: {result.stderr.strip()}"
                )
            os.chmod(tmp_key, 0o600)
            os.chmod(tmp_cert, 0o644)
            os.replace(tmp_key, cert_dir / PRIVKEY)
            os.replace(tmp_cert, cert_dir / FULLCHAIN)
        logger.info("Generated self-signed certificate for %s in %s", host, cert_dir)

    def _run(self, argv: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(argv, capture_output=True, text=True, timeout=60)
        except FileNotFoundError as e:
            raise PrerequisiteMissing(
                "openssl not found; it is required for self-signed certificates"
            ) from e
