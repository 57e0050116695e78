"""
TLS Mode Selection

Architectural Intent:
- Explicit state machine for the interactive TLS questions
- Terminal states map one-to-one onto TlsMode; Abort raises
- Questions are asked through a Questioner so the machine runs headless in tests

Transitions:
    START -> ASK_EXISTING_PROXY
    ASK_EXISTING_PROXY -yes-> HOST_DELEGATED | -no-> ASK_HTTPS
    ASK_HTTPS -yes-> ASK_OWN_CERTIFICATE | -no-> PLAIN_HTTP
    ASK_OWN_CERTIFICATE -yes-> ASK_CERT_PATHS | -no-> SELF_SIGNED
    ASK_CERT_PATHS -> VALIDATE_CERTS
    VALIDATE_CERTS -ok-> USER_PROVIDED | -fail-> ABORT
"""

from __future__ import annotations
import logging
import os
from enum import Enum, auto
from typing import Callable, Optional, Protocol
from taskbot_deploy.domain.entities.deployment_config import TlsMode, TlsSettings
from taskbot_deploy.domain.errors import MissingCertificateError

logger = logging.getLogger(__name__)


class TlsState(Enum):
    START = auto()
    ASK_EXISTING_PROXY = auto()
    ASK_HTTPS = auto()
    ASK_OWN_CERTIFICATE = auto()
    ASK_CERT_PATHS = auto()
    VALIDATE_CERTS = auto()
    HOST_DELEGATED = auto()
    USER_PROVIDED = auto()
    SELF_SIGNED = auto()
    PLAIN_HTTP = auto()
    ABORT = auto()


TERMINAL_MODES = {
    TlsState.HOST_DELEGATED: TlsMode.HOST_DELEGATED,
    TlsState.USER_PROVIDED: TlsMode.USER_PROVIDED,
    TlsState.SELF_SIGNED: TlsMode.SELF_SIGNED,
    TlsState.PLAIN_HTTP: TlsMode.NONE,
}


class Questioner(Protocol):
    def confirm(self, question: str, default: bool = False) -> bool: ...

    def ask(self, question: str, default: Optional[str] = None) -> str: ...


class TlsModeSelector:
    def __init__(self, file_exists: Optional[Callable[[str], bool]] = None) -> None:
        self._file_exists = file_exists or os.path.isfile
        self.visited: list[TlsState] = []

    def select(self, questioner: Questioner) -> TlsSettings:
        state = TlsState.START
        cert_path: Optional[str] = None
        key_path: Optional[str] = None
        missing: Optional[MissingCertificateError] = None
        self.visited = [state]

        while state not in TERMINAL_MODES:
            if state == TlsState.START:
                state = TlsState.ASK_EXISTING_PROXY
            elif state == TlsState.ASK_EXISTING_PROXY:
                existing = questioner.confirm(
                    "Do you already run an nginx (or other reverse proxy) on this "
                    "host that should front Taskbot?", default=False,
                )
                state = TlsState.HOST_DELEGATED if existing else TlsState.ASK_HTTPS
            elif state == TlsState.ASK_HTTPS:
                https = questioner.confirm("Serve Taskbot over HTTPS?", default=False)
                state = TlsState.ASK_OWN_CERTIFICATE if https else TlsState.PLAIN_HTTP
            elif state == TlsState.ASK_OWN_CERTIFICATE:
                own = questioner.confirm(
                    "Do you have a certificate and private key for this domain? "
                    "(no = generate a self-signed one)", default=True,
                )
                state = TlsState.ASK_CERT_PATHS if own else TlsState.SELF_SIGNED
            elif state == TlsState.ASK_CERT_PATHS:
                cert_path = questioner.ask("Path to your certificate (fullchain) file")
                key_path = questioner.ask("Path to your private key file")
                state = TlsState.VALIDATE_CERTS
            elif state == TlsState.VALIDATE_CERTS:
                missing = self._validate(cert_path, key_path)
                state = TlsState.ABORT if missing else TlsState.USER_PROVIDED
            elif state == TlsState.ABORT:
                assert missing is not None
                raise missing
            self.visited.append(state)

        mode = TERMINAL_MODES[state]
        logger.debug("TLS selection path: %s", " -> ".join(s.name for s in self.visited))
        if mode == TlsMode.USER_PROVIDED:
            return TlsSettings(
                mode=mode,
                cert_path=os.path.abspath(os.path.expanduser(cert_path)),
                key_path=os.path.abspath(os.path.expanduser(key_path)),
            )
        return TlsSettings(mode=mode)

    def _validate(
        self, cert_path: Optional[str], key_path: Optional[str]
    ) -> Optional[MissingCertificateError]:
        for path, role in ((cert_path, "certificate"), (key_path, "private key")):
            expanded = os.path.expanduser(path) if path else ""
            if not expanded or not self._file_exists(expanded):
                return MissingCertificateError(path or "<empty>", role)
        return None
