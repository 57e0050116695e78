"""
Domain Services Package

Architectural Intent:
- Pure provisioning logic: secrets, configuration, env files, proxy config,
  stack definition and TLS selection
- No filesystem writes or subprocess calls; those live behind ports
"""

from taskbot_deploy.domain.services.secret_generator import SecretGenerator
from taskbot_deploy.domain.services.config_renderer import ConfigurationRenderer
from taskbot_deploy.domain.services.env_files import EnvFileWriter
from taskbot_deploy.domain.services.proxy_config import ProxyConfigGenerator
from taskbot_deploy.domain.services.stack_definition import (
    StackDefinition,
    ServiceSpec,
    build_stack,
)
from taskbot_deploy.domain.services.tls_selection import TlsModeSelector, TlsState

__all__ = [
    "SecretGenerator",
    "ConfigurationRenderer",
    "EnvFileWriter",
    "ProxyConfigGenerator",
    "StackDefinition",
    "ServiceSpec",
    "build_stack",
    "TlsModeSelector",
    "TlsState",
]
