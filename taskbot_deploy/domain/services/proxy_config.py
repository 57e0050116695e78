"""
Reverse-Proxy Config Generator

Architectural Intent:
- Derives the nginx configuration for the stack from DeploymentConfig
- Route table is fixed; only upstream ports and TLS handling vary
- Host-delegated TLS produces instructions for an external proxy instead of
  a config for our own container

Domain Logic:
- TLS none: one port-80 server, no redirect
- TLS self-signed / user-provided: port-80 redirect to the public host and a
  port-443 server terminating TLS with fullchain.pem / privkey.pem
- WebSocket routes carry Upgrade/Connection headers and day-long timeouts
- User-provided certificate paths are checked before anything is rendered
"""

from __future__ import annotations
import json
import logging
import os
from typing import Callable, Optional
from taskbot_deploy.domain.entities.deployment_config import (
    DeploymentConfig,
    TlsMode,
)
from taskbot_deploy.domain.errors import MissingCertificateError
from taskbot_deploy.domain.services import nginx_config as nginx
from taskbot_deploy.domain.value_objects.proxy_route import ProxyRoute, RouteTable
from taskbot_deploy.domain.value_objects.rendered_artifact import RenderedArtifact

logger = logging.getLogger(__name__)

NGINX_CONF = "nginx/app.conf"
HOST_SNIPPET = "nginx/host-snippet.conf"
HOST_INSTRUCTIONS = "host-proxy.json"

CERT_DIR_IN_CONTAINER = "/etc/nginx/certs"
FULLCHAIN = "fullchain.pem"
PRIVKEY = "privkey.pem"
UPLOADS_ROOT = "/var/www/uploads/"

WEBSOCKET_TIMEOUT = 86400
API_TIMEOUT = 300
PAGE_TIMEOUT = 60
LOOPBACK = "127.0.0.1"
DOCKER_RESOLVER = "127.0.0.11"


def build_routes(config: DeploymentConfig, include_static: bool = True) -> RouteTable:
    p = config.ports
    routes = [
        ProxyRoute("/", "frontend", p.frontend, timeout=PAGE_TIMEOUT),
        ProxyRoute("/core/", "gateway", p.gateway, timeout=API_TIMEOUT),
        ProxyRoute("/agentrtc/", "gateway", p.gateway, timeout=API_TIMEOUT),
        ProxyRoute(
            "/agentws/", "gateway", p.gateway,
            websocket_upgrade=True, timeout=WEBSOCKET_TIMEOUT,
        ),
        ProxyRoute(
            "/installer/", "installer", p.installer,
            timeout=API_TIMEOUT, optional_upstream=True,
        ),
    ]
    if config.serve_uploads and include_static:
        routes.append(
            ProxyRoute("/uploads/", None, None, timeout=PAGE_TIMEOUT,
                       static_root=UPLOADS_ROOT)
        )
    return RouteTable(routes)


def _upstream_name(service: str) -> str:
    return f"{service.replace('-', '_')}_server"


class ProxyConfigGenerator:
    def __init__(self, file_exists: Optional[Callable[[str], bool]] = None) -> None:
        self._file_exists = file_exists or os.path.isfile

    def validate(self, config: DeploymentConfig) -> None:
        if config.tls.mode != TlsMode.USER_PROVIDED:
            return
        for path, role in ((config.tls.cert_path, "certificate"),
                           (config.tls.key_path, "private key")):
            if not path or not self._file_exists(path):
                raise MissingCertificateError(path or "<unset>", role)

    def render(self, config: DeploymentConfig) -> list[RenderedArtifact]:
        self.validate(config)
        if config.tls.mode == TlsMode.HOST_DELEGATED:
            return self._host_delegated(config)

        routes = build_routes(config)
        nodes: list[nginx.Node] = [
            nginx.Comment("Taskbot reverse proxy (generated by taskbot-deploy)")
        ]
        nodes.extend(self._upstreams(routes))
        if config.tls.terminates_locally:
            nodes.append(self._redirect_server(config))
            nodes.append(self._tls_server(config, routes))
        else:
            nodes.append(self._plain_server(config, routes))

        logger.debug("Rendered nginx config for %s", config.public_host)
        return [RenderedArtifact(NGINX_CONF, nginx.render(nodes))]

    def _upstreams(self, routes: RouteTable) -> list[nginx.Block]:
        seen: dict[str, int] = {}
        for route in routes:
            if route.optional_upstream or not route.upstream_service:
                continue
            if route.upstream_service not in seen:
                seen[route.upstream_service] = route.upstream_port
        return [
            nginx.block(
                "upstream", _upstream_name(service),
                children=[nginx.directive("server", f"{service}:{port}")],
            )
            for service, port in sorted(seen.items())
        ]

    def _common(self, config: DeploymentConfig) -> list[nginx.Node]:
        return [
            nginx.directive("server_name", config.public_host),
            nginx.directive("client_max_body_size", "100m"),
        ]

    def _plain_server(self, config: DeploymentConfig, routes: RouteTable) -> nginx.Block:
        return nginx.block(
            "server",
            children=[
                nginx.directive("listen", 80),
                *self._common(config),
                *self._locations(routes),
            ],
        )

    def _redirect_server(self, config: DeploymentConfig) -> nginx.Block:
        return nginx.block(
            "server",
            children=[
                nginx.directive("listen", 80),
                nginx.directive("server_name", config.public_host),
                nginx.directive(
                    "return", 301,
                    f"https://{config.public_host.url_host}$request_uri",
                ),
            ],
        )

    def _tls_server(self, config: DeploymentConfig, routes: RouteTable) -> nginx.Block:
        return nginx.block(
            "server",
            children=[
                nginx.directive("listen", 443, "ssl"),
                nginx.directive("http2", "on"),
                *self._common(config),
                nginx.directive("ssl_certificate", f"{CERT_DIR_IN_CONTAINER}/{FULLCHAIN}"),
                nginx.directive("ssl_certificate_key", f"{CERT_DIR_IN_CONTAINER}/{PRIVKEY}"),
                nginx.directive("ssl_protocols", "TLSv1.2", "TLSv1.3"),
                nginx.directive("ssl_session_cache", "shared:SSL:10m"),
                *self._locations(routes),
            ],
        )

    def _locations(self, routes: RouteTable, upstream_host: Optional[str] = None) -> list[nginx.Block]:
        # nginx picks the longest prefix itself; emit in the conventional order
        ordered = sorted(routes, key=lambda r: r.path_prefix)
        return [self._location(route, upstream_host) for route in ordered]

    def _location(self, route: ProxyRoute, upstream_host: Optional[str]) -> nginx.Block:
        if route.is_static:
            return nginx.block(
                "location", route.path_prefix,
                children=[
                    nginx.directive("alias", route.static_root),
                    nginx.directive("autoindex", "off"),
                ],
            )

        children: list[nginx.Node] = []
        if upstream_host:
            target = f"http://{upstream_host}:{route.upstream_port}"
        elif route.optional_upstream:
            variable = f"${_upstream_name(route.upstream_service)}"
            children += [
                nginx.directive("resolver", DOCKER_RESOLVER, "valid=30s"),
                nginx.directive(
                    "set", variable,
                    f"http://{route.upstream_service}:{route.upstream_port}",
                ),
            ]
            target = variable
        else:
            target = f"http://{_upstream_name(route.upstream_service)}"

        children += [
            nginx.directive("proxy_pass", target),
            nginx.directive("proxy_set_header", "Host", "$host"),
            nginx.directive("proxy_set_header", "X-Real-IP", "$remote_addr"),
            nginx.directive(
                "proxy_set_header", "X-Forwarded-For", "$proxy_add_x_forwarded_for"
            ),
            nginx.directive("proxy_set_header", "X-Forwarded-Proto", "$scheme"),
        ]
        if route.websocket_upgrade:
            children += [
                nginx.directive("proxy_http_version", "1.1"),
                nginx.directive("proxy_set_header", "Upgrade", "$http_upgrade"),
                nginx.directive("proxy_set_header", "Connection", "upgrade"),
                nginx.directive("proxy_buffering", "off"),
            ]
        children += [
            nginx.directive("proxy_read_timeout", f"{route.timeout}s"),
            nginx.directive("proxy_send_timeout", f"{route.timeout}s"),
        ]
        return nginx.block("location", route.path_prefix, children=children)

    def _host_delegated(self, config: DeploymentConfig) -> list[RenderedArtifact]:
        # the uploads volume is not reachable from a host proxy
        routes = build_routes(config, include_static=False)
        instructions = {
            "public_host": str(config.public_host),
            "public_url": config.public_url,
            "routes": [
                {
                    "path_prefix": route.path_prefix,
                    "upstream": f"http://{LOOPBACK}:{route.upstream_port}",
                    "service": route.upstream_service,
                    "websocket_upgrade": route.websocket_upgrade,
                    "timeout_seconds": route.timeout,
                }
                for route in routes
            ],
        }
        snippet: list[nginx.Node] = [
            nginx.Comment("Taskbot locations: merge into the server block for "
                          f"{config.public_host} and reload nginx"),
            *self._locations(routes, upstream_host=LOOPBACK),
        ]
        return [
            RenderedArtifact(
                HOST_INSTRUCTIONS,
                json.dumps(instructions, indent=2, sort_keys=True) + "\n",
            ),
            RenderedArtifact(HOST_SNIPPET, nginx.render(snippet)),
        ]
