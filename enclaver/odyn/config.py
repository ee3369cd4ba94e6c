"""Supervisor configuration loaded from the enclave's config directory."""

from __future__ import annotations

import enum
import logging
import os
import ssl
from dataclasses import dataclass, field
from pathlib import Path

from enclaver.constants import HTTP_EGRESS_PROXY_PORT, MANIFEST_FILE_NAME
from enclaver.manifest import Ingress, Manifest, load_manifest

_log = logging.getLogger(__name__)

_NO_PROXY = "localhost,127.0.0.1"


class ListenerKind(enum.Enum):
    TCP = "tcp"
    TLS = "tls"


@dataclass(frozen=True)
class ListenerConfig:
    kind: ListenerKind
    tls: ssl.SSLContext | None = None


def _load_tls_server_config(tls_path: Path, ingress: Ingress) -> ssl.SSLContext:
    ingress_path = tls_path / str(ingress.listen_port)
    key_path = ingress_path / "key.pem"
    cert_path = ingress_path / "cert.pem"
    _log.debug("Loading key_file: %s", key_path)
    _log.debug("Loading cert_file: %s", cert_path)
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    return context


@dataclass
class Configuration:
    config_dir: Path
    manifest: Manifest
    listener_configs: dict[int, ListenerConfig] = field(default_factory=dict)

    @classmethod
    def load(cls, config_dir: str | os.PathLike) -> Configuration:
        config_dir = Path(config_dir)
        manifest = load_manifest(config_dir / MANIFEST_FILE_NAME)
        tls_path = config_dir / "tls" / "server"

        listener_configs: dict[int, ListenerConfig] = {}
        for item in manifest.ingress or ():
            if item.tls is not None:
                cfg = ListenerConfig(ListenerKind.TLS, _load_tls_server_config(tls_path, item))
            else:
                cfg = ListenerConfig(ListenerKind.TCP)
            listener_configs[item.listen_port] = cfg

        return cls(config_dir=config_dir, manifest=manifest, listener_configs=listener_configs)

    def egress_proxy_uri(self) -> str | None:
        """The local egress proxy URI, or None when no egress is allowed."""
        egress = self.manifest.egress
        if egress is None or not egress.allow:
            return None
        port = egress.proxy_port if egress.proxy_port is not None else HTTP_EGRESS_PROXY_PORT
        return f"http://127.0.0.1:{port}/"

    def kms_proxy_port(self) -> int | None:
        kms_proxy = self.manifest.kms_proxy
        return None if kms_proxy is None else kms_proxy.listen_port

    def api_port(self) -> int | None:
        api = self.manifest.api
        return None if api is None else api.listen_port

    def endpoint(self, region: str) -> str:
        """The KMS endpoint for a region, honouring overrides in the manifest."""
        kms_proxy = self.manifest.kms_proxy
        if kms_proxy is not None and kms_proxy.endpoints is not None:
            override = kms_proxy.endpoints.get(region)
            if override is not None:
                return override
        return f"kms.{region}.amazonaws.com"


def set_proxy_env_var(value: str) -> None:
    """Point the standard proxy environment variables at `value`."""
    for name in ("http_proxy", "https_proxy", "HTTP_PROXY", "HTTPS_PROXY"):
        os.environ[name] = value
    os.environ["no_proxy"] = _NO_PROXY
    os.environ["NO_PROXY"] = _NO_PROXY