"""TLS-aware gRPC channel and server credential factories.

A single toggle (``RbacConfig.grpc_tls_enabled``) switches between insecure
(development) and mTLS (production) transport for the reconciliation
service and its client.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import grpc
import grpc.aio

from .config import RbacConfig
from .exceptions import ConfigurationError

__all__ = [
    "create_channel",
    "create_server_credentials",
]

logger = logging.getLogger(__name__)


def _read_file(path: str) -> bytes:
    """Read a file as bytes, raising a clear error on failure."""
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"TLS file not found: {path}", path=path)
    return p.read_bytes()


def _require(value: Optional[str], setting: str) -> str:
    if not value:
        raise ConfigurationError(f"TLS is enabled but {setting} is not set", setting=setting)
    return value


def create_channel(target: str, config: RbacConfig) -> grpc.aio.Channel:
    """Create an async gRPC channel: TLS if configured, insecure otherwise.

    For mTLS, ``grpc_tls_client_cert`` and ``grpc_tls_client_key`` are sent
    when both are set.
    """
    if not config.grpc_tls_enabled:
        return grpc.aio.insecure_channel(target)

    ca_cert = _read_file(_require(config.grpc_tls_ca_cert, "GRPC_TLS_CA_CERT"))

    if config.grpc_tls_client_cert and config.grpc_tls_client_key:
        credentials = grpc.ssl_channel_credentials(
            root_certificates=ca_cert,
            private_key=_read_file(config.grpc_tls_client_key),
            certificate_chain=_read_file(config.grpc_tls_client_cert),
        )
    else:
        # Server-only TLS
        credentials = grpc.ssl_channel_credentials(root_certificates=ca_cert)

    logger.debug("Creating TLS channel to %s (mTLS=%s)", target, bool(config.grpc_tls_client_cert))
    return grpc.aio.secure_channel(target, credentials)


def create_server_credentials(config: RbacConfig) -> grpc.ServerCredentials | None:
    """Create server TLS credentials.

    Returns ``None`` if TLS is not enabled; the caller falls back to
    ``server.add_insecure_port()``.
    """
    if not config.grpc_tls_enabled:
        return None

    ca_cert = _read_file(_require(config.grpc_tls_ca_cert, "GRPC_TLS_CA_CERT"))
    server_cert = _read_file(_require(config.grpc_tls_server_cert, "GRPC_TLS_SERVER_CERT"))
    server_key = _read_file(_require(config.grpc_tls_server_key, "GRPC_TLS_SERVER_KEY"))

    logger.info("TLS server credentials loaded (mTLS=%s)", config.grpc_tls_require_client_auth)

    return grpc.ssl_server_credentials(
        [(server_key, server_cert)],
        root_certificates=ca_cert,
        require_client_auth=config.grpc_tls_require_client_auth,
    )
