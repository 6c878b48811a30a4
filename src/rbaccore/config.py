"""Configuration contract for the RBAC reconciliation engine.

This module provides the Pydantic-validated configuration model shared by the
engine, the catalog adapters and the gRPC service (LOG_LEVEL, catalog URL,
role naming prefixes, etc.).

Direct os.environ/os.getenv usage is FORBIDDEN for any setting defined here;
``load_config_from_env()`` is the single place that reads the environment.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RbacConfig(BaseModel):
    """Configuration for reconciliation runs and the service around them.

    Role naming follows the platform convention:
        SRF_<ENV>_<CAPABILITY>             : functional roles
        SRD_<DATABASE>_<ENV>_<SCHEMA>_READ : schema database roles
        SRS_DEVOPS                         : centralized operations role
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the engine",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Catalog connection
    catalog_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL of the access-control catalog (e.g. snowflake://...)",
    )

    # Naming convention
    operations_role: str = Field(
        default="SRS_DEVOPS",
        description="Centralized operations role owning objects outside DEV",
    )
    functional_role_prefix: str = Field(
        default="SRF",
        description="Prefix of account-level functional roles",
    )
    database_role_prefix: str = Field(
        default="SRD",
        description="Prefix of schema-scoped database roles",
    )

    # Authorization
    admin_roles: list[str] = Field(
        default_factory=lambda: ["SRS_SECURITY_ADMIN"],
        description="Roles allowed to apply changes in every environment",
    )

    # Service
    service_name: Optional[str] = Field(
        default="rbaccore",
        description="Service name used in logs",
    )
    grpc_bind: str = Field(
        default="[::]:50061",
        description="Bind address of the gRPC service",
    )
    grpc_tls_enabled: bool = Field(
        default=False,
        description="Serve and connect over TLS instead of plaintext",
    )
    grpc_tls_ca_cert: Optional[str] = Field(default=None, description="Path to the CA certificate")
    grpc_tls_server_cert: Optional[str] = Field(default=None, description="Path to the server certificate")
    grpc_tls_server_key: Optional[str] = Field(default=None, description="Path to the server private key")
    grpc_tls_client_cert: Optional[str] = Field(default=None, description="Path to the client certificate (mTLS)")
    grpc_tls_client_key: Optional[str] = Field(default=None, description="Path to the client private key (mTLS)")
    grpc_tls_require_client_auth: bool = Field(
        default=True,
        description="Require client certificates when serving over TLS",
    )

    @field_validator("catalog_url")
    @classmethod
    def validate_catalog_url(cls, v: Optional[str]) -> Optional[str]:
        """Require a SQLAlchemy-style URL with a driver scheme."""
        if v is None or v == "":
            return None
        if "://" not in v:
            raise ValueError("Catalog URL must be a SQLAlchemy URL such as snowflake://user@account/")
        return v

    @field_validator("operations_role", "functional_role_prefix", "database_role_prefix")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Role names and prefixes are plain upper-case identifiers."""
        value = v.strip().upper()
        if not value or not value.replace("_", "").isalnum():
            raise ValueError(f"Invalid role identifier: {v!r}")
        return value

    @field_validator("admin_roles")
    @classmethod
    def normalize_admin_roles(cls, v: list[str]) -> list[str]:
        return [role.strip().upper() for role in v if role.strip()]

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",  # Prevent accidental extra fields
    }


def _flag(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def load_config_from_env() -> RbacConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed for engine settings.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - RBAC_CATALOG_URL: SQLAlchemy URL of the catalog
    - RBAC_OPERATIONS_ROLE: Centralized operations role (default: SRS_DEVOPS)
    - RBAC_ADMIN_ROLES: Comma-separated roles allowed to apply everywhere
    - SERVICE_NAME: Service name for logs
    - RBAC_GRPC_BIND: gRPC bind address
    - GRPC_TLS_ENABLED: Serve/connect over TLS (true/false, default: false)
    - GRPC_TLS_CA_CERT, GRPC_TLS_SERVER_CERT, GRPC_TLS_SERVER_KEY: TLS file paths
    - GRPC_TLS_CLIENT_CERT, GRPC_TLS_CLIENT_KEY: client certificate for mTLS
    - GRPC_TLS_REQUIRE_CLIENT_AUTH: Enforce mTLS on the server (default: true)

    Returns:
        RbacConfig instance with values from environment or defaults.
    """
    import os

    admin_roles_raw = os.getenv("RBAC_ADMIN_ROLES", "SRS_SECURITY_ADMIN")
    admin_roles = [r.strip() for r in admin_roles_raw.split(",") if r.strip()]

    return RbacConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_flag(os.getenv("LOG_JSON", "false")),
        catalog_url=os.getenv("RBAC_CATALOG_URL"),
        operations_role=os.getenv("RBAC_OPERATIONS_ROLE", "SRS_DEVOPS"),
        admin_roles=admin_roles,
        service_name=os.getenv("SERVICE_NAME", "rbaccore"),
        grpc_bind=os.getenv("RBAC_GRPC_BIND", "[::]:50061"),
        grpc_tls_enabled=_flag(os.getenv("GRPC_TLS_ENABLED", "false")),
        grpc_tls_ca_cert=os.getenv("GRPC_TLS_CA_CERT"),
        grpc_tls_server_cert=os.getenv("GRPC_TLS_SERVER_CERT"),
        grpc_tls_server_key=os.getenv("GRPC_TLS_SERVER_KEY"),
        grpc_tls_client_cert=os.getenv("GRPC_TLS_CLIENT_CERT"),
        grpc_tls_client_key=os.getenv("GRPC_TLS_CLIENT_KEY"),
        grpc_tls_require_client_auth=os.getenv("GRPC_TLS_REQUIRE_CLIENT_AUTH", "true").lower()
        not in ("false", "0", "no"),
    )


__all__ = [
    "RbacConfig",
    "LogLevel",
    "load_config_from_env",
]
