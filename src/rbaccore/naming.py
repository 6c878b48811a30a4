"""Naming resolver: scope + capability → canonical role identifiers.

Pure functions only. Every identifier is a deterministic concatenation of
validated scope fields, so a ``Scope`` fully determines its role names.

Convention::

    SRF_<ENV>_<CAPABILITY>               functional (account) role
    SRD_<DATABASE>_<ENV>_<SCHEMA>_READ   schema read database role
    SRD_<DATABASE>_<ENV>_<SCHEMA>_WRITE  schema write database role (DEV only)
    SRS_DEVOPS                           centralized operations role
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .config import RbacConfig
from .exceptions import ValidationError
from .permissions import AccessKind, CapabilityLevel, Environment, schema_access

_IDENTIFIER_RE = re.compile(r"^[A-Z][A-Z0-9_$]*$")

_DEFAULT_CONFIG = RbacConfig()


class RoleIdentifier(str):
    """Canonical role name. Equality and hashing are by string value."""

    __slots__ = ()

    @property
    def is_applicable(self) -> bool:
        return self != _NOT_APPLICABLE_VALUE

    def __repr__(self) -> str:
        return f"RoleIdentifier({str(self)!r})"


_NOT_APPLICABLE_VALUE = "N/A"

# Sentinel for roles that do not exist outside DEV (write role, creator role).
NOT_APPLICABLE = RoleIdentifier(_NOT_APPLICABLE_VALUE)


def _normalize_identifier(value: str, field: str) -> str:
    name = (value or "").strip().upper()
    if not _IDENTIFIER_RE.match(name):
        raise ValidationError(
            f"Invalid {field} name {value!r}: must start with a letter and contain only A-Z, 0-9, _ or $",
            **{field: value},
        )
    return name


@dataclass(frozen=True)
class DatabaseScope:
    """A physical database: data-domain name plus environment (``HR_DEV``).

    Database roles are namespaced by their database, and the environment is
    always the last segment of ``full_database``, so names such as
    ``DEV_TOOLS`` or ``SALES_PRD`` stay unambiguous.
    """

    environment: Environment
    database: str

    @classmethod
    def create(cls, environment: str | Environment, database: str) -> DatabaseScope:
        """Raises ValidationError on an unknown environment or malformed name."""
        return cls(environment=Environment.parse(environment), database=_normalize_identifier(database, "database"))

    @property
    def full_database(self) -> str:
        return f"{self.database}_{self.environment.value}"

    def schema(self, name: str) -> Scope:
        return Scope(environment=self.environment, database=self.database, schema=_normalize_identifier(name, "schema"))

    def __str__(self) -> str:
        return f"{self.environment.value}:{self.full_database}"


@dataclass(frozen=True)
class Scope:
    """One reconciliation unit: (environment, database, schema).

    ``database`` is the data-domain name without the environment suffix;
    ``full_database`` is the physical database (``HR_DEV``).
    """

    environment: Environment
    database: str
    schema: str

    @classmethod
    def create(cls, environment: str | Environment, database: str, schema: str) -> Scope:
        """Validate and normalize raw inputs.

        Raises:
            ValidationError: unknown environment or malformed names.
        """
        return DatabaseScope.create(environment, database).schema(schema)

    @property
    def full_database(self) -> str:
        return f"{self.database}_{self.environment.value}"

    @property
    def qualified_schema(self) -> str:
        return f"{self.full_database}.{self.schema}"

    def __str__(self) -> str:
        return f"{self.environment.value}:{self.qualified_schema}"


@dataclass(frozen=True)
class ResolvedRoles:
    """Every role identifier involved in reconciling one scope."""

    functional_role: RoleIdentifier
    read_role: RoleIdentifier
    write_role: RoleIdentifier
    owner_role: RoleIdentifier
    creator_role: RoleIdentifier
    # Role actually holding CREATE privileges on the schema, in every environment.
    create_grantee: RoleIdentifier

    def as_dict(self) -> dict[str, str]:
        return {
            "functional": str(self.functional_role),
            "read": str(self.read_role),
            "write": str(self.write_role),
            "owner": str(self.owner_role),
            "creator": str(self.creator_role),
            "create_grantee": str(self.create_grantee),
        }


def functional_role(
    environment: Environment,
    capability: CapabilityLevel,
    config: RbacConfig | None = None,
) -> RoleIdentifier:
    cfg = config or _DEFAULT_CONFIG
    return RoleIdentifier(f"{cfg.functional_role_prefix}_{environment.value}_{capability.value}")


def functional_roles(environment: Environment, config: RbacConfig | None = None) -> tuple[RoleIdentifier, ...]:
    """Functional roles of an environment, lowest capability first."""
    return tuple(functional_role(environment, c, config) for c in CapabilityLevel)


def dbadmin_role(environment: Environment, config: RbacConfig | None = None) -> RoleIdentifier:
    """Role expected to run apply-mode reconciliation in an environment."""
    return functional_role(environment, CapabilityLevel.DBADMIN, config)


def database_role(scope: Scope, access: AccessKind, config: RbacConfig | None = None) -> RoleIdentifier:
    """Schema database role name, regardless of environment eligibility."""
    cfg = config or _DEFAULT_CONFIG
    return RoleIdentifier(f"{cfg.database_role_prefix}_{scope.full_database}_{scope.schema}_{access.value}")


def owner_role(environment: Environment, config: RbacConfig | None = None) -> RoleIdentifier:
    """DEV objects are owned by the developer role; elsewhere by operations."""
    cfg = config or _DEFAULT_CONFIG
    if environment.is_dev:
        return functional_role(environment, CapabilityLevel.DEVELOPER, cfg)
    return RoleIdentifier(cfg.operations_role)


def resolve(
    scope: Scope,
    capability: CapabilityLevel = CapabilityLevel.DEVELOPER,
    config: RbacConfig | None = None,
) -> ResolvedRoles:
    """Resolve canonical identifiers for a scope and capability level.

    Write and creator roles resolve to ``NOT_APPLICABLE`` unless the
    capability may write in the scope's environment (DEV, DEVELOPER and up).
    """
    writable = AccessKind.WRITE in schema_access(capability, scope.environment)
    owner = owner_role(scope.environment, config)
    return ResolvedRoles(
        functional_role=functional_role(scope.environment, capability, config),
        read_role=database_role(scope, AccessKind.READ, config),
        write_role=database_role(scope, AccessKind.WRITE, config) if writable else NOT_APPLICABLE,
        owner_role=owner,
        creator_role=(
            functional_role(scope.environment, CapabilityLevel.DEVELOPER, config) if writable else NOT_APPLICABLE
        ),
        create_grantee=owner,
    )


__all__ = [
    "NOT_APPLICABLE",
    "DatabaseScope",
    "ResolvedRoles",
    "RoleIdentifier",
    "Scope",
    "database_role",
    "dbadmin_role",
    "functional_role",
    "functional_roles",
    "owner_role",
    "resolve",
]
