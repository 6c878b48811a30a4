"""Desired-state generator and topology value objects.

A topology is the set of role nodes for one scope together with the grant
edges each node should hold. The desired topology is a pure function of the
scope and the fixed policy rules in :mod:`rbaccore.permissions`; the actual
topology is an observed snapshot built by :mod:`rbaccore.catalog`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .config import RbacConfig
from .naming import Scope, resolve
from .permissions import (
    CREATABLE_CATEGORIES,
    OWNED_CATEGORIES,
    READ_PRIVILEGES,
    WRITE_PRIVILEGES,
    ObjectCategory,
    Privileges,
)


class Securable(str, Enum):
    DATABASE = "DATABASE"
    SCHEMA = "SCHEMA"
    OBJECTS = "OBJECTS"


class Breadth(str, Enum):
    """What a grant edge covers.

    - ``SELF``    : the database or schema itself.
    - ``EXISTING``: every object of a category that exists now.
    - ``FUTURE``  : objects of a category created later.
    """

    SELF = "SELF"
    EXISTING = "EXISTING"
    FUTURE = "FUTURE"


class GranteeType(str, Enum):
    ROLE = "ROLE"
    DATABASE_ROLE = "DATABASE ROLE"


class NodePurpose(str, Enum):
    READ = "READ"
    WRITE = "WRITE"
    OWNER = "OWNER"
    CREATOR = "CREATOR"
    OPERATIONS = "OPERATIONS"


@dataclass(frozen=True)
class GrantEdge:
    """One atomic privilege held by a grantee within a scope."""

    privilege: str
    securable: Securable
    breadth: Breadth
    grantee: str
    grantee_type: GranteeType
    category: Optional[ObjectCategory] = None

    @property
    def is_ownership(self) -> bool:
        return self.privilege == Privileges.OWNERSHIP


@dataclass(frozen=True)
class TopologyNode:
    """A role the scope's convention requires, with the edges it should hold."""

    identifier: str
    purpose: NodePurpose
    grantee_type: GranteeType
    grants: tuple[GrantEdge, ...]
    owns_objects: bool = False
    requires_creation: bool = False
    managed_access: bool = True


@dataclass(frozen=True)
class ActualTopology:
    """Observed catalog state relevant to one scope's desired topology."""

    managed_access: bool
    roles: frozenset[str] = frozenset()
    grants: frozenset[GrantEdge] = frozenset()

    def has_role(self, identifier: str) -> bool:
        return identifier in self.roles

    def holds(self, edge: GrantEdge) -> bool:
        return edge in self.grants


def _object_edges(
    rules: Iterable[tuple[ObjectCategory, tuple[str, ...]]],
    grantee: str,
    grantee_type: GranteeType,
) -> list[GrantEdge]:
    edges: list[GrantEdge] = []
    for category, privileges in rules:
        for breadth in (Breadth.EXISTING, Breadth.FUTURE):
            for privilege in privileges:
                edges.append(
                    GrantEdge(
                        privilege=privilege,
                        securable=Securable.OBJECTS,
                        breadth=breadth,
                        grantee=grantee,
                        grantee_type=grantee_type,
                        category=category,
                    )
                )
    return edges


def _schema_usage(grantee: str, grantee_type: GranteeType) -> GrantEdge:
    return GrantEdge(
        privilege=Privileges.USAGE,
        securable=Securable.SCHEMA,
        breadth=Breadth.SELF,
        grantee=grantee,
        grantee_type=grantee_type,
    )


def _access_node(purpose: NodePurpose, identifier: str, rules) -> TopologyNode:
    grantee_type = GranteeType.DATABASE_ROLE
    grants = [_schema_usage(identifier, grantee_type)]
    grants.extend(_object_edges(rules, identifier, grantee_type))
    return TopologyNode(
        identifier=identifier,
        purpose=purpose,
        grantee_type=grantee_type,
        grants=tuple(grants),
        requires_creation=True,
    )


def desired_topology(scope: Scope, config: RbacConfig | None = None) -> tuple[TopologyNode, ...]:
    """Build the policy-mandated topology for a scope.

    Nodes, in order: READ role, WRITE role (DEV only), object owner, creator,
    operations usage (non-DEV only). Edges within a node follow the fixed
    object-category order, existing before future.
    """
    roles = resolve(scope, config=config)
    nodes: list[TopologyNode] = [_access_node(NodePurpose.READ, roles.read_role, READ_PRIVILEGES)]

    if roles.write_role.is_applicable:
        nodes.append(_access_node(NodePurpose.WRITE, roles.write_role, WRITE_PRIVILEGES))

    owner = str(roles.owner_role)
    ownership: list[GrantEdge] = []
    for breadth in (Breadth.EXISTING, Breadth.FUTURE):
        for category in OWNED_CATEGORIES:
            ownership.append(
                GrantEdge(
                    privilege=Privileges.OWNERSHIP,
                    securable=Securable.OBJECTS,
                    breadth=breadth,
                    grantee=owner,
                    grantee_type=GranteeType.ROLE,
                    category=category,
                )
            )
    nodes.append(
        TopologyNode(
            identifier=owner,
            purpose=NodePurpose.OWNER,
            grantee_type=GranteeType.ROLE,
            grants=tuple(ownership),
            owns_objects=True,
        )
    )

    creator = str(roles.create_grantee)
    nodes.append(
        TopologyNode(
            identifier=creator,
            purpose=NodePurpose.CREATOR,
            grantee_type=GranteeType.ROLE,
            grants=tuple(
                GrantEdge(
                    privilege=Privileges.create(category),
                    securable=Securable.SCHEMA,
                    breadth=Breadth.SELF,
                    grantee=creator,
                    grantee_type=GranteeType.ROLE,
                )
                for category in CREATABLE_CATEGORIES
            ),
        )
    )

    if not scope.environment.is_dev:
        operations = (config or RbacConfig()).operations_role
        nodes.append(
            TopologyNode(
                identifier=operations,
                purpose=NodePurpose.OPERATIONS,
                grantee_type=GranteeType.ROLE,
                grants=(
                    GrantEdge(
                        privilege=Privileges.USAGE,
                        securable=Securable.DATABASE,
                        breadth=Breadth.SELF,
                        grantee=operations,
                        grantee_type=GranteeType.ROLE,
                    ),
                    _schema_usage(operations, GranteeType.ROLE),
                ),
            )
        )

    return tuple(nodes)


def all_edges(nodes: Iterable[TopologyNode]) -> tuple[GrantEdge, ...]:
    """Every edge of a topology, in node order, without duplicates."""
    seen: dict[GrantEdge, None] = {}
    for node in nodes:
        for edge in node.grants:
            seen.setdefault(edge, None)
    return tuple(seen)


__all__ = [
    "ActualTopology",
    "Breadth",
    "GrantEdge",
    "GranteeType",
    "NodePurpose",
    "Securable",
    "TopologyNode",
    "all_edges",
    "desired_topology",
]
