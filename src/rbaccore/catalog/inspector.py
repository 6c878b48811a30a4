"""Assemble the actual topology of a scope from a catalog inspector."""

from __future__ import annotations

import logging
from typing import Sequence

from ..interfaces import CatalogInspector
from ..naming import Scope
from ..topology import ActualTopology, TopologyNode, all_edges

logger = logging.getLogger(__name__)


def inspect_topology(
    inspector: CatalogInspector,
    scope: Scope,
    desired: Sequence[TopologyNode],
) -> ActualTopology:
    """Read the catalog state the desired topology depends on.

    Grants of roles that do not exist yet are not queried; they cannot be held.
    """
    managed = inspector.is_managed_access(scope)

    roles: set[str] = set()
    present: list[TopologyNode] = []
    for node in desired:
        if node.requires_creation:
            if not inspector.role_exists(node.identifier, scope):
                continue
            roles.add(node.identifier)
        present.append(node)

    candidates = all_edges(present)
    grants = inspector.held_grants(scope, candidates)
    logger.debug(
        "Inspected %s: managed_access=%s roles=%d held=%d/%d",
        scope,
        managed,
        len(roles),
        len(grants),
        len(candidates),
    )
    return ActualTopology(managed_access=managed, roles=frozenset(roles), grants=frozenset(grants))


__all__ = ["inspect_topology"]
