"""Capability inheritance and environment write eligibility.

Provides:
- ``AccessKind``: read / write access to a schema.
- ``CAPABILITY_INHERITANCE``: level → directly inherited level.
- ``expand_capabilities()``: resolve every level a capability implies.
- ``schema_access()``: access kinds a capability holds in an environment.
"""

from __future__ import annotations

from enum import Enum

from .constants import CapabilityLevel, Environment


class AccessKind(str, Enum):
    READ = "READ"
    WRITE = "WRITE"


# ── Capability Inheritance ──────────────────────────────
# Each level implies the level below it (monotone hierarchy).

CAPABILITY_INHERITANCE: dict[CapabilityLevel, tuple[CapabilityLevel, ...]] = {
    CapabilityLevel.DBADMIN: (CapabilityLevel.DATA_SCIENTIST,),
    CapabilityLevel.DATA_SCIENTIST: (CapabilityLevel.TEAM_LEADER,),
    CapabilityLevel.TEAM_LEADER: (CapabilityLevel.DEVELOPER,),
    CapabilityLevel.DEVELOPER: (CapabilityLevel.ANALYST,),
    CapabilityLevel.ANALYST: (CapabilityLevel.END_USER,),
    CapabilityLevel.END_USER: (),
}

# Lowest level that receives write access and create rights in DEV.
WRITE_CAPABILITY_FLOOR = CapabilityLevel.DEVELOPER


def expand_capabilities(capability: CapabilityLevel) -> tuple[CapabilityLevel, ...]:
    """Expand a capability level by resolving inheritance.

    Returns:
        Every implied level (including ``capability``), lowest first.

    Example::

        >>> expand_capabilities(CapabilityLevel.ANALYST)
        (<CapabilityLevel.END_USER: 'END_USER'>, <CapabilityLevel.ANALYST: 'ANALYST'>)
    """
    expanded: set[CapabilityLevel] = {capability}
    queue = [capability]

    while queue:
        level = queue.pop()
        for child in CAPABILITY_INHERITANCE.get(level, ()):
            if child not in expanded:
                expanded.add(child)
                queue.append(child)

    return tuple(sorted(expanded, key=lambda c: c.rank))


def can_write(capability: CapabilityLevel, environment: Environment) -> bool:
    """Write privileges are valid only in DEV, from DEVELOPER upward."""
    return environment.is_dev and WRITE_CAPABILITY_FLOOR in expand_capabilities(capability)


def schema_access(capability: CapabilityLevel, environment: Environment) -> frozenset[AccessKind]:
    """Access kinds a capability level holds on schemas of an environment."""
    if can_write(capability, environment):
        return frozenset({AccessKind.READ, AccessKind.WRITE})
    return frozenset({AccessKind.READ})


__all__ = [
    "AccessKind",
    "CAPABILITY_INHERITANCE",
    "WRITE_CAPABILITY_FLOOR",
    "can_write",
    "expand_capabilities",
    "schema_access",
]
