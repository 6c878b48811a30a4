"""Policy constants for the platform's access-control convention.

Provides:
- ``Environment``: deployment tiers (DEV, TST, UAT, PPE, PRD).
- ``CapabilityLevel``: ordered functional-role tiers.
- ``ObjectCategory``: schema object categories in their fixed order.
- ``Privileges``: privilege keyword constants.
"""

from __future__ import annotations

from enum import Enum

from ..exceptions import ValidationError


class Environment(str, Enum):
    """Deployment environment code.

    Only DEV carries write access and developer ownership; every other
    environment is read-oriented with a centralized operations owner.
    """

    DEV = "DEV"
    TST = "TST"
    UAT = "UAT"
    PPE = "PPE"
    PRD = "PRD"

    @property
    def is_dev(self) -> bool:
        return self is Environment.DEV

    @classmethod
    def parse(cls, value: str | Environment) -> Environment:
        """Parse an environment code, raising ValidationError if unknown."""
        if isinstance(value, Environment):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(e.value for e in cls)
            raise ValidationError(
                f"Invalid environment. Must be one of: {allowed}",
                environment=value,
            ) from None


class CapabilityLevel(str, Enum):
    """Functional-role tier. Declaration order is the privilege order.

    Each level holds every privilege of the levels before it.
    """

    END_USER = "END_USER"
    ANALYST = "ANALYST"
    DEVELOPER = "DEVELOPER"
    TEAM_LEADER = "TEAM_LEADER"
    DATA_SCIENTIST = "DATA_SCIENTIST"
    DBADMIN = "DBADMIN"

    @property
    def rank(self) -> int:
        return _CAPABILITY_ORDER.index(self)

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, CapabilityLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, CapabilityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, CapabilityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CapabilityLevel):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: str | CapabilityLevel) -> CapabilityLevel:
        """Parse a capability level, raising ValidationError if unknown."""
        if isinstance(value, CapabilityLevel):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(c.value for c in cls)
            raise ValidationError(
                f"Invalid capability level. Must be one of: {allowed}",
                capability=value,
            ) from None


_CAPABILITY_ORDER: tuple[CapabilityLevel, ...] = tuple(CapabilityLevel)


class ObjectCategory(str, Enum):
    """Schema object categories, in the fixed order used for generation,
    action ordering and report output.

    Values are the plural keywords used in ``ON ALL <x> IN SCHEMA``.
    """

    TABLES = "TABLES"
    VIEWS = "VIEWS"
    MATERIALIZED_VIEWS = "MATERIALIZED VIEWS"
    DYNAMIC_TABLES = "DYNAMIC TABLES"
    EXTERNAL_TABLES = "EXTERNAL TABLES"
    FUNCTIONS = "FUNCTIONS"
    PROCEDURES = "PROCEDURES"
    SEQUENCES = "SEQUENCES"
    STAGES = "STAGES"
    FILE_FORMATS = "FILE FORMATS"
    STREAMS = "STREAMS"
    TASKS = "TASKS"
    PIPES = "PIPES"

    @property
    def position(self) -> int:
        return OBJECT_CATEGORY_ORDER.index(self)

    @property
    def singular(self) -> str:
        """Keyword used in ``CREATE <x>`` privileges (``TABLE``, ``FILE FORMAT``)."""
        return _SINGULAR[self]


OBJECT_CATEGORY_ORDER: tuple[ObjectCategory, ...] = tuple(ObjectCategory)

_SINGULAR: dict[ObjectCategory, str] = {
    ObjectCategory.TABLES: "TABLE",
    ObjectCategory.VIEWS: "VIEW",
    ObjectCategory.MATERIALIZED_VIEWS: "MATERIALIZED VIEW",
    ObjectCategory.DYNAMIC_TABLES: "DYNAMIC TABLE",
    ObjectCategory.EXTERNAL_TABLES: "EXTERNAL TABLE",
    ObjectCategory.FUNCTIONS: "FUNCTION",
    ObjectCategory.PROCEDURES: "PROCEDURE",
    ObjectCategory.SEQUENCES: "SEQUENCE",
    ObjectCategory.STAGES: "STAGE",
    ObjectCategory.FILE_FORMATS: "FILE FORMAT",
    ObjectCategory.STREAMS: "STREAM",
    ObjectCategory.TASKS: "TASK",
    ObjectCategory.PIPES: "PIPE",
}


class Privileges:
    """Privilege keywords used by the policy rules."""

    USAGE = "USAGE"
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TRUNCATE = "TRUNCATE"
    READ = "READ"
    WRITE = "WRITE"
    OWNERSHIP = "OWNERSHIP"

    @staticmethod
    def create(category: ObjectCategory) -> str:
        """Build the schema-level create privilege for a category.

        Example::

            Privileges.create(ObjectCategory.FILE_FORMATS)  # "CREATE FILE FORMAT"
        """
        return f"CREATE {category.singular}"


__all__ = [
    "CapabilityLevel",
    "Environment",
    "OBJECT_CATEGORY_ORDER",
    "ObjectCategory",
    "Privileges",
]
