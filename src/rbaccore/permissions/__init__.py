"""Policy registry for the platform's access-control convention.

Defines:
- Environment: deployment tiers (DEV/TST/UAT/PPE/PRD)
- CapabilityLevel: ordered functional-role tiers
- ObjectCategory: schema object categories in fixed order
- CAPABILITY_INHERITANCE: level → inherited level
- READ_PRIVILEGES / WRITE_PRIVILEGES: per-category privilege rules
- expand_capabilities(): resolve inherited levels
"""

from .constants import (
    OBJECT_CATEGORY_ORDER,
    CapabilityLevel,
    Environment,
    ObjectCategory,
    Privileges,
)
from .inheritance import (
    CAPABILITY_INHERITANCE,
    WRITE_CAPABILITY_FLOOR,
    AccessKind,
    can_write,
    expand_capabilities,
    schema_access,
)
from .policy import (
    CREATABLE_CATEGORIES,
    OWNED_CATEGORIES,
    READ_PRIVILEGES,
    WRITE_PRIVILEGES,
)

__all__ = [
    "AccessKind",
    "CAPABILITY_INHERITANCE",
    "CREATABLE_CATEGORIES",
    "CapabilityLevel",
    "Environment",
    "OBJECT_CATEGORY_ORDER",
    "OWNED_CATEGORIES",
    "ObjectCategory",
    "Privileges",
    "READ_PRIVILEGES",
    "WRITE_CAPABILITY_FLOOR",
    "WRITE_PRIVILEGES",
    "can_write",
    "expand_capabilities",
    "schema_access",
]
