"""Fixed privilege rules of the access-control convention.

Provides:
- ``READ_PRIVILEGES``: per-category privileges of a schema's READ role.
- ``WRITE_PRIVILEGES``: per-category privileges of a schema's WRITE role (DEV).
- ``CREATABLE_CATEGORIES``: categories the creator role may create.
- ``OWNED_CATEGORIES``: categories whose ownership is centralized.

Rules are tuples in ``OBJECT_CATEGORY_ORDER`` so every consumer iterates them
deterministically.
"""

from __future__ import annotations

from .constants import OBJECT_CATEGORY_ORDER, ObjectCategory, Privileges

# ── Read role ──────────────────────────────────────────
# Applied to existing and future objects alike.

READ_PRIVILEGES: tuple[tuple[ObjectCategory, tuple[str, ...]], ...] = (
    (ObjectCategory.TABLES, (Privileges.SELECT,)),
    (ObjectCategory.VIEWS, (Privileges.SELECT,)),
    (ObjectCategory.MATERIALIZED_VIEWS, (Privileges.SELECT,)),
    (ObjectCategory.DYNAMIC_TABLES, (Privileges.SELECT,)),
    (ObjectCategory.FUNCTIONS, (Privileges.USAGE,)),
    (ObjectCategory.PROCEDURES, (Privileges.USAGE,)),
    (ObjectCategory.STAGES, (Privileges.READ,)),
    (ObjectCategory.FILE_FORMATS, (Privileges.USAGE,)),
    (ObjectCategory.STREAMS, (Privileges.SELECT,)),
)

# ── Write role (DEV only) ──────────────────────────────

WRITE_PRIVILEGES: tuple[tuple[ObjectCategory, tuple[str, ...]], ...] = (
    (
        ObjectCategory.TABLES,
        (Privileges.SELECT, Privileges.INSERT, Privileges.UPDATE, Privileges.DELETE, Privileges.TRUNCATE),
    ),
    (
        ObjectCategory.VIEWS,
        (Privileges.SELECT, Privileges.INSERT, Privileges.UPDATE, Privileges.DELETE),
    ),
    (ObjectCategory.STAGES, (Privileges.READ, Privileges.WRITE)),
)

# ── Ownership and creation ─────────────────────────────

OWNED_CATEGORIES: tuple[ObjectCategory, ...] = OBJECT_CATEGORY_ORDER

CREATABLE_CATEGORIES: tuple[ObjectCategory, ...] = tuple(
    c for c in OBJECT_CATEGORY_ORDER if c is not ObjectCategory.EXTERNAL_TABLES
)


__all__ = [
    "CREATABLE_CATEGORIES",
    "OWNED_CATEGORIES",
    "READ_PRIVILEGES",
    "WRITE_PRIVILEGES",
]
