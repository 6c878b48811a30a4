"""SQLAlchemy catalog adapter for Snowflake-style access-control catalogs.

Lookups by value go through ``text()`` with bound parameters (including
``IDENTIFIER(:view)`` for per-database INFORMATION_SCHEMA views). Statements
that only accept identifiers (``SHOW ...``, ``GRANT ...``) are rendered from
typed requests with the dialect's identifier quoting and run through
``exec_driver_sql`` so no bind-parameter parsing touches them.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from ..authorization import AuthorizationContext
from ..config import RbacConfig
from ..exceptions import CatalogError, ConfigurationError
from ..interfaces import Catalog
from ..naming import DatabaseScope, Scope
from ..permissions import ObjectCategory
from ..topology import Breadth, GrantEdge, GranteeType, Securable
from .statements import MutationRequest, render

logger = logging.getLogger(__name__)

# SHOW keywords whose plain form would also list built-in objects.
_SHOW_KEYWORDS: dict[ObjectCategory, str] = {
    ObjectCategory.FUNCTIONS: "USER FUNCTIONS",
    ObjectCategory.PROCEDURES: "USER PROCEDURES",
}


def sanitize_url(url: str) -> str:
    """Render the URL without exposing secrets for logging."""
    return make_url(url).render_as_string(hide_password=True)


def _object_name(value: Any) -> str:
    """Normalize a SHOW ``name`` value: unquote, drop call signatures."""
    name = str(value or "").replace('"', "").upper()
    return name.split("(", 1)[0]


def _short_name(value: Any) -> str:
    """Database-role grantee names may come back qualified (``DB.ROLE``)."""
    return str(value or "").replace('"', "").upper().rsplit(".", 1)[-1]


def _grant_on_keyword(category: ObjectCategory) -> str:
    return category.singular.replace(" ", "_")


class SqlAlchemyCatalog(Catalog):
    """Catalog adapter backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, **engine_kwargs: Any) -> SqlAlchemyCatalog:
        engine_kwargs.setdefault("pool_pre_ping", True)
        logger.info("Connecting to catalog %s", sanitize_url(url))
        return cls(create_engine(url, **engine_kwargs))

    @classmethod
    def from_config(cls, config: RbacConfig) -> SqlAlchemyCatalog:
        if not config.catalog_url:
            raise ConfigurationError("RBAC_CATALOG_URL is required to connect to the catalog")
        return cls.from_url(config.catalog_url)

    def dispose(self) -> None:
        self._engine.dispose()

    # ── Rendering ────────────────────────────────────────

    def _quote(self, name: str) -> str:
        return self._engine.dialect.identifier_preparer.quote_identifier(name)

    def _qualified(self, *parts: str) -> str:
        return ".".join(self._quote(p) for p in parts)

    def preview(self, request: MutationRequest) -> str:
        return render(request, self._quote)

    # ── Low-level access ─────────────────────────────────

    @staticmethod
    def _catalog_error(exc: SQLAlchemyError, statement: str) -> CatalogError:
        orig = getattr(exc, "orig", None)
        message = str(orig or exc) or "Unknown catalog error"
        return CatalogError(
            message,
            errno=getattr(orig, "errno", None),
            sqlstate=getattr(orig, "sqlstate", None),
            statement=statement,
        )

    def _query(self, sql: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(text(sql), dict(params)).mappings().all()
        except SQLAlchemyError as exc:
            raise self._catalog_error(exc, sql) from exc
        return [{str(k).lower(): v for k, v in row.items()} for row in rows]

    def _show(self, sql: str) -> list[dict[str, Any]]:
        try:
            with self._engine.connect() as connection:
                rows = connection.exec_driver_sql(sql).mappings().all()
        except SQLAlchemyError as exc:
            raise self._catalog_error(exc, sql) from exc
        return [{str(k).lower(): v for k, v in row.items()} for row in rows]

    def _count(self, sql: str, params: Mapping[str, Any]) -> int:
        rows = self._query(sql, params)
        return int(rows[0]["n"]) if rows else 0

    # ── CatalogInspector ─────────────────────────────────

    def database_exists(self, scope: Union[Scope, DatabaseScope]) -> bool:
        return (
            self._count(
                "SELECT COUNT(*) AS n FROM SNOWFLAKE.INFORMATION_SCHEMA.DATABASES WHERE DATABASE_NAME = :database",
                {"database": scope.full_database},
            )
            > 0
        )

    def list_schemas(self, database: DatabaseScope) -> list[str]:
        if not self.database_exists(database):
            return []
        rows = self._query(
            "SELECT SCHEMA_NAME FROM IDENTIFIER(:view) WHERE CATALOG_NAME = :database ORDER BY SCHEMA_NAME",
            {
                "view": f"{database.full_database}.INFORMATION_SCHEMA.SCHEMATA",
                "database": database.full_database,
            },
        )
        return [str(row["schema_name"]) for row in rows]

    def _schema_row(self, scope: Scope) -> Optional[dict[str, Any]]:
        if not self.database_exists(scope):
            return None
        rows = self._query(
            "SELECT SCHEMA_NAME, IS_MANAGED_ACCESS FROM IDENTIFIER(:view) "
            "WHERE CATALOG_NAME = :database AND SCHEMA_NAME = :schema",
            {
                "view": f"{scope.full_database}.INFORMATION_SCHEMA.SCHEMATA",
                "database": scope.full_database,
                "schema": scope.schema,
            },
        )
        return rows[0] if rows else None

    def schema_exists(self, scope: Scope) -> bool:
        return self._schema_row(scope) is not None

    def is_managed_access(self, scope: Scope) -> bool:
        row = self._schema_row(scope)
        return row is not None and str(row.get("is_managed_access", "")).upper() == "YES"

    def role_exists(self, identifier: str, scope: Scope) -> bool:
        rows = self._show(f"SHOW DATABASE ROLES IN DATABASE {self._quote(scope.full_database)}")
        return any(_short_name(row.get("name")) == identifier for row in rows)

    def account_role_exists(self, identifier: str) -> bool:
        return (
            self._count(
                "SELECT COUNT(*) AS n FROM SNOWFLAKE.ACCOUNT_USAGE.ROLES WHERE NAME = :name AND DELETED_ON IS NULL",
                {"name": identifier},
            )
            > 0
        )

    def held_grants(self, scope: Scope, edges: Iterable[GrantEdge]) -> frozenset[GrantEdge]:
        edges = list(edges)
        schema_sql = self._qualified(scope.full_database, scope.schema)

        future: set[tuple[str, str, str]] = set()
        if any(e.breadth is Breadth.FUTURE for e in edges):
            for row in self._show(f"SHOW FUTURE GRANTS IN SCHEMA {schema_sql}"):
                future.add(
                    (
                        str(row.get("privilege", "")).upper(),
                        str(row.get("grant_on", "")).upper(),
                        _short_name(row.get("grantee_name")),
                    )
                )

        grantees = {(e.grantee, e.grantee_type) for e in edges if e.breadth is not Breadth.FUTURE}
        current: dict[str, set[tuple[str, str]]] = defaultdict(set)
        for grantee, grantee_type in sorted(grantees):
            if grantee_type is GranteeType.DATABASE_ROLE:
                sql = f"SHOW GRANTS TO DATABASE ROLE {self._qualified(scope.full_database, grantee)}"
            else:
                sql = f"SHOW GRANTS TO ROLE {self._quote(grantee)}"
            for row in self._show(sql):
                current[grantee].add((str(row.get("privilege", "")).upper(), _object_name(row.get("name"))))

        categories = {e.category for e in edges if e.breadth is Breadth.EXISTING and e.category is not None}
        objects: dict[ObjectCategory, list[str]] = {}
        for category in sorted(categories, key=lambda c: c.position):
            keyword = _SHOW_KEYWORDS.get(category, category.value)
            rows = self._show(f"SHOW {keyword} IN SCHEMA {schema_sql}")
            objects[category] = [
                _object_name(f"{scope.full_database}.{scope.schema}.{row.get('name')}") for row in rows
            ]

        held: set[GrantEdge] = set()
        for edge in edges:
            if edge.breadth is Breadth.FUTURE and edge.category is not None:
                if (edge.privilege, _grant_on_keyword(edge.category), edge.grantee) in future:
                    held.add(edge)
            elif edge.breadth is Breadth.EXISTING and edge.category is not None:
                granted = current[edge.grantee]
                if all((edge.privilege, name) in granted for name in objects.get(edge.category, ())):
                    held.add(edge)
            elif edge.securable is Securable.DATABASE:
                if (edge.privilege, scope.full_database) in current[edge.grantee]:
                    held.add(edge)
            elif edge.securable is Securable.SCHEMA:
                if (edge.privilege, scope.qualified_schema) in current[edge.grantee]:
                    held.add(edge)
        return frozenset(held)

    # ── CatalogMutator ───────────────────────────────────

    def apply(self, request: MutationRequest, auth: AuthorizationContext) -> None:
        statement = self.preview(request)
        try:
            with self._engine.begin() as connection:
                connection.exec_driver_sql(f"USE ROLE {self._quote(auth.role)}")
                connection.exec_driver_sql(statement)
        except SQLAlchemyError as exc:
            raise self._catalog_error(exc, statement) from exc
        logger.debug("Applied as %s: %s", auth.role, statement)


__all__ = ["SqlAlchemyCatalog", "sanitize_url"]
