"""In-process catalog adapter.

Holds schemas, database roles and grant edges in plain Python sets. Used to
simulate a reconciliation against a known state (e.g. to preview what a
second run would do) and as the catalog in tests. Failures can be injected
per request to exercise the executor's isolation rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Union

from ..authorization import AuthorizationContext
from ..exceptions import CatalogError
from ..interfaces import Catalog
from ..naming import DatabaseScope, Scope
from ..topology import GrantEdge, GranteeType
from .statements import MutationRequest, Statement, render

logger = logging.getLogger(__name__)

# Snowflake error numbers mirrored by this adapter.
ERRNO_ALREADY_EXISTS = 2002
ERRNO_DOES_NOT_EXIST = 2003

RequestPredicate = Callable[[MutationRequest], bool]


@dataclass
class _Failure:
    predicate: RequestPredicate
    error: CatalogError
    remaining: int | None = None


@dataclass
class InMemoryCatalog(Catalog):
    """Catalog state kept in memory.

    Example::

        catalog = InMemoryCatalog()
        catalog.add_schema("DEV", "HR", "EMPLOYEES")
        result = reconcile("DEV", "HR", "EMPLOYEES", dry_run=True, catalog=catalog)
    """

    databases: set[str] = field(default_factory=set)
    schemas: dict[tuple[str, str], bool] = field(default_factory=dict)
    database_roles: set[tuple[str, str]] = field(default_factory=set)
    account_roles: set[str] = field(default_factory=set)
    grants: dict[tuple[str, str], set[GrantEdge]] = field(default_factory=dict)
    executed: list[str] = field(default_factory=list)
    _failures: list[_Failure] = field(default_factory=list)

    # ── Seeding ──────────────────────────────────────────

    def add_schema(self, environment: str, database: str, schema: str, *, managed: bool = False) -> Scope:
        scope = Scope.create(environment, database, schema)
        self.databases.add(scope.full_database)
        self.schemas[(scope.full_database, scope.schema)] = managed
        self.grants.setdefault((scope.full_database, scope.schema), set())
        return scope

    def add_account_roles(self, *names: str) -> None:
        self.account_roles.update(n.upper() for n in names)

    def add_grants(self, scope: Scope, edges: Iterable[GrantEdge]) -> None:
        self.grants.setdefault((scope.full_database, scope.schema), set()).update(edges)

    def fail_when(
        self,
        predicate: RequestPredicate,
        *,
        message: str = "SQL execution error",
        errno: int | None = None,
        sqlstate: str | None = None,
        times: int | None = None,
    ) -> None:
        """Make matching requests raise ``CatalogError`` (``times`` = None: always)."""
        error = CatalogError(message, errno=errno, sqlstate=sqlstate)
        self._failures.append(_Failure(predicate=predicate, error=error, remaining=times))

    def snapshot(self) -> tuple:
        """Hashable copy of the observable state."""
        return (
            frozenset(self.databases),
            frozenset(self.schemas.items()),
            frozenset(self.database_roles),
            frozenset(self.account_roles),
            frozenset((key, frozenset(edges)) for key, edges in self.grants.items()),
        )

    # ── CatalogInspector ─────────────────────────────────

    def database_exists(self, scope: Union[Scope, DatabaseScope]) -> bool:
        return scope.full_database in self.databases

    def list_schemas(self, database: DatabaseScope) -> list[str]:
        return sorted(schema for db, schema in self.schemas if db == database.full_database)

    def schema_exists(self, scope: Scope) -> bool:
        return (scope.full_database, scope.schema) in self.schemas

    def is_managed_access(self, scope: Scope) -> bool:
        return self.schemas.get((scope.full_database, scope.schema), False)

    def role_exists(self, identifier: str, scope: Scope) -> bool:
        return (scope.full_database, identifier) in self.database_roles

    def account_role_exists(self, identifier: str) -> bool:
        return identifier in self.account_roles

    def held_grants(self, scope: Scope, edges: Iterable[GrantEdge]) -> frozenset[GrantEdge]:
        held = self.grants.get((scope.full_database, scope.schema), set())
        return frozenset(e for e in edges if e in held)

    # ── CatalogMutator ───────────────────────────────────

    def apply(self, request: MutationRequest, auth: AuthorizationContext) -> None:
        statement = render(request)
        self._raise_injected(request, statement)

        key = (request.database, request.schema)
        if key not in self.schemas:
            raise CatalogError(
                f"Schema '{request.database}.{request.schema}' does not exist or not authorized.",
                errno=ERRNO_DOES_NOT_EXIST,
                sqlstate="02000",
                statement=statement,
            )

        if request.statement is Statement.ENABLE_MANAGED_ACCESS:
            self.schemas[key] = True
        elif request.statement is Statement.CREATE_DATABASE_ROLE:
            role = (request.database, request.grantee or "")
            if role in self.database_roles:
                raise CatalogError(
                    f"Object '{request.grantee}' already exists.",
                    errno=ERRNO_ALREADY_EXISTS,
                    sqlstate="42710",
                    statement=statement,
                )
            self.database_roles.add(role)
        else:
            self._grant(key, request, statement)

        self.executed.append(statement)
        logger.debug("Applied as %s: %s", auth.role, statement)

    def _grant(self, key: tuple[str, str], request: MutationRequest, statement: str) -> None:
        if (
            request.grantee_type is GranteeType.DATABASE_ROLE
            and (request.database, request.grantee) not in self.database_roles
        ):
            raise CatalogError(
                f"Database role '{request.grantee}' does not exist or not authorized.",
                errno=ERRNO_DOES_NOT_EXIST,
                sqlstate="02000",
                statement=statement,
            )
        held = self.grants.setdefault(key, set())
        for edge in request.edges():
            if edge.is_ownership:
                # Ownership is exclusive per category and breadth.
                held.difference_update(
                    {
                        e
                        for e in held
                        if e.is_ownership and e.category is edge.category and e.breadth is edge.breadth
                    }
                )
            held.add(edge)

    def _raise_injected(self, request: MutationRequest, statement: str) -> None:
        for failure in self._failures:
            if failure.remaining == 0 or not failure.predicate(request):
                continue
            if failure.remaining is not None:
                failure.remaining -= 1
            err = failure.error
            raise CatalogError(err.message, errno=err.errno, sqlstate=err.sqlstate, statement=statement)


__all__ = ["ERRNO_ALREADY_EXISTS", "ERRNO_DOES_NOT_EXIST", "InMemoryCatalog"]
