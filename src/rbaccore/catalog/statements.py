"""Typed catalog mutation requests and their rendering.

Corrective actions never carry SQL text. They carry ``MutationRequest``
values; a catalog adapter renders each request with its own identifier
quoting right before execution. Rendering is total over validated scopes and
never embeds unquoted caller input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from itertools import groupby
from typing import Callable, Iterable, Optional

from ..naming import Scope
from ..permissions import ObjectCategory
from ..topology import Breadth, GrantEdge, GranteeType, Securable

QuoteFunc = Callable[[str], str]


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


class Statement(str, Enum):
    CREATE_DATABASE_ROLE = "CREATE_DATABASE_ROLE"
    ENABLE_MANAGED_ACCESS = "ENABLE_MANAGED_ACCESS"
    GRANT = "GRANT"
    GRANT_OWNERSHIP = "GRANT_OWNERSHIP"


@dataclass(frozen=True)
class MutationRequest:
    """One catalog mutation, described structurally."""

    statement: Statement
    database: str
    schema: str
    grantee: Optional[str] = None
    grantee_type: Optional[GranteeType] = None
    privileges: tuple[str, ...] = ()
    securable: Optional[Securable] = None
    breadth: Optional[Breadth] = None
    category: Optional[ObjectCategory] = None
    comment: Optional[str] = None

    @classmethod
    def create_database_role(cls, scope: Scope, role: str, comment: str | None = None) -> MutationRequest:
        return cls(
            statement=Statement.CREATE_DATABASE_ROLE,
            database=scope.full_database,
            schema=scope.schema,
            grantee=role,
            grantee_type=GranteeType.DATABASE_ROLE,
            comment=comment,
        )

    @classmethod
    def enable_managed_access(cls, scope: Scope) -> MutationRequest:
        return cls(
            statement=Statement.ENABLE_MANAGED_ACCESS,
            database=scope.full_database,
            schema=scope.schema,
        )

    @classmethod
    def for_edges(cls, scope: Scope, edges: Iterable[GrantEdge]) -> tuple[MutationRequest, ...]:
        """Group consecutive edges sharing a target into single grant requests.

        Privileges keep their edge order; ownership edges are never merged
        with other privileges.
        """

        def key(edge: GrantEdge):
            return (edge.is_ownership, edge.securable, edge.breadth, edge.category, edge.grantee, edge.grantee_type)

        requests: list[MutationRequest] = []
        for (is_ownership, securable, breadth, category, grantee, grantee_type), group in groupby(edges, key=key):
            privileges = tuple(dict.fromkeys(e.privilege for e in group))
            requests.append(
                cls(
                    statement=Statement.GRANT_OWNERSHIP if is_ownership else Statement.GRANT,
                    database=scope.full_database,
                    schema=scope.schema,
                    grantee=grantee,
                    grantee_type=grantee_type,
                    privileges=privileges,
                    securable=securable,
                    breadth=breadth,
                    category=category,
                )
            )
        return tuple(requests)

    @property
    def is_grant(self) -> bool:
        return self.statement in (Statement.GRANT, Statement.GRANT_OWNERSHIP)

    def describe(self) -> str:
        """Short structural description that does not depend on rendering."""
        parts = [self.statement.value, f"{self.database}.{self.schema}"]
        if self.category is not None:
            parts.append(self.category.value)
        if self.grantee:
            parts.append(f"-> {self.grantee}")
        return " ".join(parts)

    def edges(self) -> tuple[GrantEdge, ...]:
        """Grant edges this request establishes (empty for non-grant requests)."""
        if not self.is_grant or self.grantee is None or self.grantee_type is None or self.securable is None:
            return ()
        return tuple(
            GrantEdge(
                privilege=privilege,
                securable=self.securable,
                breadth=self.breadth or Breadth.SELF,
                grantee=self.grantee,
                grantee_type=self.grantee_type,
                category=self.category,
            )
            for privilege in self.privileges
        )


def _qualified(quote: QuoteFunc, *parts: str) -> str:
    return ".".join(quote(p) for p in parts)


def _grantee(request: MutationRequest, quote: QuoteFunc) -> str:
    if request.grantee_type is GranteeType.DATABASE_ROLE:
        return f"DATABASE ROLE {_qualified(quote, request.database, request.grantee or '')}"
    return f"ROLE {quote(request.grantee or '')}"


def _target(request: MutationRequest, quote: QuoteFunc) -> str:
    if request.securable is Securable.DATABASE:
        return f"DATABASE {quote(request.database)}"
    if request.securable is Securable.SCHEMA:
        return f"SCHEMA {_qualified(quote, request.database, request.schema)}"
    if request.category is None:
        raise ValueError("Object grants require a category")
    breadth = "FUTURE" if request.breadth is Breadth.FUTURE else "ALL"
    return f"{breadth} {request.category.value} IN SCHEMA {_qualified(quote, request.database, request.schema)}"


def render(request: MutationRequest, quote: QuoteFunc = quote_identifier) -> str:
    """Render a request as a single catalog statement.

    Example::

        render(MutationRequest.enable_managed_access(scope))
        # 'ALTER SCHEMA "HR_DEV"."EMPLOYEES" ENABLE MANAGED ACCESS'
    """
    if request.statement is Statement.ENABLE_MANAGED_ACCESS:
        return f"ALTER SCHEMA {_qualified(quote, request.database, request.schema)} ENABLE MANAGED ACCESS"

    if request.statement is Statement.CREATE_DATABASE_ROLE:
        sql = f"CREATE DATABASE ROLE {_qualified(quote, request.database, request.grantee or '')}"
        if request.comment:
            sql += f" COMMENT = {quote_literal(request.comment)}"
        return sql

    privileges = ", ".join(request.privileges)
    sql = f"GRANT {privileges} ON {_target(request, quote)} TO {_grantee(request, quote)}"
    if request.statement is Statement.GRANT_OWNERSHIP and request.breadth is Breadth.EXISTING:
        sql += " COPY CURRENT GRANTS"
    return sql


__all__ = [
    "MutationRequest",
    "QuoteFunc",
    "Statement",
    "quote_identifier",
    "quote_literal",
    "render",
]
