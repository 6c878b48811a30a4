from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, Union

from .authorization import AuthorizationContext
from .naming import DatabaseScope, Scope
from .topology import GrantEdge

if TYPE_CHECKING:
    from .catalog.statements import MutationRequest


class CatalogInspector(ABC):
    """Read-only view of the access-control catalog.

    Implementations must be side-effect free. A missing database, schema or
    role is a normal ``False``, never an exception.
    """

    @abstractmethod
    def database_exists(self, scope: Union[Scope, DatabaseScope]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_schemas(self, database: DatabaseScope) -> list[str]:
        """Names of every schema in the database, sorted, system schemas included."""
        raise NotImplementedError

    @abstractmethod
    def schema_exists(self, scope: Scope) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_managed_access(self, scope: Scope) -> bool:
        raise NotImplementedError

    @abstractmethod
    def role_exists(self, identifier: str, scope: Scope) -> bool:
        """Database role ``identifier`` exists in the scope's database."""
        raise NotImplementedError

    @abstractmethod
    def account_role_exists(self, identifier: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def held_grants(self, scope: Scope, edges: Iterable[GrantEdge]) -> frozenset[GrantEdge]:
        """Subset of ``edges`` currently satisfied in the catalog.

        An EXISTING edge holds when every existing object of its category
        carries the privilege (vacuously when there are none).
        """
        raise NotImplementedError


class CatalogMutator(ABC):
    """Mutation side of the catalog: one statement per call."""

    @abstractmethod
    def apply(self, request: MutationRequest, auth: AuthorizationContext) -> None:
        """Execute one request acting as ``auth.role``.

        Raises:
            CatalogError: the statement failed; carries errno/sqlstate.
        """
        raise NotImplementedError

    def preview(self, request: MutationRequest) -> str:
        """Statement text for reports, rendered with this adapter's quoting."""
        from .catalog.statements import render

        return render(request)


class Catalog(CatalogInspector, CatalogMutator):
    """Convenience base for adapters that both inspect and mutate."""


__all__ = ["Catalog", "CatalogInspector", "CatalogMutator"]
