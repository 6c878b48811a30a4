"""Authorization context for apply-mode reconciliation.

Mutations never run under an ambient session identity. The caller passes an
``AuthorizationContext`` naming the catalog role to act as; the executor
checks it against the scope before the first mutation and the catalog
adapter assumes that role explicitly.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Iterable

from .config import RbacConfig
from .exceptions import AuthorizationError
from .naming import Scope, dbadmin_role
from .permissions import Environment


@dataclass(frozen=True)
class AuthorizationContext:
    """Identity and role under which corrective actions are applied.

    - context_id: Unique identifier for audit trails
    - principal: Human or service identity requesting the run
    - role: Catalog role the adapter assumes for every mutation
    - environments: Environment codes this context may mutate. Empty = all.
    - exp_unix: Expiration timestamp (None = no expiration)
    """

    context_id: str
    principal: str
    role: str
    environments: tuple[str, ...] = ()
    exp_unix: float | None = None

    @classmethod
    def issue(
        cls,
        *,
        principal: str,
        role: str,
        environments: Iterable[str | Environment] | None = None,
        ttl_s: float | None = None,
    ) -> AuthorizationContext:
        """Create a context for one principal acting as ``role``.

        Args:
            principal: Who is asking (user name or pipeline id).
            role: Catalog role to act as (e.g. ``SRF_DEV_DBADMIN``).
            environments: Environments the context may mutate. None = all.
            ttl_s: Optional lifetime in seconds.
        """
        envs = tuple(Environment.parse(e).value for e in (environments or ()))
        return cls(
            context_id=secrets.token_urlsafe(12),
            principal=principal,
            role=role.strip().upper(),
            environments=envs,
            exp_unix=(time.time() + ttl_s) if ttl_s is not None else None,
        )

    def is_expired(self, *, now: float | None = None) -> bool:
        """Check if the context has expired."""
        if self.exp_unix is None:
            return False
        t = time.time() if now is None else now
        return t >= self.exp_unix

    def can_access_environment(self, environment: Environment) -> bool:
        """True if ``environments`` is empty or lists the environment."""
        if not self.environments:
            return True
        return environment.value in self.environments


def authorize(
    auth: AuthorizationContext | None, scope: Scope, config: RbacConfig | None = None
) -> AuthorizationContext:
    """Check that ``auth`` may apply corrective actions to ``scope``.

    The acting role must be the environment's DBADMIN functional role or one
    of the configured admin roles.

    Returns:
        The validated context.

    Raises:
        AuthorizationError: missing, expired or insufficient context.
    """
    cfg = config or RbacConfig()
    if auth is None:
        raise AuthorizationError("Apply mode requires an authorization context", scope=str(scope))
    if auth.is_expired():
        raise AuthorizationError(
            "Authorization context has expired",
            scope=str(scope),
            context_id=auth.context_id,
        )
    if not auth.can_access_environment(scope.environment):
        raise AuthorizationError(
            f"Authorization context does not cover environment {scope.environment.value}",
            scope=str(scope),
            context_id=auth.context_id,
        )
    allowed = {str(dbadmin_role(scope.environment, cfg)), *cfg.admin_roles}
    if auth.role not in allowed:
        raise AuthorizationError(
            f"Role {auth.role} may not apply changes in {scope.environment.value}; "
            f"expected one of: {', '.join(sorted(allowed))}",
            scope=str(scope),
            context_id=auth.context_id,
        )
    return auth


__all__ = ["AuthorizationContext", "authorize"]
