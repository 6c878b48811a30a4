"""Reconciliation pipeline entry point.

    resolve names → desired topology → inspect catalog → diff → execute → report

``reconcile`` always returns a ``ReconciliationResult``; every failure mode
ends up in the envelope's ``status``/``errors`` rather than as an exception.
Concurrent runs against the same scope are not coordinated; the second run
may see benign duplicate grants or a genuine "role already exists" failure.
"""

from __future__ import annotations

from typing import Optional
from uuid import uuid4

from .authorization import AuthorizationContext, authorize
from .catalog.inspector import inspect_topology
from .config import RbacConfig
from .differ import diff, notices
from .exceptions import PreconditionError, RbacError
from .executor import Mode, execute
from .interfaces import Catalog
from .logging import get_run_logger
from .naming import ResolvedRoles, Scope, resolve
from .reporter import ReconciliationResult, error_result, summarize
from .topology import desired_topology


def _check_preconditions(catalog: Catalog, scope: Scope) -> None:
    if not catalog.database_exists(scope):
        raise PreconditionError(
            f"Database {scope.full_database} does not exist; schema {scope.qualified_schema} cannot be reconciled",
            scope=str(scope),
        )
    if not catalog.schema_exists(scope):
        raise PreconditionError(f"Schema {scope.qualified_schema} does not exist", scope=str(scope))


def reconcile(
    environment: str,
    database: str,
    schema: str,
    dry_run: bool = True,
    *,
    catalog: Catalog,
    auth: Optional[AuthorizationContext] = None,
    config: Optional[RbacConfig] = None,
    run_id: Optional[str] = None,
) -> ReconciliationResult:
    """Bring one schema's access-control topology in line with the convention.

    Args:
        environment: Environment code (DEV, TST, UAT, PPE, PRD).
        database: Data-domain name without the environment suffix.
        schema: Schema name.
        dry_run: Report the plan without touching the catalog (default).
        catalog: Adapter used for both inspection and mutation.
        auth: Required when ``dry_run`` is False.
        config: Naming and authorization settings.
        run_id: Correlation id for logs and the envelope.

    Returns:
        The result envelope. Never raises.
    """
    mode = Mode.from_dry_run(dry_run)
    run_id = run_id or uuid4().hex
    log = get_run_logger(__name__, run_id=run_id)
    scope: Optional[Scope] = None
    roles: Optional[ResolvedRoles] = None

    def failed(error: RbacError) -> ReconciliationResult:
        return error_result(
            error,
            mode=mode,
            environment=environment,
            database=database,
            schema=schema,
            scope=scope,
            roles=roles,
            run_id=run_id,
        )

    try:
        scope = Scope.create(environment, database, schema)
        roles = resolve(scope, config=config)
        log = get_run_logger(__name__, run_id=run_id, scope=scope)
        log.info("Reconciling %s (%s)", scope, mode.value)
        if mode is Mode.APPLIED:
            # Rejected callers never reach the catalog, not even for reads.
            authorize(auth, scope, config)

        _check_preconditions(catalog, scope)

        desired = desired_topology(scope, config)
        actual = inspect_topology(catalog, scope, desired)
        actions = diff(desired, actual, scope)
        log.info("%d corrective action(s) planned", len(actions))

        execute(actions, mode, catalog=catalog, auth=auth, scope=scope, config=config)
        result = summarize(
            scope,
            mode,
            actions,
            roles,
            notices(scope, desired),
            run_id=run_id,
            preview=catalog.preview,
        )
    except RbacError as e:
        log.warning("Reconciliation stopped: [%s] %s", e.code, e.message)
        return failed(e)
    except Exception as e:
        log.exception("Unexpected error during reconciliation")
        return failed(RbacError(f"Unexpected {type(e).__name__}: {e}"))

    log.info("Reconciliation finished: %s", result.status.value)
    return result


__all__ = ["reconcile"]
