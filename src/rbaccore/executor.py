"""Executor: run corrective actions against a catalog mutator.

In dry-run mode nothing is touched and every action stays PENDING. In apply
mode actions run strictly in list order, each one isolated: a failed action
never prevents the next one from running.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence

from .authorization import AuthorizationContext, authorize
from .config import RbacConfig
from .differ import CorrectiveAction, StatementFailure
from .exceptions import CatalogError, ConfigurationError, ValidationError
from .interfaces import CatalogMutator
from .naming import Scope

logger = logging.getLogger(__name__)

# Structured codes a catalog reports for "object/grant already exists".
DUPLICATE_ERRNOS = frozenset({2002})
DUPLICATE_SQLSTATES = frozenset({"42710"})


class Mode(str, Enum):
    DRY_RUN = "DRY_RUN"
    APPLIED = "APPLIED"

    @classmethod
    def from_dry_run(cls, dry_run: bool) -> Mode:
        return cls.DRY_RUN if dry_run else cls.APPLIED


class ErrorClass(str, Enum):
    BENIGN = "BENIGN"
    GENUINE = "GENUINE"


def classify_error(action: CorrectiveAction, error: CatalogError) -> ErrorClass:
    """Decide whether a statement failure may be ignored.

    Only grant-kind actions can have benign failures, and only when the
    catalog's error code says the grant is already in place. Role creation
    and managed-access failures are always genuine.
    """
    if not action.kind.is_grant:
        return ErrorClass.GENUINE
    if error.errno in DUPLICATE_ERRNOS or error.sqlstate in DUPLICATE_SQLSTATES:
        return ErrorClass.BENIGN
    return ErrorClass.GENUINE


def _run_action(action: CorrectiveAction, catalog: CatalogMutator, auth: AuthorizationContext) -> None:
    action.start()
    failures: list[StatementFailure] = []
    for request in action.requests:
        try:
            catalog.apply(request, auth)
        except CatalogError as exc:
            statement = exc.statement or catalog.preview(request)
            if classify_error(action, exc) is ErrorClass.BENIGN:
                action.skipped += 1
                logger.info("%s: already in place, skipped: %s", action.name, statement)
                continue
            failures.append(
                StatementFailure(statement=statement, message=exc.message, errno=exc.errno, sqlstate=exc.sqlstate)
            )
            logger.warning("%s: statement failed (errno=%s): %s", action.name, exc.errno, exc.message)
        except Exception as exc:
            logger.exception("%s: unexpected error applying %s", action.name, request.describe())
            failures.append(
                StatementFailure(
                    statement=request.describe(),
                    message=f"Unexpected {type(exc).__name__}: {exc}",
                    code="INTERNAL_ERROR",
                )
            )

    if failures:
        action.fail(failures)
    else:
        action.succeed()


def execute(
    actions: Sequence[CorrectiveAction],
    mode: Mode,
    *,
    catalog: Optional[CatalogMutator] = None,
    auth: Optional[AuthorizationContext] = None,
    scope: Optional[Scope] = None,
    config: Optional[RbacConfig] = None,
) -> list[CorrectiveAction]:
    """Execute ``actions`` in order and return them with updated statuses.

    Raises:
        ValidationError: apply mode without a scope.
        ConfigurationError: apply mode without a catalog mutator.
        AuthorizationError: ``auth`` may not mutate the scope. Raised before
            the first mutation.
    """
    actions = list(actions)
    if mode is Mode.DRY_RUN:
        logger.debug("Dry run: %d action(s) left pending", len(actions))
        return actions

    if scope is None:
        raise ValidationError("Apply mode requires the reconciled scope")
    if catalog is None:
        raise ConfigurationError("Apply mode requires a catalog mutator", scope=str(scope))
    auth = authorize(auth, scope, config)

    for action in actions:
        _run_action(action, catalog, auth)
        logger.info("%s -> %s", action.name, action.status.value)
    return actions


__all__ = [
    "DUPLICATE_ERRNOS",
    "DUPLICATE_SQLSTATES",
    "ErrorClass",
    "Mode",
    "classify_error",
    "execute",
]
