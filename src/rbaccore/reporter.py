"""Reporter: fold per-action outcomes into one result envelope.

The envelope is a pydantic model so callers can hand it to dashboards or the
gRPC surface with ``model_dump(mode="json")``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from .catalog.statements import MutationRequest, render
from .differ import ActionStatus, CorrectiveAction
from .exceptions import RbacError
from .executor import Mode
from .naming import ResolvedRoles, Scope


class ResultStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    ERROR = "ERROR"


class ActionReport(BaseModel):
    """One corrective action as seen by the caller."""

    name: str
    kind: str
    target: str
    status: str
    statements: list[str] = Field(default_factory=list)
    skipped: int = 0  # statements classified as already in place
    error: Optional[str] = None


class ErrorEntry(BaseModel):
    """A failure surfaced in the envelope's ``errors`` list."""

    code: str
    message: str
    action: Optional[str] = None
    target: Optional[str] = None
    statement: Optional[str] = None
    errno: Optional[int] = None
    sqlstate: Optional[str] = None


class ReconciliationResult(BaseModel):
    """Outcome of one reconciliation run."""

    status: ResultStatus
    mode: Mode
    environment: str
    database: str  # physical database, e.g. HR_DEV
    domain: Optional[str] = None  # data-domain name without the environment suffix
    schema_name: str = Field(alias="schema", serialization_alias="schema")
    message: str = ""
    roles: dict[str, str] = Field(default_factory=dict)
    actions: list[ActionReport] = Field(default_factory=list)
    errors: list[ErrorEntry] = Field(default_factory=list)
    notices: list[dict[str, str]] = Field(default_factory=list)
    run_id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "populate_by_name": True,
    }

    @property
    def failed_actions(self) -> list[ActionReport]:
        return [a for a in self.actions if a.status == ActionStatus.FAILURE.value]

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dict, keyed the way the wire format expects."""
        return self.model_dump(mode="json", by_alias=True)


def _report(action: CorrectiveAction, preview: Callable[[MutationRequest], str]) -> ActionReport:
    return ActionReport(
        name=action.name,
        kind=action.kind.value,
        target=action.target,
        status=action.status.value,
        statements=[preview(r) for r in action.requests],
        skipped=action.skipped,
        error=action.error,
    )


def _errors(action: CorrectiveAction) -> list[ErrorEntry]:
    return [
        ErrorEntry(
            code=failure.code,
            message=failure.message,
            action=action.name,
            target=action.target,
            statement=failure.statement,
            errno=failure.errno,
            sqlstate=failure.sqlstate,
        )
        for failure in action.failures
    ]


def summarize(
    scope: Scope,
    mode: Mode,
    actions: Sequence[CorrectiveAction],
    roles: ResolvedRoles,
    notices: Iterable[dict[str, str]] = (),
    *,
    run_id: Optional[str] = None,
    preview: Callable[[MutationRequest], str] = render,
) -> ReconciliationResult:
    """Build the envelope for a run that got past validation and inspection.

    Status is SUCCESS when no action failed, PARTIAL_SUCCESS otherwise.
    """
    failed = [a for a in actions if a.status is ActionStatus.FAILURE]
    succeeded = sum(1 for a in actions if a.status is ActionStatus.SUCCESS)

    if failed:
        status = ResultStatus.PARTIAL_SUCCESS
        message = f"{len(failed)} of {len(actions)} action(s) failed on {scope.qualified_schema}"
    elif not actions:
        status = ResultStatus.SUCCESS
        message = f"{scope.qualified_schema} already matches the access-control convention"
    elif mode is Mode.DRY_RUN:
        status = ResultStatus.SUCCESS
        message = f"{len(actions)} corrective action(s) planned for {scope.qualified_schema}"
    else:
        status = ResultStatus.SUCCESS
        message = f"{succeeded} corrective action(s) applied to {scope.qualified_schema}"

    errors: list[ErrorEntry] = []
    for action in failed:
        errors.extend(_errors(action))

    result = ReconciliationResult(
        status=status,
        mode=mode,
        environment=scope.environment.value,
        database=scope.full_database,
        domain=scope.database,
        schema=scope.schema,
        message=message,
        roles=roles.as_dict(),
        actions=[_report(a, preview) for a in actions],
        errors=errors,
        notices=list(notices),
    )
    if run_id:
        result.run_id = run_id
    return result


def error_result(
    error: RbacError,
    *,
    mode: Mode,
    environment: str,
    database: str,
    schema: str,
    scope: Optional[Scope] = None,
    roles: Optional[ResolvedRoles] = None,
    run_id: Optional[str] = None,
) -> ReconciliationResult:
    """ERROR envelope for runs stopped before or during inspection.

    When the inputs validated into ``scope`` the envelope carries its
    normalized fields, the physical database name included; otherwise the
    raw inputs are echoed upper-cased. Derived role names are included
    whenever the scope was valid enough to resolve them.
    """
    if scope is not None:
        fields = {
            "environment": scope.environment.value,
            "database": scope.full_database,
            "domain": scope.database,
            "schema": scope.schema,
        }
    else:
        fields = {
            "environment": str(environment or "").upper(),
            "database": str(database or "").upper(),
            "schema": str(schema or "").upper(),
        }
    result = ReconciliationResult(
        status=ResultStatus.ERROR,
        mode=mode,
        **fields,
        message=error.message,
        roles=roles.as_dict() if roles is not None else {},
        errors=[ErrorEntry(code=error.code, message=error.message)],
    )
    if run_id:
        result.run_id = run_id
    return result


__all__ = [
    "ActionReport",
    "ErrorEntry",
    "ReconciliationResult",
    "ResultStatus",
    "error_result",
    "summarize",
]
