"""Differ: desired vs. actual topology → ordered corrective actions.

Each action is one independently-failable unit of work. Actions are emitted
in dependency order (see ``ActionKind``); statements inside an action follow
the fixed object-category order, so dry-run output is stable across runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from .exceptions import ActionStateError
from .naming import Scope
from .topology import ActualTopology, Breadth, GrantEdge, NodePurpose, TopologyNode
from .catalog.statements import MutationRequest

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    """Corrective action kinds, declared in execution (dependency) order."""

    ENABLE_MANAGED_ACCESS = "ENABLE_MANAGED_ACCESS"
    CREATE_ROLE = "CREATE_ROLE"
    GRANT_PRIVILEGE_SET = "GRANT_PRIVILEGE_SET"
    TRANSFER_OWNERSHIP = "TRANSFER_OWNERSHIP"
    CONFIGURE_FUTURE_OWNERSHIP = "CONFIGURE_FUTURE_OWNERSHIP"
    GRANT_CREATE_PRIVILEGES = "GRANT_CREATE_PRIVILEGES"
    GRANT_CROSS_ROLE_USAGE = "GRANT_CROSS_ROLE_USAGE"

    @property
    def tier(self) -> int:
        return tuple(ActionKind).index(self)

    @property
    def is_grant(self) -> bool:
        """Kinds whose statements are idempotent privilege grants."""
        return self not in (ActionKind.ENABLE_MANAGED_ACCESS, ActionKind.CREATE_ROLE)


class ActionStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTING = "EXECUTING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

    @property
    def is_terminal(self) -> bool:
        return self in (ActionStatus.SUCCESS, ActionStatus.FAILURE)


_TRANSITIONS: dict[ActionStatus, tuple[ActionStatus, ...]] = {
    ActionStatus.PENDING: (ActionStatus.EXECUTING,),
    ActionStatus.EXECUTING: (ActionStatus.SUCCESS, ActionStatus.FAILURE),
    ActionStatus.SUCCESS: (),
    ActionStatus.FAILURE: (),
}


@dataclass(frozen=True)
class StatementFailure:
    """A statement of an action that genuinely failed."""

    statement: str
    message: str
    errno: Optional[int] = None
    sqlstate: Optional[str] = None
    code: str = "CATALOG_ERROR"


@dataclass
class CorrectiveAction:
    """One step moving the catalog toward the desired topology.

    Created PENDING by the differ; only the executor moves it through
    EXECUTING to SUCCESS or FAILURE. Terminal states are final.
    """

    name: str
    kind: ActionKind
    target: str
    requests: tuple[MutationRequest, ...]
    status: ActionStatus = ActionStatus.PENDING
    failures: list[StatementFailure] = field(default_factory=list)
    skipped: int = 0

    @property
    def error(self) -> Optional[str]:
        if not self.failures:
            return None
        return "; ".join(f.message for f in self.failures)

    def _move(self, new: ActionStatus) -> None:
        if new not in _TRANSITIONS[self.status]:
            raise ActionStateError(
                f"Illegal transition {self.status.value} -> {new.value} for {self.name}",
                action=self.name,
            )
        self.status = new

    def start(self) -> None:
        self._move(ActionStatus.EXECUTING)

    def succeed(self) -> None:
        self._move(ActionStatus.SUCCESS)

    def fail(self, failures: Sequence[StatementFailure]) -> None:
        self._move(ActionStatus.FAILURE)
        self.failures = list(failures)


# ── Diffing ─────────────────────────────────────────────


def _missing(node: TopologyNode, actual: ActualTopology) -> list[GrantEdge]:
    if node.requires_creation and not actual.has_role(node.identifier):
        return list(node.grants)
    return [edge for edge in node.grants if not actual.holds(edge)]


def _action(
    scope: Scope,
    name: str,
    kind: ActionKind,
    target: str,
    edges: Sequence[GrantEdge],
) -> Optional[CorrectiveAction]:
    if not edges:
        return None
    return CorrectiveAction(name=name, kind=kind, target=target, requests=MutationRequest.for_edges(scope, edges))


def diff(desired: Sequence[TopologyNode], actual: ActualTopology, scope: Scope) -> list[CorrectiveAction]:
    """Compute the minimal ordered action list for a scope.

    Nodes that already match produce nothing, so a run against a fully
    reconciled scope returns an empty list. A role that is about to be
    created is treated as holding nothing.
    """
    actions: list[CorrectiveAction] = []

    if any(node.managed_access for node in desired) and not actual.managed_access:
        actions.append(
            CorrectiveAction(
                name="ENABLE_MANAGED_ACCESS",
                kind=ActionKind.ENABLE_MANAGED_ACCESS,
                target=scope.qualified_schema,
                requests=(MutationRequest.enable_managed_access(scope),),
            )
        )

    for node in desired:
        if node.requires_creation and not actual.has_role(node.identifier):
            actions.append(
                CorrectiveAction(
                    name=f"CREATE_{node.purpose.value}_ROLE",
                    kind=ActionKind.CREATE_ROLE,
                    target=node.identifier,
                    requests=(
                        MutationRequest.create_database_role(
                            scope,
                            node.identifier,
                            comment=f"Database role: {node.purpose.value} access on {scope.qualified_schema}",
                        ),
                    ),
                )
            )

    by_purpose = {node.purpose: node for node in desired}
    planned: list[Optional[CorrectiveAction]] = []

    for purpose in (NodePurpose.READ, NodePurpose.WRITE):
        node = by_purpose.get(purpose)
        if node is not None:
            missing = _missing(node, actual)
            planned.append(
                _action(scope, f"GRANT_{purpose.value}_PRIVILEGES", ActionKind.GRANT_PRIVILEGE_SET, node.identifier, missing)
            )

    owner = by_purpose.get(NodePurpose.OWNER)
    if owner is not None:
        missing = _missing(owner, actual)
        planned.append(
            _action(
                scope,
                "TRANSFER_EXISTING_OWNERSHIP",
                ActionKind.TRANSFER_OWNERSHIP,
                owner.identifier,
                [e for e in missing if e.breadth is Breadth.EXISTING],
            )
        )
        planned.append(
            _action(
                scope,
                "CONFIGURE_FUTURE_OWNERSHIP",
                ActionKind.CONFIGURE_FUTURE_OWNERSHIP,
                owner.identifier,
                [e for e in missing if e.breadth is Breadth.FUTURE],
            )
        )

    creator = by_purpose.get(NodePurpose.CREATOR)
    if creator is not None:
        planned.append(
            _action(
                scope,
                "GRANT_CREATE_PRIVILEGES",
                ActionKind.GRANT_CREATE_PRIVILEGES,
                creator.identifier,
                _missing(creator, actual),
            )
        )

    operations = by_purpose.get(NodePurpose.OPERATIONS)
    if operations is not None:
        planned.append(
            _action(
                scope,
                "GRANT_USAGE_TO_OPERATIONS",
                ActionKind.GRANT_CROSS_ROLE_USAGE,
                operations.identifier,
                _missing(operations, actual),
            )
        )

    actions.extend(a for a in planned if a is not None)
    logger.debug("Diff for %s produced %d action(s)", scope, len(actions))
    return actions


def notices(scope: Scope, desired: Sequence[TopologyNode]) -> list[dict[str, str]]:
    """Informational entries surfaced on every run, outside the action list."""
    access_roles = [node.identifier for node in desired if node.purpose in (NodePurpose.READ, NodePurpose.WRITE)]
    return [
        {
            "notice": "DATABASE_ROLES_READY",
            "status": "INFO",
            "roles": ", ".join(access_roles),
            "message": f"Link database roles of {scope.qualified_schema} to access roles separately",
        }
    ]


__all__ = [
    "ActionKind",
    "ActionStatus",
    "CorrectiveAction",
    "StatementFailure",
    "diff",
    "notices",
]
