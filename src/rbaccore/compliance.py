"""Read-only compliance check of a schema, or a whole database, against the convention.

Where ``reconcile`` answers "what would fix this", ``check_compliance``
answers "what is wrong" as a list of named findings, for dashboards and
audits. It never mutates the catalog.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .catalog.inspector import inspect_topology
from .config import RbacConfig
from .exceptions import PreconditionError, RbacError, ValidationError
from .interfaces import CatalogInspector
from .naming import DatabaseScope, Scope, database_role, functional_roles, owner_role
from .permissions import AccessKind
from .topology import ActualTopology, Breadth, NodePurpose, TopologyNode, desired_topology

logger = logging.getLogger(__name__)


class FindingStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARNING = "WARNING"


class ComplianceStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON-COMPLIANT"
    ERROR = "ERROR"


class Finding(BaseModel):
    check: str
    status: FindingStatus
    message: str = ""
    role: Optional[str] = None
    schema_name: Optional[str] = Field(default=None, alias="schema", serialization_alias="schema")
    issues: int = 0
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "populate_by_name": True,
    }


class SchemaResult(BaseModel):
    """Findings of one schema of an audited database."""

    schema_name: str = Field(alias="schema", serialization_alias="schema")
    status: ComplianceStatus
    issues: int = 0
    message: str = ""
    findings: list[Finding] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
    }


class ComplianceReport(BaseModel):
    """Audit outcome for one schema, or for every schema of a database.

    ``findings`` holds the per-schema findings of every checked schema
    followed by the environment-level functional role findings.
    """

    status: ComplianceStatus
    environment: str
    database: str
    schema_name: Optional[str] = Field(default=None, alias="schema", serialization_alias="schema")
    message: str = ""
    is_dev_environment: Optional[bool] = None
    expected_object_owner: Optional[str] = None
    total_issues: int = 0
    schemas_checked: int = 0
    schema_results: list[SchemaResult] = Field(default_factory=list)
    role_findings: list[Finding] = Field(default_factory=list)
    findings: list[Finding] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "populate_by_name": True,
    }

    def finding(self, check: str, role: Optional[str] = None, schema: Optional[str] = None) -> Optional[Finding]:
        for f in self.findings:
            if f.check != check:
                continue
            if (role is None or f.role == role) and (schema is None or f.schema_name == schema):
                return f
        return None

    def schema_result(self, schema: str) -> Optional[SchemaResult]:
        return next((r for r in self.schema_results if r.schema_name == schema), None)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _fail(check: str, message: str, *, role: Optional[str] = None, issues: int = 1, **details: Any) -> Finding:
    return Finding(check=check, status=FindingStatus.FAIL, message=message, role=role, issues=issues, details=details)


def _pass(check: str, message: str = "", *, role: Optional[str] = None) -> Finding:
    return Finding(check=check, status=FindingStatus.PASS, message=message, role=role)


def _missing_edges(node: Optional[TopologyNode], actual: ActualTopology, breadth: Optional[Breadth] = None) -> list[str]:
    if node is None:
        return []
    return [
        f"{e.privilege} ON {e.category.value if e.category else e.securable.value} ({e.breadth.value})"
        for e in node.grants
        if (breadth is None or e.breadth is breadth) and not actual.holds(e)
    ]


def _schema_findings(
    inspector: CatalogInspector,
    scope: Scope,
    desired: tuple[TopologyNode, ...],
    actual: ActualTopology,
    config: Optional[RbacConfig],
) -> list[Finding]:
    findings: list[Finding] = []
    nodes = {node.purpose: node for node in desired}

    if actual.managed_access:
        findings.append(_pass("MANAGED_ACCESS"))
    else:
        findings.append(_fail("MANAGED_ACCESS", "Schema is not configured with MANAGED ACCESS"))

    read_role = str(database_role(scope, AccessKind.READ, config))
    if actual.has_role(read_role):
        findings.append(_pass("READ_DATABASE_ROLE", role=read_role))
    else:
        findings.append(_fail("READ_DATABASE_ROLE", "READ database role does not exist", role=read_role))

    write_role = str(database_role(scope, AccessKind.WRITE, config))
    if scope.environment.is_dev:
        if actual.has_role(write_role):
            findings.append(_pass("WRITE_DATABASE_ROLE", role=write_role))
        else:
            findings.append(
                _fail("WRITE_DATABASE_ROLE", "WRITE database role does not exist (required for DEV)", role=write_role)
            )
    elif inspector.role_exists(write_role, scope):
        findings.append(
            Finding(
                check="WRITE_DATABASE_ROLE",
                status=FindingStatus.WARNING,
                role=write_role,
                message="WRITE database role exists outside DEV",
            )
        )
    else:
        findings.append(_pass("WRITE_DATABASE_ROLE", "No WRITE database role outside DEV", role=write_role))

    missing_privileges = _missing_edges(nodes.get(NodePurpose.READ), actual) + _missing_edges(
        nodes.get(NodePurpose.WRITE), actual
    )
    if missing_privileges:
        findings.append(
            _fail(
                "PRIVILEGE_GRANTS",
                f"{len(missing_privileges)} privilege grant(s) missing on database roles",
                issues=len(missing_privileges),
                missing=missing_privileges,
            )
        )
    else:
        findings.append(_pass("PRIVILEGE_GRANTS"))

    owner = nodes[NodePurpose.OWNER]
    missing_ownership = _missing_edges(owner, actual, Breadth.EXISTING)
    if missing_ownership:
        findings.append(
            _fail(
                "OBJECT_OWNERSHIP",
                "Some objects have incorrect ownership",
                role=owner.identifier,
                issues=len(missing_ownership),
                missing=missing_ownership,
            )
        )
    else:
        findings.append(_pass("OBJECT_OWNERSHIP", role=owner.identifier))

    missing_future = _missing_edges(owner, actual, Breadth.FUTURE)
    if missing_future:
        findings.append(
            _fail(
                "FUTURE_OWNERSHIP_GRANT",
                f"Future ownership grants not configured for {owner.identifier}",
                role=owner.identifier,
                missing=missing_future,
            )
        )
    else:
        findings.append(_pass("FUTURE_OWNERSHIP_GRANT", role=owner.identifier))

    creator = nodes[NodePurpose.CREATOR]
    missing_create = _missing_edges(creator, actual)
    if missing_create:
        findings.append(
            _fail(
                "CREATE_PRIVILEGES",
                f"{len(missing_create)} CREATE privilege(s) missing",
                role=creator.identifier,
                missing=missing_create,
            )
        )
    else:
        findings.append(_pass("CREATE_PRIVILEGES", role=creator.identifier))

    return [f.model_copy(update={"schema_name": scope.schema}) for f in findings]


# Schemas every database carries; they are not governed by the convention.
SYSTEM_SCHEMAS = frozenset({"INFORMATION_SCHEMA", "PUBLIC"})


def _issues(findings: list[Finding]) -> int:
    return sum(f.issues for f in findings if f.status is FindingStatus.FAIL)


def _audit_schema(catalog: CatalogInspector, scope: Scope, config: Optional[RbacConfig]) -> SchemaResult:
    desired = desired_topology(scope, config)
    actual = inspect_topology(catalog, scope, desired)
    findings = _schema_findings(catalog, scope, desired, actual, config)
    issues = _issues(findings)
    return SchemaResult(
        schema=scope.schema,
        status=ComplianceStatus.NON_COMPLIANT if issues else ComplianceStatus.COMPLIANT,
        issues=issues,
        message=f"{issues} issue(s) found" if issues else "Schema is compliant",
        findings=findings,
    )


def _schema_error(name: str, check: str, error: RbacError) -> SchemaResult:
    finding = _fail(check, error.message, code=error.code).model_copy(update={"schema_name": name})
    return SchemaResult(schema=name, status=ComplianceStatus.ERROR, issues=1, message=error.message, findings=[finding])


def _audit_database(
    catalog: CatalogInspector, database: DatabaseScope, config: Optional[RbacConfig]
) -> list[SchemaResult]:
    """Audit every non-system schema; one bad schema never hides the others."""
    results: list[SchemaResult] = []
    for name in catalog.list_schemas(database):
        if name.upper() in SYSTEM_SCHEMAS:
            continue
        try:
            scope = database.schema(name)
        except ValidationError as e:
            logger.warning("Skipping schema %r of %s: %s", name, database, e.message)
            results.append(_schema_error(name, "SCHEMA_NAME", e))
            continue
        try:
            results.append(_audit_schema(catalog, scope, config))
        except RbacError as e:
            logger.warning("Could not inspect %s: [%s] %s", scope, e.code, e.message)
            results.append(_schema_error(scope.schema, "SCHEMA_INSPECTION", e))
    return results


def check_compliance(
    environment: str,
    database: str,
    schema: Optional[str] = None,
    *,
    catalog: CatalogInspector,
    config: Optional[RbacConfig] = None,
) -> ComplianceReport:
    """Audit one schema, or every schema of a database when ``schema`` is
    omitted, plus the environment's functional roles.

    Returns a report with status COMPLIANT, NON-COMPLIANT, or ERROR when the
    inputs are invalid or the target cannot be inspected. In database-wide
    mode a schema that cannot be audited is reported as an ERROR schema
    result and counts as one issue; INFORMATION_SCHEMA and PUBLIC are
    skipped.
    """
    try:
        target = DatabaseScope.create(environment, database)
        if not catalog.database_exists(target):
            raise PreconditionError(f"Database {target.full_database} does not exist")

        if schema is None:
            schema_results = _audit_database(catalog, target, config)
        else:
            scope = target.schema(schema)
            if not catalog.schema_exists(scope):
                raise PreconditionError(f"Schema {scope.qualified_schema} does not exist")
            schema_results = [_audit_schema(catalog, scope, config)]

        role_findings: list[Finding] = []
        for role in functional_roles(target.environment, config):
            if catalog.account_role_exists(str(role)):
                role_findings.append(_pass("FUNCTIONAL_ROLE", role=str(role)))
            else:
                role_findings.append(_fail("FUNCTIONAL_ROLE", "Functional role does not exist", role=str(role)))
    except RbacError as e:
        logger.warning("Compliance check failed for %s.%s: %s", database, schema or "*", e.message)
        return ComplianceReport(
            status=ComplianceStatus.ERROR,
            environment=str(environment or "").upper(),
            database=str(database or "").upper(),
            schema=str(schema).upper() if schema is not None else None,
            message=e.message,
        )

    findings = [f for result in schema_results for f in result.findings] + role_findings
    total = _issues(findings)
    status = ComplianceStatus.NON_COMPLIANT if total else ComplianceStatus.COMPLIANT
    if total:
        message = f"{total} issue(s) found"
    elif schema is not None:
        message = "Schema is compliant"
    else:
        message = f"All {len(schema_results)} schema(s) of {target.full_database} are compliant"
    logger.info("Compliance of %s: %s (%d issue(s), %d schema(s))", target, status.value, total, len(schema_results))
    return ComplianceReport(
        status=status,
        environment=target.environment.value,
        database=target.full_database,
        schema=schema_results[0].schema_name if schema is not None else None,
        message=message,
        is_dev_environment=target.environment.is_dev,
        expected_object_owner=str(owner_role(target.environment, config)),
        total_issues=total,
        schemas_checked=len(schema_results),
        schema_results=schema_results,
        role_findings=role_findings,
        findings=findings,
    )


__all__ = [
    "SYSTEM_SCHEMAS",
    "ComplianceReport",
    "ComplianceStatus",
    "Finding",
    "FindingStatus",
    "SchemaResult",
    "check_compliance",
]
