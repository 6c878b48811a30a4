"""Tests for scope validation and role naming."""

from __future__ import annotations

import itertools

import pytest

from rbaccore import NOT_APPLICABLE, RbacConfig, Scope, desired_topology, resolve
from rbaccore.exceptions import ValidationError
from rbaccore.naming import (
    DatabaseScope,
    RoleIdentifier,
    database_role,
    dbadmin_role,
    functional_role,
    functional_roles,
    owner_role,
)
from rbaccore.permissions import AccessKind, CapabilityLevel, Environment
from rbaccore.topology import NodePurpose


class TestScope:
    def test_normalizes_to_upper_case(self) -> None:
        scope = Scope.create("dev", "hr", "employees")
        assert scope.environment is Environment.DEV
        assert scope.database == "HR"
        assert scope.schema == "EMPLOYEES"
        assert scope.full_database == "HR_DEV"
        assert scope.qualified_schema == "HR_DEV.EMPLOYEES"
        assert str(scope) == "DEV:HR_DEV.EMPLOYEES"

    @pytest.mark.parametrize(
        "database,schema",
        [
            ("HR", "EMP LOYEES"),
            ("HR;DROP", "EMPLOYEES"),
            ("1HR", "EMPLOYEES"),
            ("", "EMPLOYEES"),
            ("HR", 'EMP"'),
        ],
    )
    def test_rejects_malformed_names(self, database: str, schema: str) -> None:
        with pytest.raises(ValidationError):
            Scope.create("DEV", database, schema)

    def test_rejects_unknown_environment(self) -> None:
        with pytest.raises(ValidationError, match="Invalid environment"):
            Scope.create("QA", "HR", "EMPLOYEES")

    @pytest.mark.parametrize("environment,database", [("PRD", "DEV_TOOLS"), ("PRD", "HR_DEV"), ("DEV", "SALES_PRD")])
    def test_accepts_environment_code_in_database(self, environment: str, database: str) -> None:
        scope = Scope.create(environment, database, "CORE")
        assert scope.database == database
        assert scope.full_database == f"{database}_{environment}"

    def test_database_scope(self) -> None:
        database = DatabaseScope.create("uat", "fin")
        assert database.full_database == "FIN_UAT"
        assert str(database) == "UAT:FIN_UAT"
        assert database.schema("ledger") == Scope.create("UAT", "FIN", "LEDGER")
        with pytest.raises(ValidationError):
            database.schema("BAD NAME")

    def test_scope_is_hashable_value(self) -> None:
        assert Scope.create("DEV", "HR", "X") == Scope.create("dev", "hr", "x")
        assert len({Scope.create("DEV", "HR", "X"), Scope.create("DEV", "HR", "X")}) == 1


class TestRoleIdentifiers:
    def test_functional_role(self) -> None:
        assert functional_role(Environment.UAT, CapabilityLevel.ANALYST) == "SRF_UAT_ANALYST"
        assert dbadmin_role(Environment.PRD) == "SRF_PRD_DBADMIN"

    def test_functional_roles_lowest_first(self) -> None:
        roles = functional_roles(Environment.TST)
        assert roles[0] == "SRF_TST_END_USER"
        assert roles[-1] == "SRF_TST_DBADMIN"
        assert len(roles) == len(CapabilityLevel)

    def test_database_roles(self) -> None:
        scope = Scope.create("DEV", "HR", "EMPLOYEES")
        assert database_role(scope, AccessKind.READ) == "SRD_HR_DEV_EMPLOYEES_READ"
        assert database_role(scope, AccessKind.WRITE) == "SRD_HR_DEV_EMPLOYEES_WRITE"

    def test_owner_role(self) -> None:
        assert owner_role(Environment.DEV) == "SRF_DEV_DEVELOPER"
        assert owner_role(Environment.PRD) == "SRS_DEVOPS"
        assert owner_role(Environment.PRD, RbacConfig(operations_role="SRS_PLATFORM")) == "SRS_PLATFORM"

    def test_custom_prefixes(self) -> None:
        config = RbacConfig(functional_role_prefix="XRF", database_role_prefix="XRD")
        scope = Scope.create("DEV", "HR", "EMPLOYEES")
        assert functional_role(Environment.DEV, CapabilityLevel.DEVELOPER, config) == "XRF_DEV_DEVELOPER"
        assert database_role(scope, AccessKind.READ, config) == "XRD_HR_DEV_EMPLOYEES_READ"

    def test_not_applicable_sentinel(self) -> None:
        assert isinstance(NOT_APPLICABLE, RoleIdentifier)
        assert not NOT_APPLICABLE.is_applicable
        assert RoleIdentifier("SRS_DEVOPS").is_applicable
        assert NOT_APPLICABLE == "N/A"


class TestResolve:
    def test_dev_developer(self) -> None:
        roles = resolve(Scope.create("DEV", "HR", "EMPLOYEES"))
        assert roles.as_dict() == {
            "functional": "SRF_DEV_DEVELOPER",
            "read": "SRD_HR_DEV_EMPLOYEES_READ",
            "write": "SRD_HR_DEV_EMPLOYEES_WRITE",
            "owner": "SRF_DEV_DEVELOPER",
            "creator": "SRF_DEV_DEVELOPER",
            "create_grantee": "SRF_DEV_DEVELOPER",
        }

    def test_prd_has_no_write_or_creator(self) -> None:
        roles = resolve(Scope.create("PRD", "SALES", "ORDERS"))
        assert roles.read_role == "SRD_SALES_PRD_ORDERS_READ"
        assert roles.write_role is NOT_APPLICABLE
        assert roles.creator_role is NOT_APPLICABLE
        assert roles.owner_role == "SRS_DEVOPS"

    def test_create_grantee_outside_dev(self) -> None:
        scope = Scope.create("PRD", "SALES", "ORDERS")
        roles = resolve(scope)
        assert roles.create_grantee == "SRS_DEVOPS"
        creator = next(n for n in desired_topology(scope) if n.purpose is NodePurpose.CREATOR)
        assert creator.identifier == roles.create_grantee
        assert {e.grantee for e in creator.grants} == {"SRS_DEVOPS"}

    def test_dev_analyst_cannot_write(self) -> None:
        roles = resolve(Scope.create("DEV", "HR", "EMPLOYEES"), CapabilityLevel.ANALYST)
        assert roles.functional_role == "SRF_DEV_ANALYST"
        assert not roles.write_role.is_applicable
        assert not roles.creator_role.is_applicable

    def test_deterministic(self) -> None:
        scope = Scope.create("UAT", "FIN", "LEDGER")
        assert resolve(scope) == resolve(scope)

    def test_injective_across_scopes(self) -> None:
        """Distinct scopes never share a database role; roles live inside their database."""
        scopes = [
            Scope.create(env, db, schema)
            for env, db, schema in itertools.product(
                ["DEV", "PRD"], ["HR", "HR_X", "HR_DEV", "DEV_TOOLS", "TOOLS"], ["A", "X_A", "PRD_X", "ORDERS"]
            )
        ]
        names = [(s.full_database, database_role(s, kind)) for s in scopes for kind in AccessKind]
        assert len(names) == len(set(names))
