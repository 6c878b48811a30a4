"""Tests for the desired-state generator."""

from __future__ import annotations

from rbaccore import RbacConfig, Scope, desired_topology
from rbaccore.permissions import CREATABLE_CATEGORIES, ObjectCategory
from rbaccore.topology import (
    ActualTopology,
    Breadth,
    GrantEdge,
    GranteeType,
    NodePurpose,
    Securable,
    all_edges,
)


def _purposes(nodes) -> list[NodePurpose]:
    return [node.purpose for node in nodes]


class TestDesiredTopology:
    def test_dev_nodes(self) -> None:
        nodes = desired_topology(Scope.create("DEV", "HR", "EMPLOYEES"))
        assert _purposes(nodes) == [NodePurpose.READ, NodePurpose.WRITE, NodePurpose.OWNER, NodePurpose.CREATOR]
        assert nodes[0].identifier == "SRD_HR_DEV_EMPLOYEES_READ"
        assert nodes[1].identifier == "SRD_HR_DEV_EMPLOYEES_WRITE"
        assert nodes[2].identifier == "SRF_DEV_DEVELOPER"
        assert nodes[3].identifier == "SRF_DEV_DEVELOPER"

    def test_prd_nodes(self) -> None:
        nodes = desired_topology(Scope.create("PRD", "SALES", "ORDERS"))
        assert _purposes(nodes) == [NodePurpose.READ, NodePurpose.OWNER, NodePurpose.CREATOR, NodePurpose.OPERATIONS]
        assert all(node.identifier != "SRD_SALES_PRD_ORDERS_WRITE" for node in nodes)
        # Outside DEV the operations role owns and creates.
        assert nodes[1].identifier == "SRS_DEVOPS"
        assert nodes[2].identifier == "SRS_DEVOPS"

    def test_operations_usage(self) -> None:
        nodes = desired_topology(Scope.create("PRD", "SALES", "ORDERS"))
        operations = nodes[-1]
        assert [(e.privilege, e.securable) for e in operations.grants] == [
            ("USAGE", Securable.DATABASE),
            ("USAGE", Securable.SCHEMA),
        ]
        assert all(e.grantee_type is GranteeType.ROLE for e in operations.grants)

    def test_custom_operations_role(self) -> None:
        nodes = desired_topology(Scope.create("UAT", "FIN", "LEDGER"), RbacConfig(operations_role="SRS_PLATFORM"))
        assert nodes[-1].identifier == "SRS_PLATFORM"

    def test_read_node_grants(self) -> None:
        read = desired_topology(Scope.create("DEV", "HR", "EMPLOYEES"))[0]
        assert read.requires_creation
        assert read.grantee_type is GranteeType.DATABASE_ROLE
        first = read.grants[0]
        assert (first.privilege, first.securable, first.breadth) == ("USAGE", Securable.SCHEMA, Breadth.SELF)
        tables = [e for e in read.grants if e.category is ObjectCategory.TABLES]
        assert [(e.privilege, e.breadth) for e in tables] == [
            ("SELECT", Breadth.EXISTING),
            ("SELECT", Breadth.FUTURE),
        ]

    def test_edges_follow_category_order(self) -> None:
        for node in desired_topology(Scope.create("DEV", "HR", "EMPLOYEES")):
            if node.purpose in (NodePurpose.READ, NodePurpose.WRITE):
                positions = [e.category.position for e in node.grants if e.category is not None]
                assert positions == sorted(positions)

    def test_ownership_existing_before_future(self) -> None:
        owner = desired_topology(Scope.create("DEV", "HR", "EMPLOYEES"))[2]
        assert owner.owns_objects
        breadths = [e.breadth for e in owner.grants]
        assert breadths == [Breadth.EXISTING] * 13 + [Breadth.FUTURE] * 13
        assert all(e.is_ownership for e in owner.grants)

    def test_creator_privileges(self) -> None:
        creator = desired_topology(Scope.create("DEV", "HR", "EMPLOYEES"))[3]
        assert [e.privilege for e in creator.grants] == [f"CREATE {c.singular}" for c in CREATABLE_CATEGORIES]
        assert all(e.securable is Securable.SCHEMA for e in creator.grants)

    def test_deterministic(self) -> None:
        scope = Scope.create("DEV", "HR", "EMPLOYEES")
        assert desired_topology(scope) == desired_topology(scope)

    def test_all_edges_unique(self) -> None:
        nodes = desired_topology(Scope.create("DEV", "HR", "EMPLOYEES"))
        edges = all_edges(nodes)
        assert len(edges) == len(set(edges))
        assert len(edges) == sum(len(n.grants) for n in nodes)


class TestActualTopology:
    def test_holds(self) -> None:
        edge = GrantEdge("USAGE", Securable.SCHEMA, Breadth.SELF, "SRD_X_READ", GranteeType.DATABASE_ROLE)
        actual = ActualTopology(managed_access=True, roles=frozenset({"SRD_X_READ"}), grants=frozenset({edge}))
        assert actual.has_role("SRD_X_READ")
        assert actual.holds(edge)
        assert not actual.holds(
            GrantEdge("USAGE", Securable.SCHEMA, Breadth.SELF, "SRD_X_WRITE", GranteeType.DATABASE_ROLE)
        )
