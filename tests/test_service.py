"""Tests for the gRPC servicer and transport helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import grpc
import pytest
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from rbaccore import InMemoryCatalog, RbacConfig
from rbaccore.exceptions import ConfigurationError
from rbaccore.grpc_utils import create_channel, create_server_credentials
from rbaccore.service import (
    PRINCIPAL_METADATA_KEY,
    ROLE_METADATA_KEY,
    SERVICE_NAME,
    RbacClient,
    ReconciliationServicer,
    add_servicer_to_server,
    create_server,
)


def _request(**fields) -> Struct:
    return json_format.ParseDict(fields, Struct())


def _context(metadata=()) -> MagicMock:
    context = MagicMock()
    context.abort = AsyncMock()
    context.invocation_metadata.return_value = list(metadata)
    return context


@pytest.fixture
def servicer(catalog: InMemoryCatalog, config: RbacConfig) -> ReconciliationServicer:
    return ReconciliationServicer(catalog, config)


class TestReconcile:
    @pytest.mark.asyncio
    async def test_dry_run_by_default(self, servicer, catalog: InMemoryCatalog) -> None:
        context = _context()
        response = await servicer.Reconcile(_request(environment="DEV", database="HR", schema="EMPLOYEES"), context)

        result = json_format.MessageToDict(response)
        assert result["status"] == "SUCCESS"
        assert result["mode"] == "DRY_RUN"
        assert result["actions"][0]["name"] == "ENABLE_MANAGED_ACCESS"
        assert catalog.executed == []
        context.abort.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_with_metadata(self, servicer, catalog: InMemoryCatalog) -> None:
        context = _context([(ROLE_METADATA_KEY, "SRF_DEV_DBADMIN"), (PRINCIPAL_METADATA_KEY, "pipeline")])
        request = _request(environment="DEV", database="HR", schema="EMPLOYEES", dry_run=False, run_id="r-1")

        result = json_format.MessageToDict(await servicer.Reconcile(request, context))

        assert result["status"] == "SUCCESS"
        assert result["mode"] == "APPLIED"
        assert result["run_id"] == "r-1"
        assert catalog.executed

    @pytest.mark.asyncio
    async def test_apply_without_role_is_denied(self, servicer, catalog: InMemoryCatalog) -> None:
        context = _context()
        request = _request(environment="DEV", database="HR", schema="EMPLOYEES", dry_run=False)

        await servicer.Reconcile(request, context)

        status, message = context.abort.await_args.args
        assert status is grpc.StatusCode.PERMISSION_DENIED
        assert ROLE_METADATA_KEY in message
        assert catalog.executed == []

    @pytest.mark.asyncio
    async def test_missing_fields(self, servicer) -> None:
        context = _context()
        await servicer.Reconcile(_request(environment="DEV", database="HR"), context)
        status, message = context.abort.await_args.args
        assert status is grpc.StatusCode.INVALID_ARGUMENT
        assert "schema" in message

    @pytest.mark.asyncio
    async def test_domain_errors_stay_in_envelope(self, servicer) -> None:
        context = _context()
        response = await servicer.Reconcile(_request(environment="QA", database="HR", schema="EMPLOYEES"), context)
        result = json_format.MessageToDict(response)
        assert result["status"] == "ERROR"
        assert result["errors"][0]["code"] == "VALIDATION_ERROR"
        context.abort.assert_not_called()


class TestOtherMethods:
    @pytest.mark.asyncio
    async def test_check_compliance(self, servicer) -> None:
        response = await servicer.CheckCompliance(
            _request(environment="DEV", database="HR", schema="EMPLOYEES"), _context()
        )
        result = json_format.MessageToDict(response)
        assert result["status"] == "NON-COMPLIANT"
        assert result["schema"] == "EMPLOYEES"

    @pytest.mark.asyncio
    async def test_check_compliance_whole_database(self, servicer, catalog: InMemoryCatalog) -> None:
        catalog.add_schema("DEV", "HR", "PAYROLL")
        response = await servicer.CheckCompliance(_request(environment="DEV", database="HR"), _context())
        result = json_format.MessageToDict(response)
        assert result["database"] == "HR_DEV"
        assert result["schemas_checked"] == 2
        assert [r["schema"] for r in result["schema_results"]] == ["EMPLOYEES", "PAYROLL"]
        assert result["schema"] is None

    @pytest.mark.asyncio
    async def test_resolve_roles(self, servicer) -> None:
        response = await servicer.ResolveRoles(
            _request(environment="prd", database="sales", schema="orders", capability="ANALYST"), _context()
        )
        result = json_format.MessageToDict(response)
        assert result["database"] == "SALES_PRD"
        assert result["capability"] == "ANALYST"
        assert result["roles"]["read"] == "SRD_SALES_PRD_ORDERS_READ"
        assert result["roles"]["write"] == "N/A"
        assert result["dbadmin_role"] == "SRF_PRD_DBADMIN"
        assert "SRF_PRD_DEVELOPER" in result["functional_roles"]

    @pytest.mark.asyncio
    async def test_resolve_roles_unknown_capability(self, servicer) -> None:
        context = _context()
        await servicer.ResolveRoles(
            _request(environment="DEV", database="HR", schema="EMPLOYEES", capability="INTERN"), context
        )
        assert context.abort.await_args.args[0] is grpc.StatusCode.INVALID_ARGUMENT


class TestServerWiring:
    def test_registers_generic_handler(self, servicer) -> None:
        server = MagicMock()
        add_servicer_to_server(servicer, server)
        (handlers,) = server.add_generic_rpc_handlers.call_args.args
        assert handlers[0].service_name() == SERVICE_NAME

    def test_insecure_port_without_tls(self, catalog: InMemoryCatalog) -> None:
        with patch("rbaccore.service.grpc.aio.server") as server_factory:
            server = create_server(catalog, RbacConfig(grpc_bind="localhost:50999"))
        assert server is server_factory.return_value
        server.add_insecure_port.assert_called_once_with("localhost:50999")
        server.add_secure_port.assert_not_called()


class TestTransport:
    def test_no_server_credentials_without_tls(self) -> None:
        assert create_server_credentials(RbacConfig()) is None

    def test_tls_requires_ca(self) -> None:
        config = RbacConfig(grpc_tls_enabled=True)
        with pytest.raises(ConfigurationError, match="GRPC_TLS_CA_CERT"):
            create_server_credentials(config)
        with pytest.raises(ConfigurationError, match="GRPC_TLS_CA_CERT"):
            create_channel("localhost:50061", config)

    def test_missing_tls_file(self, tmp_path) -> None:
        config = RbacConfig(grpc_tls_enabled=True, grpc_tls_ca_cert=str(tmp_path / "ca.pem"))
        with pytest.raises(ConfigurationError, match="TLS file not found"):
            create_channel("localhost:50061", config)


class TestClientRoundTrip:
    @pytest.mark.asyncio
    async def test_client_against_running_server(self, servicer, catalog: InMemoryCatalog) -> None:
        server = grpc.aio.server()
        add_servicer_to_server(servicer, server)
        port = server.add_insecure_port("127.0.0.1:0")
        await server.start()
        try:
            async with RbacClient(f"127.0.0.1:{port}") as client:
                planned = await client.reconcile("DEV", "HR", "EMPLOYEES")
                assert planned["mode"] == "DRY_RUN"
                assert planned["database"] == "HR_DEV"
                assert catalog.executed == []

                applied = await client.reconcile(
                    "DEV", "HR", "EMPLOYEES", dry_run=False, role="SRF_DEV_DBADMIN", principal="ci"
                )
                assert applied["status"] == "SUCCESS"
                assert applied["mode"] == "APPLIED"
                assert [a["statements"] for a in applied["actions"]] == [a["statements"] for a in planned["actions"]]
                assert catalog.executed

                denied = await client.reconcile("PRD", "SALES", "ORDERS", dry_run=False, role="SRF_DEV_DBADMIN")
                assert denied["status"] == "ERROR"
                assert denied["errors"][0]["code"] == "PERMISSION_DENIED"

                roles = await client.resolve_roles("PRD", "SALES", "ORDERS")
                assert roles["roles"]["create_grantee"] == "SRS_DEVOPS"

                report = await client.check_compliance("DEV", "HR")
                assert report["schemas_checked"] == 1
        finally:
            await server.stop(None)
