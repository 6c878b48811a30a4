"""gRPC surface for the reconciliation engine.

Requests and responses are ``google.protobuf.Struct`` messages served through
a generic handler, so no generated stubs are needed::

    /rbaccore.RbacService/Reconcile        {environment, database, schema, dry_run}
    /rbaccore.RbacService/CheckCompliance  {environment, database, schema?}
    /rbaccore.RbacService/ResolveRoles     {environment, database, schema, capability}

Apply-mode calls carry the acting role in metadata (``x-rbac-role``, and
``x-rbac-principal`` for audit). Engine work runs in a worker thread since
catalog adapters are blocking.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

import grpc
import grpc.aio
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from .authorization import AuthorizationContext
from .compliance import check_compliance
from .config import RbacConfig
from .engine import reconcile
from .exceptions import AuthorizationError, ValidationError, grpc_error_handler
from .grpc_utils import create_channel, create_server_credentials
from .interfaces import Catalog
from .naming import Scope, dbadmin_role, functional_roles, resolve
from .permissions import CapabilityLevel

logger = logging.getLogger(__name__)

SERVICE_NAME = "rbaccore.RbacService"
ROLE_METADATA_KEY = "x-rbac-role"
PRINCIPAL_METADATA_KEY = "x-rbac-principal"


def _to_struct(data: Mapping[str, Any]) -> Struct:
    # Struct.update() rejects None on some protobuf runtimes; ParseDict maps it to null_value.
    return json_format.ParseDict(dict(data), Struct())


def _require(params: Mapping[str, Any], *names: str) -> list[str]:
    missing = [name for name in names if not str(params.get(name) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}", fields=missing)
    return [str(params[name]) for name in names]


def _auth_from_metadata(context: grpc.aio.ServicerContext) -> AuthorizationContext:
    metadata = {key.lower(): value for key, value in (context.invocation_metadata() or ())}
    role = metadata.get(ROLE_METADATA_KEY)
    if not role:
        raise AuthorizationError(f"Apply mode requires the {ROLE_METADATA_KEY} metadata entry")
    return AuthorizationContext.issue(
        principal=metadata.get(PRINCIPAL_METADATA_KEY) or "anonymous",
        role=role,
    )


class ReconciliationServicer:
    """Async unary handlers wrapping the engine entry points."""

    def __init__(self, catalog: Catalog, config: Optional[RbacConfig] = None) -> None:
        self._catalog = catalog
        self._config = config or RbacConfig()

    @grpc_error_handler
    async def Reconcile(self, request: Struct, context: grpc.aio.ServicerContext) -> Struct:
        params = json_format.MessageToDict(request)
        environment, database, schema = _require(params, "environment", "database", "schema")
        dry_run = bool(params.get("dry_run", True))
        auth = None if dry_run else _auth_from_metadata(context)

        result = await asyncio.to_thread(
            reconcile,
            environment,
            database,
            schema,
            dry_run,
            catalog=self._catalog,
            auth=auth,
            config=self._config,
            run_id=params.get("run_id") or None,
        )
        logger.info(
            "Reconcile %s/%s/%s by %s: %s",
            environment,
            database,
            schema,
            auth.principal if auth else "dry-run",
            result.status.value,
        )
        return _to_struct(result.to_dict())

    @grpc_error_handler
    async def CheckCompliance(self, request: Struct, context: grpc.aio.ServicerContext) -> Struct:
        params = json_format.MessageToDict(request)
        environment, database = _require(params, "environment", "database")
        # Without a schema every schema of the database is audited.
        schema = str(params.get("schema") or "").strip() or None
        report = await asyncio.to_thread(
            check_compliance,
            environment,
            database,
            schema,
            catalog=self._catalog,
            config=self._config,
        )
        return _to_struct(report.to_dict())

    @grpc_error_handler
    async def ResolveRoles(self, request: Struct, context: grpc.aio.ServicerContext) -> Struct:
        params = json_format.MessageToDict(request)
        environment, database, schema = _require(params, "environment", "database", "schema")
        scope = Scope.create(environment, database, schema)
        capability = CapabilityLevel.parse(params.get("capability") or CapabilityLevel.DEVELOPER.value)
        roles = resolve(scope, capability, self._config)
        return _to_struct(
            {
                "environment": scope.environment.value,
                "database": scope.full_database,
                "schema": scope.schema,
                "capability": capability.value,
                "roles": roles.as_dict(),
                "dbadmin_role": str(dbadmin_role(scope.environment, self._config)),
                "functional_roles": [str(r) for r in functional_roles(scope.environment, self._config)],
            }
        )


def add_servicer_to_server(servicer: ReconciliationServicer, server: grpc.aio.Server) -> None:
    """Register the servicer's methods under ``rbaccore.RbacService``."""
    handlers = {
        name: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, name),
            request_deserializer=Struct.FromString,
            response_serializer=Struct.SerializeToString,
        )
        for name in ("Reconcile", "CheckCompliance", "ResolveRoles")
    }
    server.add_generic_rpc_handlers((grpc.method_handlers_generic_handler(SERVICE_NAME, handlers),))


def create_server(catalog: Catalog, config: Optional[RbacConfig] = None) -> grpc.aio.Server:
    """Build (but do not start) the gRPC server, TLS if configured."""
    config = config or RbacConfig()
    server = grpc.aio.server()
    add_servicer_to_server(ReconciliationServicer(catalog, config), server)

    credentials = create_server_credentials(config)
    if credentials is not None:
        server.add_secure_port(config.grpc_bind, credentials)
    else:
        server.add_insecure_port(config.grpc_bind)
    logger.info("%s bound to %s (tls=%s)", SERVICE_NAME, config.grpc_bind, credentials is not None)
    return server


class RbacClient:
    """Async client for ``rbaccore.RbacService``.

    Usage:
        async with RbacClient("localhost:50061", config) as client:
            result = await client.reconcile("DEV", "HR", "EMPLOYEES")
    """

    def __init__(self, target: str, config: Optional[RbacConfig] = None) -> None:
        self._channel = create_channel(target, config or RbacConfig())

    def _method(self, name: str):
        return self._channel.unary_unary(
            f"/{SERVICE_NAME}/{name}",
            request_serializer=Struct.SerializeToString,
            response_deserializer=Struct.FromString,
        )

    async def _call(self, name: str, params: Mapping[str, Any], metadata=None) -> dict[str, Any]:
        response = await self._method(name)(_to_struct(params), metadata=metadata)
        return json_format.MessageToDict(response)

    async def reconcile(
        self,
        environment: str,
        database: str,
        schema: str,
        dry_run: bool = True,
        *,
        role: Optional[str] = None,
        principal: Optional[str] = None,
    ) -> dict[str, Any]:
        metadata = []
        if role:
            metadata.append((ROLE_METADATA_KEY, role))
        if principal:
            metadata.append((PRINCIPAL_METADATA_KEY, principal))
        params = {"environment": environment, "database": database, "schema": schema, "dry_run": dry_run}
        return await self._call("Reconcile", params, metadata=metadata or None)

    async def check_compliance(self, environment: str, database: str, schema: Optional[str] = None) -> dict[str, Any]:
        params = {"environment": environment, "database": database}
        if schema:
            params["schema"] = schema
        return await self._call("CheckCompliance", params)

    async def resolve_roles(
        self, environment: str, database: str, schema: str, capability: str = "DEVELOPER"
    ) -> dict[str, Any]:
        return await self._call(
            "ResolveRoles",
            {"environment": environment, "database": database, "schema": schema, "capability": capability},
        )

    async def close(self) -> None:
        await self._channel.close()

    async def __aenter__(self) -> RbacClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


async def serve(config: Optional[RbacConfig] = None) -> None:
    """Run the service against the configured SQLAlchemy catalog until stopped."""
    from .catalog.sql import SqlAlchemyCatalog
    from .config import load_config_from_env
    from .logging import setup_logging

    config = config or load_config_from_env()
    setup_logging(config)
    catalog = SqlAlchemyCatalog.from_config(config)
    server = create_server(catalog, config)
    await server.start()
    try:
        await server.wait_for_termination()
    finally:
        catalog.dispose()


def main() -> None:
    asyncio.run(serve())


__all__ = [
    "PRINCIPAL_METADATA_KEY",
    "ROLE_METADATA_KEY",
    "SERVICE_NAME",
    "RbacClient",
    "ReconciliationServicer",
    "add_servicer_to_server",
    "create_server",
    "main",
    "serve",
]
