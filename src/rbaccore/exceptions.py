"""Unified exception hierarchy for rbaccore.

All engine errors inherit from RbacError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for protocol mapping
- gRPC error handler decorator

Usage:
    from rbaccore.exceptions import (
        RbacError,
        ValidationError,
        CatalogError,
        grpc_error_handler,
    )
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "RbacError",
    "ConfigurationError",
    "ValidationError",
    "AuthorizationError",
    "PreconditionError",
    "CatalogError",
    "ActionStateError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class RbacError(Exception):
    """Base exception for the reconciliation engine.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "VALIDATION_ERROR").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(RbacError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class ValidationError(RbacError):
    """Invalid environment, capability level or malformed scope."""

    code: str = "VALIDATION_ERROR"


class AuthorizationError(RbacError):
    """Authorization context does not permit the requested mutation."""

    code: str = "PERMISSION_DENIED"


class PreconditionError(RbacError):
    """Catalog state makes reconciliation impossible (e.g. schema absent)."""

    code: str = "PRECONDITION_FAILED"


class CatalogError(RbacError):
    """A catalog statement failed.

    Attributes:
        errno: Vendor error number reported by the driver (e.g. 2002).
        sqlstate: Five-character SQLSTATE, when the driver reports one.
        statement: Rendered statement that failed.
    """

    code: str = "CATALOG_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        errno: int | None = None,
        sqlstate: str | None = None,
        statement: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errno = errno
        self.sqlstate = sqlstate
        self.statement = statement


class ActionStateError(RbacError):
    """Illegal corrective-action status transition."""

    code: str = "ACTION_STATE_ERROR"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[RbacError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[RbacError]] = {}

    def register(self, code: str, error_cls: type[RbacError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[RbacError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[RbacError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("MY_CUSTOM_ERROR")
        class MyCustomError(RbacError):
            code = "MY_CUSTOM_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
error_registry.register("INTERNAL_ERROR", RbacError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("VALIDATION_ERROR", ValidationError)
error_registry.register("PERMISSION_DENIED", AuthorizationError)
error_registry.register("PRECONDITION_FAILED", PreconditionError)
error_registry.register("CATALOG_ERROR", CatalogError)
error_registry.register("ACTION_STATE_ERROR", ActionStateError)


# ---- gRPC Error Handling Utilities ------------------------------------------


def get_grpc_status_code(error: RbacError) -> Any:
    """Map RbacError to gRPC status code.

    Import grpc locally to avoid hard dependency at module level.
    """
    import grpc

    error_to_status = {
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
        "VALIDATION_ERROR": grpc.StatusCode.INVALID_ARGUMENT,
        "PERMISSION_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "PRECONDITION_FAILED": grpc.StatusCode.FAILED_PRECONDITION,
        "CATALOG_ERROR": grpc.StatusCode.UNAVAILABLE,
        "ACTION_STATE_ERROR": grpc.StatusCode.INTERNAL,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Decorator for unary gRPC service methods with proper error handling.

    Catches RbacError and sets appropriate gRPC status codes.
    Logs errors and ensures consistent error response format.

    Usage:
        @grpc_error_handler
        async def Reconcile(self, request, context):
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except RbacError as e:
            status_code = get_grpc_status_code(e)
            error_message = f"[{e.code}] {e.message}"

            logger.error(
                "%s failed: %s",
                method.__name__,
                error_message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, error_message)
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(
                grpc.StatusCode.INTERNAL,
                f"Unexpected {type(e)}: {e}",
            )
            return

    return wrapper
