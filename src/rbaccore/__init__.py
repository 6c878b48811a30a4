from .config import RbacConfig, LogLevel, load_config_from_env
from .exceptions import (
    RbacError,
    ConfigurationError,
    ValidationError,
    AuthorizationError,
    PreconditionError,
    CatalogError,
    ActionStateError,
)
from .permissions import CapabilityLevel, Environment, ObjectCategory
from .naming import NOT_APPLICABLE, DatabaseScope, ResolvedRoles, RoleIdentifier, Scope, resolve
from .authorization import AuthorizationContext, authorize
from .topology import ActualTopology, GrantEdge, TopologyNode, desired_topology
from .interfaces import Catalog, CatalogInspector, CatalogMutator
from .catalog import InMemoryCatalog, MutationRequest, SqlAlchemyCatalog, inspect_topology
from .differ import ActionKind, ActionStatus, CorrectiveAction, diff
from .executor import Mode, classify_error, execute
from .reporter import ReconciliationResult, ResultStatus, summarize
from .engine import reconcile
from .compliance import ComplianceReport, ComplianceStatus, SchemaResult, check_compliance
from .logging import (
    safe_preview,
    redact_secrets,
    safe_log_value,
    ReconciliationFormatter,
    RunLoggerAdapter,
    setup_logging,
    get_run_logger,
)

__all__ = [
    'RbacConfig',
    'LogLevel',
    'load_config_from_env',
    'RbacError',
    'ConfigurationError',
    'ValidationError',
    'AuthorizationError',
    'PreconditionError',
    'CatalogError',
    'ActionStateError',
    'CapabilityLevel',
    'Environment',
    'ObjectCategory',
    'NOT_APPLICABLE',
    'DatabaseScope',
    'ResolvedRoles',
    'RoleIdentifier',
    'Scope',
    'resolve',
    'AuthorizationContext',
    'authorize',
    'ActualTopology',
    'GrantEdge',
    'TopologyNode',
    'desired_topology',
    'Catalog',
    'CatalogInspector',
    'CatalogMutator',
    'InMemoryCatalog',
    'MutationRequest',
    'SqlAlchemyCatalog',
    'inspect_topology',
    'ActionKind',
    'ActionStatus',
    'CorrectiveAction',
    'diff',
    'Mode',
    'classify_error',
    'execute',
    'ReconciliationResult',
    'ResultStatus',
    'summarize',
    'reconcile',
    'ComplianceReport',
    'ComplianceStatus',
    'SchemaResult',
    'check_compliance',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'ReconciliationFormatter',
    'RunLoggerAdapter',
    'setup_logging',
    'get_run_logger',
]
