"""
Domain Enforcer - hosts file and packet filter based domain blocking.

This package keeps a managed section of the hosts file and a packet-filter
anchor in sync with a set of blocked domains. Addresses are collected from
several resolvers, merged with the previously applied anchor so that a DNS
outage never lifts a block, and applied through a single privileged command.
"""

__version__ = "0.1.0"
__author__ = "Domain Enforcer Team"

from domain_enforcer.exceptions import (
    DomainEnforcerError,
    ValidationError,
    ConfigurationError,
    HostsReadError,
    StagingError,
    PrivilegedCommandError,
    AuthorizationCanceledError,
    VerificationError,
    DomainSourceError,
)
from domain_enforcer.enums import (
    LogLevel,
    FailureReason,
    DomainValidationErrorCode,
    RecordType,
    TransportKind,
    SyncOutcome,
)
from domain_enforcer.domain_validator import (
    DomainValidator,
    DomainValidationResult,
    DomainValidationError,
    normalize,
    normalize_list,
    expand_hostnames,
    expand_domain_list,
)
from domain_enforcer.config import (
    PathsConfig,
    ToolsConfig,
    DoHConfig,
    ResolverConfig,
    MergePolicyConfig,
    AggregationConfig,
    TransportConfig,
    RetryConfig,
    RefreshConfig,
    LoggingConfig,
    SystemConfig,
)
from domain_enforcer.models import (
    ResolvedAddressSet,
    AnchorSnapshot,
    CommandResult,
    ApplyResult,
    SyncResult,
)
from domain_enforcer.aggregator import aggregate_ipv4
from domain_enforcer.anchor_store import (
    AnchorStore,
    domain_signature,
    parse_anchor,
    render_anchor,
)
from domain_enforcer.merger import (
    is_snapshot_fresh,
    merge_entries,
    merge_resolved,
)
from domain_enforcer.system_resolver import SystemResolverChannel
from domain_enforcer.dns_client import IterativeDNSChannel
from domain_enforcer.doh_client import DoHClient
from domain_enforcer.resolver import MultiSourceResolver
from domain_enforcer.transport import (
    PrivilegedTransport,
    AppleScriptTransport,
    ShellTransport,
    create_transport,
)
from domain_enforcer.apply_transaction import (
    ApplyTransaction,
    ApplyPlan,
    AnchorAction,
)
from domain_enforcer.retry_manager import (
    RetryManager,
    RetryState,
)
from domain_enforcer.audit_logger import (
    AuditLogger,
    LogEntry,
)
from domain_enforcer.domain_sources import (
    DomainSource,
    StaticDomainSource,
    FileDomainSource,
    HostsSectionDomainSource,
)
from domain_enforcer.i18n import (
    get_message,
    get_all_message_keys,
    has_translation,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from domain_enforcer.orchestrator import (
    SyncOrchestrator,
    user_message,
)
from domain_enforcer.scheduler import RefreshScheduler
from domain_enforcer.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)
from domain_enforcer.self_test import (
    SelfTest,
    SelfTestResult,
    EndpointTestResult,
    LocalCheckResult,
    ConfigValidationResult,
    run_self_test,
)

__all__ = [
    # Exceptions
    "DomainEnforcerError",
    "ValidationError",
    "ConfigurationError",
    "HostsReadError",
    "StagingError",
    "PrivilegedCommandError",
    "AuthorizationCanceledError",
    "VerificationError",
    "DomainSourceError",
    # Enums
    "LogLevel",
    "FailureReason",
    "DomainValidationErrorCode",
    "RecordType",
    "TransportKind",
    "SyncOutcome",
    # Domain Validator
    "DomainValidator",
    "DomainValidationResult",
    "DomainValidationError",
    "normalize",
    "normalize_list",
    "expand_hostnames",
    "expand_domain_list",
    # Configuration
    "PathsConfig",
    "ToolsConfig",
    "DoHConfig",
    "ResolverConfig",
    "MergePolicyConfig",
    "AggregationConfig",
    "TransportConfig",
    "RetryConfig",
    "RefreshConfig",
    "LoggingConfig",
    "SystemConfig",
    # Models
    "ResolvedAddressSet",
    "AnchorSnapshot",
    "CommandResult",
    "ApplyResult",
    "SyncResult",
    # Anchor state
    "aggregate_ipv4",
    "AnchorStore",
    "domain_signature",
    "parse_anchor",
    "render_anchor",
    "is_snapshot_fresh",
    "merge_entries",
    "merge_resolved",
    # Resolver
    "SystemResolverChannel",
    "IterativeDNSChannel",
    "DoHClient",
    "MultiSourceResolver",
    # Transport
    "PrivilegedTransport",
    "AppleScriptTransport",
    "ShellTransport",
    "create_transport",
    # Apply Transaction
    "ApplyTransaction",
    "ApplyPlan",
    "AnchorAction",
    # Retry Manager
    "RetryManager",
    "RetryState",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Domain Sources
    "DomainSource",
    "StaticDomainSource",
    "FileDomainSource",
    "HostsSectionDomainSource",
    # I18n
    "get_message",
    "get_all_message_keys",
    "has_translation",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Orchestrator
    "SyncOrchestrator",
    "user_message",
    "RefreshScheduler",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "EndpointTestResult",
    "LocalCheckResult",
    "ConfigValidationResult",
    "run_self_test",
]
