"""
DPI Discovery - session tracker and result aggregator for strategy discovery.

This package drives a long-running, server-executed search for DPI bypass
strategies: it starts and tracks discovery sessions on the daemon, resumes
them across restarts, and reduces the per-preset trial results into a
best-strategy-per-domain view.
"""

__version__ = "0.1.0"
__author__ = "DPI Discovery Team"

from dpi_discovery.exceptions import (
    DiscoveryError,
    ValidationError,
    NetworkError,
    ProtocolError,
    ServiceError,
    PersistenceError,
    TamperingError,
    InvalidTransitionError,
)
from dpi_discovery.enums import (
    SessionStatus,
    TrialStatus,
    CoordinatorState,
    DiscoveryPhase,
    StrategyFamily,
    DPIType,
    BlockingMethod,
    TLSVersion,
    LogLevel,
    TargetErrorCode,
    ClientErrorCode,
)
from dpi_discovery.config import (
    ServiceConfig,
    PollConfig,
    RetryConfig,
    PersistenceConfig,
    LoggingConfig,
    LogStreamConfig,
    ConsoleConfig,
)
from dpi_discovery.models import (
    DPIFingerprint,
    ConfigTrial,
    DomainResult,
    DiscoverySession,
    DiscoveryOptions,
    DiscoveryTarget,
    StartResponse,
    SimilarSet,
    DomainSummary,
)
from dpi_discovery.target_validator import (
    TargetValidator,
    TargetValidationResult,
    TargetValidationError,
)
from dpi_discovery.session_parser import (
    parse_session,
    parse_trial,
    parse_domain_result,
    parse_fingerprint,
    parse_start_response,
    parse_similar_sets,
)
from dpi_discovery.aggregator import (
    best_trial,
    group_by_phase,
    progress,
    is_indeterminate,
    rank_domains,
    improvement,
    summarize,
    summarize_domain,
)
from dpi_discovery.session_store import (
    SessionStore,
    MemorySessionStore,
)
from dpi_discovery.event_logger import (
    EventLogger,
    LogEntry,
)
from dpi_discovery.retry_manager import (
    RetryManager,
    RetryResult,
)
from dpi_discovery.client import (
    DiscoveryClient,
)
from dpi_discovery.poller import (
    StatusPoller,
)
from dpi_discovery.streams import (
    SessionFeed,
    DiscoveryLogStream,
)
from dpi_discovery.coordinator import (
    SessionCoordinator,
    ViewModel,
)
from dpi_discovery.i18n import (
    get_message,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)

__all__ = [
    # Exceptions
    "DiscoveryError",
    "ValidationError",
    "NetworkError",
    "ProtocolError",
    "ServiceError",
    "PersistenceError",
    "TamperingError",
    "InvalidTransitionError",
    # Enums
    "SessionStatus",
    "TrialStatus",
    "CoordinatorState",
    "DiscoveryPhase",
    "StrategyFamily",
    "DPIType",
    "BlockingMethod",
    "TLSVersion",
    "LogLevel",
    "TargetErrorCode",
    "ClientErrorCode",
    # Configuration
    "ServiceConfig",
    "PollConfig",
    "RetryConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "LogStreamConfig",
    "ConsoleConfig",
    # Models
    "DPIFingerprint",
    "ConfigTrial",
    "DomainResult",
    "DiscoverySession",
    "DiscoveryOptions",
    "DiscoveryTarget",
    "StartResponse",
    "SimilarSet",
    "DomainSummary",
    # Target Validator
    "TargetValidator",
    "TargetValidationResult",
    "TargetValidationError",
    # Session Parser
    "parse_session",
    "parse_trial",
    "parse_domain_result",
    "parse_fingerprint",
    "parse_start_response",
    "parse_similar_sets",
    # Result Aggregator
    "best_trial",
    "group_by_phase",
    "progress",
    "is_indeterminate",
    "rank_domains",
    "improvement",
    "summarize",
    "summarize_domain",
    # Session Store
    "SessionStore",
    "MemorySessionStore",
    # Event Logger
    "EventLogger",
    "LogEntry",
    # Retry Manager
    "RetryManager",
    "RetryResult",
    # Discovery Client
    "DiscoveryClient",
    # Status tracking
    "StatusPoller",
    "SessionFeed",
    "DiscoveryLogStream",
    # Session Coordinator
    "SessionCoordinator",
    "ViewModel",
    # i18n
    "get_message",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
]
