"""
Enumeration types for the discovery console.

These enums provide type-safe constants for session and trial states,
the search vocabulary reported by the Discovery Service, error codes,
and configuration options.

The phase and family vocabularies are closed: values the service sends
that are not listed here decode to UNKNOWN instead of leaking through as
free strings.
"""

from enum import Enum
from typing import Optional


class SessionStatus(Enum):
    """Status of a discovery session as reported by the service."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETE, SessionStatus.FAILED, SessionStatus.CANCELED)


class TrialStatus(Enum):
    """Outcome of a single preset trial against a domain."""

    COMPLETE = "complete"
    FAILED = "failed"


class CoordinatorState(Enum):
    """Client-side lifecycle state of a tracked discovery session."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            CoordinatorState.COMPLETE,
            CoordinatorState.FAILED,
            CoordinatorState.CANCELED,
        )

    @property
    def is_active(self) -> bool:
        return self in (CoordinatorState.STARTING, CoordinatorState.RUNNING)


class DiscoveryPhase(Enum):
    """Ordered stages of the strategy search."""

    FINGERPRINT = "fingerprint"  # older search engines only
    BASELINE = "baseline"
    STRATEGY_DETECTION = "strategy_detection"
    OPTIMIZATION = "optimization"
    COMBINATION = "combination"
    DNS_DETECTION = "dns_detection"
    UNKNOWN = "unknown"

    @classmethod
    def from_wire(cls, value: Optional[str]) -> Optional["DiscoveryPhase"]:
        """Decode a wire value; None stays None, unrecognized becomes UNKNOWN."""
        if value is None or value == "":
            return None
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class StrategyFamily(Enum):
    """Coarse category of a packet-mangling technique."""

    NONE = "none"
    TCP_FRAG = "tcp_frag"
    TLS_RECORD = "tls_record"
    OOB = "oob"
    IP_FRAG = "ip_frag"
    FAKE_SNI = "fake_sni"
    SACK = "sack"
    SYN_FAKE = "syn_fake"
    DESYNC = "desync"
    DELAY = "delay"
    DISORDER = "disorder"
    OVERLAP = "overlap"  # older search engines only
    EXTSPLIT = "extsplit"
    FIRSTBYTE = "firstbyte"
    COMBO = "combo"
    HYBRID = "hybrid"
    WINDOW = "window"
    MUTATION = "mutation"
    UNKNOWN = "unknown"

    @classmethod
    def from_wire(cls, value: Optional[str]) -> Optional["StrategyFamily"]:
        """Decode a wire value; None stays None, unrecognized becomes UNKNOWN."""
        if value is None or value == "":
            return None
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class DPIType(Enum):
    """Vendor/type of DPI equipment identified by fingerprinting."""

    UNKNOWN = "unknown"
    TSPU = "tspu"
    SANDVINE = "sandvine"
    HUAWEI = "huawei"
    ALLOT = "allot"
    FORTIGATE = "fortigate"
    NONE = "none"


class BlockingMethod(Enum):
    """How the DPI middlebox interferes with blocked traffic."""

    RST_INJECT = "rst_inject"
    TIMEOUT = "timeout"
    REDIRECT = "redirect"
    CONTENT_INJECT = "content_inject"
    TLS_ALERT = "tls_alert"
    NONE = "none"
    UNKNOWN = "unknown"


class TLSVersion(Enum):
    """TLS version the search should use for its test connections."""

    AUTO = "auto"
    TLS12 = "tls12"
    TLS13 = "tls13"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _LOG_LEVEL_RANK[self]


_LOG_LEVEL_RANK = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


class TargetErrorCode(Enum):
    """Error codes for discovery target validation failures."""

    EMPTY_INPUT = "empty_input"
    FORBIDDEN_CHARS = "forbidden_chars"
    INVALID_URL = "invalid_url"
    MISSING_TLD = "missing_tld"
    IDNA_ERROR = "idna_error"


class ClientErrorCode(Enum):
    """Error codes for Discovery Service client operations."""

    NETWORK_ERROR = "network_error"
    TLS_ERROR = "tls_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
