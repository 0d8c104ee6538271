"""
Data models for the discovery console.

This module defines the session snapshot reported by the Discovery
Service, the per-domain and per-preset results inside it, start options,
and the derived summaries the aggregator produces.

Session snapshots are frozen: a new poll response replaces the held
snapshot wholesale instead of patching it.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import (
    BlockingMethod,
    DiscoveryPhase,
    DPIType,
    SessionStatus,
    StrategyFamily,
    TLSVersion,
    TrialStatus,
)


@dataclass(frozen=True)
class DPIFingerprint:
    """Characteristics of the DPI middlebox in front of a domain."""

    dpi_type: DPIType = DPIType.UNKNOWN
    blocking_method: BlockingMethod = BlockingMethod.UNKNOWN
    inspection_depth: str = ""
    rst_latency_ms: float = 0.0
    dpi_hop_count: int = 0
    is_inline: bool = False
    confidence: float = 0.0
    optimal_ttl: int = 0
    vulnerable_to_ttl: bool = False
    vulnerable_to_frag: bool = False
    vulnerable_to_desync: bool = False
    vulnerable_to_oob: bool = False
    recommended_families: tuple[StrategyFamily, ...] = ()


@dataclass(frozen=True)
class ConfigTrial:
    """Result of trying one named preset against one domain."""

    preset_name: str
    status: TrialStatus
    phase: DiscoveryPhase = DiscoveryPhase.STRATEGY_DETECTION
    family: Optional[StrategyFamily] = None
    speed: float = 0.0  # bytes per second
    duration: float = 0.0
    bytes_read: int = 0
    error: Optional[str] = None
    status_code: Optional[int] = None
    set_config: Optional[dict] = None  # bypass set the trial ran with

    @property
    def succeeded(self) -> bool:
        return self.status == TrialStatus.COMPLETE


@dataclass(frozen=True)
class DomainResult:
    """All trials run against a single target domain."""

    domain: str
    results: dict[str, ConfigTrial] = field(default_factory=dict)
    best_preset: Optional[str] = None
    best_speed: Optional[float] = None
    best_success: bool = False
    baseline_speed: Optional[float] = None
    improvement: Optional[float] = None
    fingerprint: Optional[DPIFingerprint] = None


@dataclass(frozen=True)
class DiscoverySession:
    """Full snapshot of a discovery session."""

    id: str
    status: SessionStatus
    total_checks: int = 0
    completed_checks: int = 0
    current_phase: Optional[DiscoveryPhase] = None
    domain_results: dict[str, DomainResult] = field(default_factory=dict)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    fingerprint: Optional[DPIFingerprint] = None
    working_families: tuple[StrategyFamily, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class DiscoveryOptions:
    """Optional knobs sent with a start request."""

    skip_dns: bool = False
    payload_files: tuple[str, ...] = ()
    validation_tries: int = 1
    tls_version: TLSVersion = TLSVersion.AUTO

    def to_payload(self) -> dict:
        """Serialize to the request body fields the service expects."""
        payload: dict = {}
        if self.skip_dns:
            payload["skip_dns"] = True
        if self.payload_files:
            payload["payload_files"] = list(self.payload_files)
        if self.validation_tries > 1:
            payload["validation_tries"] = self.validation_tries
        if self.tls_version != TLSVersion.AUTO:
            payload["tls_version"] = self.tls_version.value
        return payload


@dataclass(frozen=True)
class DiscoveryTarget:
    """A validated discovery target."""

    raw: str
    domain: str  # canonical host, IDNA-encoded
    check_url: str


@dataclass(frozen=True)
class StartResponse:
    """Acknowledgement of an accepted start request."""

    id: str
    estimated_tests: int = 0
    message: str = ""
    domain: Optional[str] = None
    check_url: Optional[str] = None


@dataclass(frozen=True)
class SimilarSet:
    """An existing bypass set whose configuration matches a preset."""

    id: str
    name: str
    domains: tuple[str, ...] = ()


@dataclass(frozen=True)
class DomainSummary:
    """Locally derived best-strategy view of one domain."""

    domain: str
    best_preset: Optional[str]
    best_speed: Optional[float]
    best_success: bool
    baseline_speed: Optional[float]
    improvement: Optional[float]
    trial_count: int
    successful_count: int
    working_families: tuple[StrategyFamily, ...] = ()
