"""
Decoding of Discovery Service JSON payloads into typed models.

Only defined fields are extracted; anything else in the payload is
ignored. Optional fields that are absent or malformed fall back to their
compatibility defaults (a trial without a phase belongs to
strategy_detection, an unknown family decodes to UNKNOWN). Structural
problems that make a payload unusable raise ProtocolError.
"""

import math
from typing import Any, Optional

from .aggregator import best_trial_key
from .enums import (
    BlockingMethod,
    ClientErrorCode,
    DiscoveryPhase,
    DPIType,
    SessionStatus,
    StrategyFamily,
    TrialStatus,
)
from .exceptions import ProtocolError
from .models import (
    ConfigTrial,
    DiscoverySession,
    DomainResult,
    DPIFingerprint,
    SimilarSet,
    StartResponse,
)


def _as_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


def _require_mapping(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise ProtocolError(
            code=ClientErrorCode.PARSE_ERROR.value,
            message=f"Expected a JSON object for {what}, got {type(data).__name__}",
            details={"what": what},
        )
    return data


def _families(raw: Any) -> tuple[StrategyFamily, ...]:
    if not isinstance(raw, list):
        return ()
    families = []
    for item in raw:
        family = StrategyFamily.from_wire(item)
        if family is not None:
            families.append(family)
    return tuple(families)


def parse_fingerprint(data: Any) -> Optional[DPIFingerprint]:
    """Decode a DPI fingerprint; returns None for anything but an object."""
    if not isinstance(data, dict):
        return None

    try:
        dpi_type = DPIType(str(data.get("type", "unknown")).lower())
    except ValueError:
        dpi_type = DPIType.UNKNOWN
    try:
        blocking_method = BlockingMethod(str(data.get("blocking_method", "unknown")).lower())
    except ValueError:
        blocking_method = BlockingMethod.UNKNOWN

    return DPIFingerprint(
        dpi_type=dpi_type,
        blocking_method=blocking_method,
        inspection_depth=str(data.get("inspection_depth") or ""),
        rst_latency_ms=_as_float(data.get("rst_latency_ms")),
        dpi_hop_count=_as_int(data.get("dpi_hop_count")),
        is_inline=bool(data.get("is_inline", False)),
        confidence=_as_float(data.get("confidence")),
        optimal_ttl=_as_int(data.get("optimal_ttl")),
        vulnerable_to_ttl=bool(data.get("vulnerable_to_ttl", False)),
        vulnerable_to_frag=bool(data.get("vulnerable_to_frag", False)),
        vulnerable_to_desync=bool(data.get("vulnerable_to_desync", False)),
        vulnerable_to_oob=bool(data.get("vulnerable_to_oob", False)),
        recommended_families=_families(data.get("recommended_families")),
    )


def parse_trial(key: str, data: Any) -> ConfigTrial:
    """
    Decode one preset trial.

    Args:
        key: The key the trial is stored under in its domain's results
        data: The raw JSON object

    Returns:
        ConfigTrial with compatibility defaults applied
    """
    data = _require_mapping(data, f"trial '{key}'")

    try:
        status = TrialStatus(str(data.get("status", "")).lower())
    except ValueError:
        # Anything that is not an explicit success cannot be the best trial
        status = TrialStatus.FAILED

    phase = DiscoveryPhase.from_wire(data.get("phase")) or DiscoveryPhase.STRATEGY_DETECTION
    set_config = data.get("set")

    status_code = data.get("status_code")
    return ConfigTrial(
        preset_name=_as_str(data.get("preset_name")) or key,
        status=status,
        phase=phase,
        family=StrategyFamily.from_wire(data.get("family")),
        speed=_as_float(data.get("speed")),
        duration=_as_float(data.get("duration")),
        bytes_read=_as_int(data.get("bytes_read")),
        error=_as_str(data.get("error")),
        status_code=_as_int(status_code) if status_code else None,
        set_config=set_config if isinstance(set_config, dict) else None,
    )


def parse_domain_result(key: str, data: Any) -> DomainResult:
    """Decode the results block of a single domain."""
    data = _require_mapping(data, f"domain result '{key}'")

    raw_results = data.get("results") or {}
    if not isinstance(raw_results, dict):
        raise ProtocolError(
            code=ClientErrorCode.PARSE_ERROR.value,
            message=f"Results of domain '{key}' are not an object",
            details={"domain": key},
        )
    results = {name: parse_trial(name, trial) for name, trial in raw_results.items()}

    # best_* come from the decoded trials, never from the payload
    best = best_trial_key(results)
    return DomainResult(
        domain=_as_str(data.get("domain")) or key,
        results=results,
        best_preset=best,
        best_speed=results[best].speed if best else None,
        best_success=best is not None,
        baseline_speed=_as_float(data.get("baseline_speed"), default=None),
        improvement=_as_float(data.get("improvement"), default=None),
        fingerprint=parse_fingerprint(data.get("fingerprint")),
    )


def parse_session(data: Any) -> DiscoverySession:
    """
    Decode a full session snapshot.

    Accepts both the ``domain_results`` and the older
    ``domain_discovery_results`` key for the per-domain block.

    Raises:
        ProtocolError: If the payload is not an object, lacks an id, or
            carries an unknown status
    """
    data = _require_mapping(data, "discovery session")

    session_id = _as_str(data.get("id"))
    if session_id is None:
        raise ProtocolError(
            code=ClientErrorCode.PARSE_ERROR.value,
            message="Discovery session has no id",
            details={"keys": sorted(data.keys())},
        )

    raw_status = data.get("status")
    try:
        status = SessionStatus(str(raw_status).lower())
    except ValueError:
        raise ProtocolError(
            code=ClientErrorCode.PARSE_ERROR.value,
            message=f"Unknown session status: {raw_status!r}",
            details={"id": session_id, "status": raw_status},
        )

    raw_domains = data.get("domain_results")
    if raw_domains is None:
        raw_domains = data.get("domain_discovery_results")
    if raw_domains is None:
        raw_domains = {}
    raw_domains = _require_mapping(raw_domains, "domain results")

    return DiscoverySession(
        id=session_id,
        status=status,
        total_checks=max(0, _as_int(data.get("total_checks"))),
        completed_checks=max(0, _as_int(data.get("completed_checks"))),
        current_phase=DiscoveryPhase.from_wire(data.get("current_phase")),
        domain_results={
            name: parse_domain_result(name, result) for name, result in raw_domains.items()
        },
        start_time=_as_str(data.get("start_time")),
        end_time=_as_str(data.get("end_time")),
        fingerprint=parse_fingerprint(data.get("fingerprint")),
        working_families=_families(data.get("working_families")),
    )


def parse_start_response(data: Any) -> StartResponse:
    """Decode the acknowledgement of an accepted start request."""
    data = _require_mapping(data, "start response")
    session_id = _as_str(data.get("id"))
    if session_id is None:
        raise ProtocolError(
            code=ClientErrorCode.PARSE_ERROR.value,
            message="Start response has no session id",
            details={"keys": sorted(data.keys())},
        )
    return StartResponse(
        id=session_id,
        estimated_tests=_as_int(data.get("estimated_tests")),
        message=str(data.get("message") or ""),
        domain=_as_str(data.get("domain")),
        check_url=_as_str(data.get("check_url")),
    )


def parse_similar_sets(data: Any) -> list[SimilarSet]:
    """Decode the list of sets similar to a candidate preset."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise ProtocolError(
            code=ClientErrorCode.PARSE_ERROR.value,
            message="Similar sets response is not a list",
        )
    similar = []
    for item in data:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        domains = item.get("domains") or []
        similar.append(SimilarSet(
            id=str(item["id"]),
            name=str(item.get("name") or ""),
            domains=tuple(str(d) for d in domains) if isinstance(domains, list) else (),
        ))
    return similar
