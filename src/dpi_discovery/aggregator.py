"""
Result aggregation for discovery sessions.

Every function here is a pure function of a session snapshot (or of one
of its domain results): no hidden state, no I/O, and the same input
always yields the same output. Iteration over result mappings goes
through sorted keys so that ties resolve the same way on every call.
"""

import math
from typing import Optional

from .enums import DiscoveryPhase, StrategyFamily
from .models import ConfigTrial, DiscoverySession, DomainResult, DomainSummary

# Display order of the phase buckets
PHASE_ORDER: tuple[DiscoveryPhase, ...] = (
    DiscoveryPhase.BASELINE,
    DiscoveryPhase.STRATEGY_DETECTION,
    DiscoveryPhase.OPTIMIZATION,
    DiscoveryPhase.COMBINATION,
    DiscoveryPhase.FINGERPRINT,
    DiscoveryPhase.DNS_DETECTION,
    DiscoveryPhase.UNKNOWN,
)

# Phases whose check count is not known while they run
INDETERMINATE_PHASES = frozenset({
    DiscoveryPhase.DNS_DETECTION,
    DiscoveryPhase.FINGERPRINT,
})

PHASE_LABELS: dict[DiscoveryPhase, str] = {
    DiscoveryPhase.FINGERPRINT: "DPI Fingerprinting",
    DiscoveryPhase.BASELINE: "Baseline Test",
    DiscoveryPhase.STRATEGY_DETECTION: "Strategy Detection",
    DiscoveryPhase.OPTIMIZATION: "Optimization",
    DiscoveryPhase.COMBINATION: "Combination Test",
    DiscoveryPhase.DNS_DETECTION: "DNS Detection",
    DiscoveryPhase.UNKNOWN: "Other",
}

FAMILY_LABELS: dict[StrategyFamily, str] = {
    StrategyFamily.NONE: "Baseline",
    StrategyFamily.TCP_FRAG: "TCP Fragmentation",
    StrategyFamily.TLS_RECORD: "TLS Record Split",
    StrategyFamily.OOB: "Out-of-Band",
    StrategyFamily.IP_FRAG: "IP Fragmentation",
    StrategyFamily.FAKE_SNI: "Fake SNI",
    StrategyFamily.SACK: "SACK Drop",
    StrategyFamily.SYN_FAKE: "SYN Fake",
    StrategyFamily.DESYNC: "Desync",
    StrategyFamily.DELAY: "Delay",
    StrategyFamily.DISORDER: "Disorder",
    StrategyFamily.OVERLAP: "Overlap",
    StrategyFamily.EXTSPLIT: "Extension Split",
    StrategyFamily.FIRSTBYTE: "First-Byte",
    StrategyFamily.COMBO: "Combo",
    StrategyFamily.HYBRID: "Hybrid",
    StrategyFamily.WINDOW: "Window",
    StrategyFamily.MUTATION: "Mutation",
    StrategyFamily.UNKNOWN: "Unknown",
}


def phase_label(phase: Optional[DiscoveryPhase]) -> str:
    """Human-readable name of a phase ('' for no phase)."""
    if phase is None:
        return ""
    return PHASE_LABELS[phase]


def family_label(family: Optional[StrategyFamily]) -> str:
    """Human-readable name of a strategy family ('' for no family)."""
    if family is None:
        return ""
    return FAMILY_LABELS[family]


def best_trial(domain_result: DomainResult) -> Optional[ConfigTrial]:
    """
    Select the fastest successful trial of a domain.

    Among trials with status complete, the one with the highest speed
    wins. Ties go to the preset name that sorts first.

    Returns:
        The winning trial, or None if no trial has succeeded yet
    """
    key = best_trial_key(domain_result.results)
    return domain_result.results[key] if key is not None else None


def best_trial_key(results: dict[str, ConfigTrial]) -> Optional[str]:
    """Key of the fastest complete trial in a results mapping, or None."""
    best: Optional[str] = None
    for name in sorted(results):
        trial = results[name]
        if not trial.succeeded:
            continue
        if best is None or trial.speed > results[best].speed:
            best = name
    return best


def sorted_trials(trials) -> list[ConfigTrial]:
    """Order trials for display: fastest first, then by preset name."""
    return sorted(trials, key=lambda t: (not t.succeeded, -t.speed, t.preset_name))


def group_by_phase(domain_result: DomainResult) -> dict[DiscoveryPhase, list[ConfigTrial]]:
    """
    Partition a domain's trials into phase buckets.

    Every bucket of PHASE_ORDER is present, empty or not, in that order.
    Trials decoded without a phase already carry strategy_detection.
    """
    grouped: dict[DiscoveryPhase, list[ConfigTrial]] = {phase: [] for phase in PHASE_ORDER}
    for name in sorted(domain_result.results):
        trial = domain_result.results[name]
        grouped[trial.phase or DiscoveryPhase.STRATEGY_DETECTION].append(trial)
    return {phase: sorted_trials(trials) for phase, trials in grouped.items()}


def progress(session: Optional[DiscoverySession]) -> float:
    """
    Percentage of completed checks, clamped to [0, 100].

    Defined as 0 when there is no session or no checks are planned.
    """
    if session is None or session.total_checks <= 0:
        return 0.0
    ratio = session.completed_checks / session.total_checks
    return min(max(ratio, 0.0), 1.0) * 100.0


def is_indeterminate(session: Optional[DiscoverySession]) -> bool:
    """True while the session runs a phase with no meaningful percentage."""
    if session is None:
        return False
    return session.current_phase in INDETERMINATE_PHASES


def improvement(domain_result: DomainResult) -> Optional[float]:
    """
    Speed gain of the best trial over the baseline, in percent.

    The sign is preserved, so a regression shows up as a negative value.

    Returns:
        The percentage, or None without a successful trial or a positive
        baseline
    """
    baseline = domain_result.baseline_speed
    if baseline is None or baseline <= 0:
        return None
    best = best_trial(domain_result)
    if best is None:
        return None
    return (best.speed - baseline) / baseline * 100.0


def working_families(domain_result: DomainResult) -> tuple[StrategyFamily, ...]:
    """Distinct families with at least one successful trial, in label order."""
    families = {
        trial.family
        for trial in domain_result.results.values()
        if trial.succeeded and trial.family is not None
    }
    return tuple(sorted(families, key=lambda f: f.value))


def success_rate(domain_result: DomainResult) -> float:
    """Share of successful trials in percent (0 with no trials)."""
    if not domain_result.results:
        return 0.0
    successful = sum(1 for trial in domain_result.results.values() if trial.succeeded)
    return successful / len(domain_result.results) * 100.0


def summarize_domain(domain_result: DomainResult) -> DomainSummary:
    """Derive the best-strategy summary of one domain."""
    best = best_trial(domain_result)
    return DomainSummary(
        domain=domain_result.domain,
        best_preset=best.preset_name if best else None,
        best_speed=best.speed if best else None,
        best_success=best is not None,
        baseline_speed=domain_result.baseline_speed,
        improvement=improvement(domain_result),
        trial_count=len(domain_result.results),
        successful_count=sum(1 for t in domain_result.results.values() if t.succeeded),
        working_families=working_families(domain_result),
    )


def summarize(session: Optional[DiscoverySession]) -> dict[str, DomainSummary]:
    """Summaries of every domain in a session, keyed by domain."""
    if session is None:
        return {}
    return {
        key: summarize_domain(session.domain_results[key])
        for key in sorted(session.domain_results)
    }


def rank_domains(session: Optional[DiscoverySession]) -> list[str]:
    """
    Order domains for display by best speed, fastest first.

    Domains without any successful trial rank as negative infinity and
    therefore always come after every successful one, including a
    successful one at speed 0. Equal speeds are ordered by domain name.
    """
    if session is None:
        return []

    def sort_key(key: str) -> tuple[float, str]:
        best = best_trial(session.domain_results[key])
        speed = best.speed if best is not None else -math.inf
        return (-speed, key)

    return sorted(session.domain_results, key=sort_key)


def group_session_by_phase(
    session: Optional[DiscoverySession],
) -> dict[str, dict[DiscoveryPhase, list[ConfigTrial]]]:
    """Phase-grouped trials of every domain in a session."""
    if session is None:
        return {}
    return {
        key: group_by_phase(session.domain_results[key])
        for key in sorted(session.domain_results)
    }
