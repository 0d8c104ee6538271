"""
Property-based tests for the Session Parser module.

Covers decoding of service payloads, the compatibility defaults for
missing optional fields, and the closed phase/family vocabularies.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dpi_discovery.enums import (
    BlockingMethod,
    DiscoveryPhase,
    DPIType,
    SessionStatus,
    StrategyFamily,
    TrialStatus,
)
from dpi_discovery.exceptions import ProtocolError
from dpi_discovery.session_parser import (
    parse_domain_result,
    parse_fingerprint,
    parse_session,
    parse_similar_sets,
    parse_start_response,
    parse_trial,
)


KNOWN_PHASES = [p.value for p in DiscoveryPhase if p != DiscoveryPhase.UNKNOWN]
KNOWN_FAMILIES = [f.value for f in StrategyFamily if f != StrategyFamily.UNKNOWN]


@st.composite
def unknown_word_strategy(draw, known: list[str]) -> str:
    """Generate a lowercase word that is not in the known vocabulary."""
    word = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    if word in known or word == "unknown":
        word = "x_" + word
    return word


@st.composite
def raw_trial_strategy(draw) -> dict:
    """Generate raw trial payloads with optional fields randomly omitted."""
    data = {
        "status": draw(st.sampled_from(["complete", "failed"])),
        "speed": draw(st.floats(min_value=0, max_value=1e8, allow_nan=False)),
    }
    if draw(st.booleans()):
        data["phase"] = draw(st.sampled_from(KNOWN_PHASES))
    if draw(st.booleans()):
        data["family"] = draw(st.sampled_from(KNOWN_FAMILIES))
    if draw(st.booleans()):
        data["duration"] = draw(st.floats(min_value=0, max_value=30))
    if draw(st.booleans()):
        data["error"] = draw(st.text(min_size=1, max_size=30))
    return data


class TestTrialDecodingProperty:
    """Property-based tests for trial decoding and compatibility defaults."""

    @given(raw=raw_trial_strategy(), key=st.text(min_size=1, max_size=20))
    @settings(max_examples=100)
    def test_missing_phase_defaults_to_strategy_detection(self, raw: dict, key: str) -> None:
        """
        *For any* trial payload, a missing phase SHALL decode as
        strategy_detection and a present one SHALL decode to its member.
        """
        trial = parse_trial(key, raw)

        if "phase" in raw:
            assert trial.phase == DiscoveryPhase(raw["phase"])
        else:
            assert trial.phase == DiscoveryPhase.STRATEGY_DETECTION
        assert trial.preset_name == key
        assert trial.status == TrialStatus(raw["status"])

    @given(word=unknown_word_strategy(KNOWN_PHASES))
    @settings(max_examples=100)
    def test_unknown_phase_is_unknown_member(self, word: str) -> None:
        """Phases outside the vocabulary decode to UNKNOWN, never a free string."""
        trial = parse_trial("p", {"status": "complete", "phase": word})
        assert trial.phase == DiscoveryPhase.UNKNOWN

    @given(word=unknown_word_strategy(KNOWN_FAMILIES))
    @settings(max_examples=100)
    def test_unknown_family_is_unknown_member(self, word: str) -> None:
        trial = parse_trial("p", {"status": "complete", "family": word})
        assert trial.family == StrategyFamily.UNKNOWN

    def test_superseded_vocabulary_accepted(self) -> None:
        trial = parse_trial("p", {"status": "complete", "phase": "fingerprint", "family": "overlap"})
        assert trial.phase == DiscoveryPhase.FINGERPRINT
        assert trial.family == StrategyFamily.OVERLAP

    def test_missing_family_is_none(self) -> None:
        assert parse_trial("p", {"status": "complete"}).family is None

    @given(status=st.text(max_size=10))
    @settings(max_examples=50)
    def test_unrecognized_status_is_failure(self, status: str) -> None:
        if status.lower() in ("complete", "failed"):
            return
        trial = parse_trial("p", {"status": status, "speed": 1000})
        assert trial.status == TrialStatus.FAILED

    def test_set_config_is_kept(self) -> None:
        set_config = {"id": "s1", "fragmentation": {"strategy": "tcp"}}
        trial = parse_trial("tcp_frag", {"status": "complete", "set": set_config})
        assert trial.set_config == set_config

    def test_non_finite_speed_is_zero(self) -> None:
        trial = parse_trial("p", {"status": "complete", "speed": "nan"})
        assert trial.speed == 0.0

    def test_trial_must_be_object(self) -> None:
        with pytest.raises(ProtocolError):
            parse_trial("p", ["not", "an", "object"])


class TestSessionDecodingProperty:
    """Property-based tests for full session decoding."""

    def test_example_payload(self) -> None:
        session = parse_session({
            "id": "abc",
            "status": "running",
            "total_checks": 12,
            "completed_checks": 3,
            "domain_results": {
                "youtube.com": {
                    "results": {"tcp_frag": {"status": "complete", "speed": 1048576}},
                },
            },
        })

        assert session.id == "abc"
        assert session.status == SessionStatus.RUNNING
        assert session.total_checks == 12
        assert session.completed_checks == 3
        assert session.current_phase is None

        domain = session.domain_results["youtube.com"]
        assert domain.domain == "youtube.com"
        assert domain.baseline_speed is None
        assert domain.results["tcp_frag"].speed == 1048576.0
        assert domain.results["tcp_frag"].phase == DiscoveryPhase.STRATEGY_DETECTION

    @given(
        total=st.integers(min_value=-100, max_value=1000),
        completed=st.integers(min_value=-100, max_value=1000),
    )
    @settings(max_examples=100)
    def test_counts_never_negative(self, total: int, completed: int) -> None:
        session = parse_session({
            "id": "abc",
            "status": "running",
            "total_checks": total,
            "completed_checks": completed,
        })
        assert session.total_checks == max(0, total)
        assert session.completed_checks == max(0, completed)

    def test_older_results_key_accepted(self) -> None:
        session = parse_session({
            "id": "abc",
            "status": "complete",
            "domain_discovery_results": {
                "example.com": {"results": {"p": {"status": "complete", "speed": 10}}},
            },
        })
        assert "example.com" in session.domain_results
        assert session.is_terminal

    @pytest.mark.parametrize("payload", [
        {"status": "running"},
        {"id": "abc", "status": "exploded"},
        {"id": "abc"},
        [],
        "abc",
        None,
    ])
    def test_unusable_payload_raises(self, payload) -> None:
        with pytest.raises(ProtocolError):
            parse_session(payload)

    def test_server_best_speed_dropped_without_best_preset(self) -> None:
        result = parse_domain_result("example.com", {"results": {}, "best_speed": 1000})
        assert result.best_preset is None
        assert result.best_speed is None

    def test_server_best_preset_naming_failed_trial_dropped(self) -> None:
        result = parse_domain_result("youtube.com", {
            "results": {"tcp_frag": {"status": "failed", "speed": 0}},
            "best_preset": "tcp_frag",
            "best_speed": 2048,
            "best_success": True,
        })
        assert result.best_preset is None
        assert result.best_speed is None
        assert result.best_success is False

    def test_server_best_preset_naming_missing_trial_replaced(self) -> None:
        result = parse_domain_result("youtube.com", {
            "results": {"fake_sni": {"status": "complete", "speed": 1024}},
            "best_preset": "tcp_frag",
            "best_success": True,
        })
        assert result.best_preset == "fake_sni"
        assert result.best_speed == 1024.0
        assert result.best_success is True

    @given(trials=st.dictionaries(
        st.text(alphabet="abcdefgh_", min_size=1, max_size=8),
        raw_trial_strategy(),
        max_size=6,
    ), claimed=st.text(alphabet="abcdefgh_", min_size=1, max_size=8))
    @settings(max_examples=100)
    def test_best_preset_always_names_complete_trial(self, trials: dict, claimed: str) -> None:
        """
        *For any* domain payload, best_preset SHALL be None or the key of a
        complete trial with the maximum speed, whatever the payload claims.
        """
        result = parse_domain_result("example.com", {
            "results": trials,
            "best_preset": claimed,
            "best_success": True,
        })

        complete = [t for t in result.results.values() if t.status == TrialStatus.COMPLETE]
        if not complete:
            assert result.best_preset is None
            assert result.best_success is False
        else:
            best = result.results[result.best_preset]
            assert best.status == TrialStatus.COMPLETE
            assert best.speed == max(t.speed for t in complete)
            assert result.best_speed == best.speed
            assert result.best_success is True

    def test_fingerprint_and_families(self) -> None:
        session = parse_session({
            "id": "abc",
            "status": "running",
            "current_phase": "dns_detection",
            "working_families": ["tcp_frag", "fake_sni", "teleport"],
            "fingerprint": {
                "type": "tspu",
                "blocking_method": "rst_inject",
                "confidence": 85,
                "recommended_families": ["desync"],
            },
        })
        assert session.current_phase == DiscoveryPhase.DNS_DETECTION
        assert session.working_families == (
            StrategyFamily.TCP_FRAG,
            StrategyFamily.FAKE_SNI,
            StrategyFamily.UNKNOWN,
        )
        assert session.fingerprint.dpi_type == DPIType.TSPU
        assert session.fingerprint.blocking_method == BlockingMethod.RST_INJECT
        assert session.fingerprint.recommended_families == (StrategyFamily.DESYNC,)


class TestOtherPayloads:
    """Decoding of start, fingerprint and similar-set responses."""

    def test_start_response(self) -> None:
        response = parse_start_response({"id": "abc", "estimated_tests": 40, "message": "ok"})
        assert response.id == "abc"
        assert response.estimated_tests == 40

    def test_start_response_requires_id(self) -> None:
        with pytest.raises(ProtocolError):
            parse_start_response({"message": "ok"})

    def test_fingerprint_of_non_object_is_none(self) -> None:
        assert parse_fingerprint(None) is None
        assert parse_fingerprint("tspu") is None

    def test_unknown_dpi_type(self) -> None:
        fingerprint = parse_fingerprint({"type": "acme-box", "blocking_method": "smoke"})
        assert fingerprint.dpi_type == DPIType.UNKNOWN
        assert fingerprint.blocking_method == BlockingMethod.UNKNOWN

    def test_similar_sets_skip_entries_without_id(self) -> None:
        sets = parse_similar_sets([
            {"id": "s1", "name": "YouTube", "domains": ["youtube.com"]},
            {"name": "no id"},
            "garbage",
        ])
        assert len(sets) == 1
        assert sets[0].id == "s1"
        assert sets[0].domains == ("youtube.com",)

    def test_similar_sets_null_is_empty(self) -> None:
        assert parse_similar_sets(None) == []
