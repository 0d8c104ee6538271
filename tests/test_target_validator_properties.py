"""
Property-based tests for the Target Validator module.

Uses Hypothesis to verify normalization of discovery targets and the
local rejection of malformed input.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from dpi_discovery.enums import TargetErrorCode
from dpi_discovery.target_validator import FORBIDDEN_HOST_CHARS, TargetValidator


# Strategies for generating test data

@st.composite
def label_strategy(draw) -> str:
    """Generate a valid ASCII DNS label."""
    first = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"))
    rest = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-"),
        max_size=15,
    ))
    return first + rest.rstrip("-")


@st.composite
def domain_strategy(draw) -> str:
    """Generate ASCII domains with two to four labels."""
    labels = draw(st.lists(label_strategy(), min_size=1, max_size=3))
    tld = draw(st.sampled_from(["com", "ru", "org", "io", "net"]))
    return ".".join(labels + [tld])


class TestTargetNormalizationProperty:
    """
    Property-based tests for target normalization.

    **Property: Canonical domain and check URL**
    """

    @given(domain=domain_strategy())
    @settings(max_examples=100)
    def test_bare_domain_gets_https_check_url(self, domain: str) -> None:
        """
        *For any* bare domain, the target SHALL carry the lowercased domain
        and the check URL https://<domain>/.
        """
        result = TargetValidator().validate(f"  {domain}  ")

        assert result.valid
        assert result.target.domain == domain.lower()
        assert result.target.check_url == f"https://{domain.lower()}/"
        assert result.target.raw == f"  {domain}  "

    @given(
        domain=domain_strategy(),
        path=st.sampled_from(["", "/", "/watch?v=1", "/a/b.js"]),
        scheme=st.sampled_from(["http", "https", "HTTPS"]),
    )
    @settings(max_examples=100)
    def test_url_keeps_check_url(self, domain: str, path: str, scheme: str) -> None:
        url = f"{scheme}://{domain}{path}"
        result = TargetValidator().validate(url)

        assert result.valid
        assert result.target.domain == domain.lower()
        assert result.target.check_url == url

    @given(domain=domain_strategy())
    @settings(max_examples=100)
    def test_normalization_is_idempotent(self, domain: str) -> None:
        validator = TargetValidator()
        once = validator.normalize_host(domain)
        assert validator.normalize_host(once) == once

    def test_trailing_dot_and_slash_stripped(self) -> None:
        result = TargetValidator().validate("YouTube.com./")
        assert result.valid
        assert result.target.domain == "youtube.com"

    @given(
        domain=domain_strategy(),
        suffix=st.sampled_from(["/watch?v=1", ":443", ":8443/a/b.js", "/#top", "?q=1"]),
    )
    @settings(max_examples=100)
    def test_bare_domain_with_path_or_port(self, domain: str, suffix: str) -> None:
        """
        *For any* bare domain followed by a path, query or port, the host
        SHALL be the domain and the check URL SHALL be the input with https://.
        """
        result = TargetValidator().validate(f"{domain}{suffix}")

        assert result.valid
        assert result.target.domain == domain.lower()
        assert result.target.check_url == f"https://{domain}{suffix}"

    def test_youtube_watch_url_without_scheme(self) -> None:
        result = TargetValidator().validate("youtube.com/watch?v=1")
        assert result.valid
        assert result.target.domain == "youtube.com"
        assert result.target.check_url == "https://youtube.com/watch?v=1"

    def test_bare_domain_with_port(self) -> None:
        result = TargetValidator().validate("youtube.com:443")
        assert result.valid
        assert result.target.domain == "youtube.com"
        assert result.target.check_url == "https://youtube.com:443"

    def test_idn_is_punycode(self) -> None:
        result = TargetValidator().validate("пример.рф")
        assert result.valid
        assert result.target.domain == "xn--e1afmkfd.xn--p1ai"
        assert result.target.domain.isascii()


class TestTargetRejectionProperty:
    """
    Property-based tests for local rejection of bad targets.

    **Property: Invalid input never reaches the service**
    """

    @given(raw=st.text(alphabet=" \t\r\n", max_size=8))
    @settings(max_examples=50)
    def test_blank_input_rejected(self, raw: str) -> None:
        result = TargetValidator().validate(raw)
        assert not result.valid
        assert result.target is None
        assert result.error.code == TargetErrorCode.EMPTY_INPUT

    @given(
        domain=domain_strategy(),
        bad_char=st.sampled_from(list("!@$%^&*()+=[]{}|\\;\"'<>,`~")),
        position=st.integers(min_value=0, max_value=3),
    )
    @settings(max_examples=100)
    def test_forbidden_chars_rejected(self, domain: str, bad_char: str, position: int) -> None:
        index = min(position, len(domain) - 1)
        raw = domain[:index] + bad_char + domain[index:]
        result = TargetValidator().validate(raw)

        assert not result.valid
        assert result.error.code == TargetErrorCode.FORBIDDEN_CHARS
        assert bad_char in result.error.details["forbidden_chars"]

    @given(label=label_strategy())
    @settings(max_examples=100)
    def test_single_label_rejected(self, label: str) -> None:
        result = TargetValidator().validate(label)
        assert not result.valid
        assert result.error.code == TargetErrorCode.MISSING_TLD

    def test_empty_label_rejected(self) -> None:
        result = TargetValidator().validate("youtube..com")
        assert not result.valid
        assert result.error.code == TargetErrorCode.MISSING_TLD

    def test_url_without_host_rejected(self) -> None:
        result = TargetValidator().validate("https:///watch")
        assert not result.valid
        assert result.error.code == TargetErrorCode.INVALID_URL

    def test_bare_path_without_host_rejected(self) -> None:
        result = TargetValidator().validate("/watch?v=1")
        assert not result.valid
        assert result.error.code == TargetErrorCode.INVALID_URL

    def test_credentials_in_host_rejected(self) -> None:
        result = TargetValidator().validate("user@youtube.com")
        assert not result.valid
        assert result.error.code == TargetErrorCode.FORBIDDEN_CHARS

    def test_non_numeric_port_rejected(self) -> None:
        result = TargetValidator().validate("youtube.com:https")
        assert not result.valid
        assert result.error.code == TargetErrorCode.FORBIDDEN_CHARS

    def test_forbidden_pattern_accepts_plain_domain(self) -> None:
        assert FORBIDDEN_HOST_CHARS.search("youtube.com") is None
