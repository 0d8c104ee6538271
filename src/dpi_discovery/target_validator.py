"""
Discovery target validation and normalization.

A discovery can be started from a bare domain ("youtube.com") or a full
URL ("https://www.youtube.com/watch"). The validator rejects empty and
malformed input locally, before anything is sent to the service, and
derives the canonical host plus the URL the search should fetch.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from dpi_discovery.enums import TargetErrorCode
from dpi_discovery.exceptions import ValidationError
from dpi_discovery.models import DiscoveryTarget


# Characters that never appear in a host name
FORBIDDEN_HOST_CHARS = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

# Scheme, authority (everything up to the first / ? or #) and the rest
URL_PATTERN = re.compile(
    r'^(?P<scheme>https?)://(?P<authority>[^/?#]*)(?P<rest>.*)$',
    re.IGNORECASE | re.DOTALL,
)

PORT_SUFFIX = re.compile(r':\d{1,5}$')


@dataclass
class TargetValidationError:
    """Structured error information for target validation failures."""

    code: TargetErrorCode
    message: str
    details: dict


@dataclass
class TargetValidationResult:
    """Result of target validation."""

    valid: bool
    target: Optional[DiscoveryTarget]
    error: Optional[TargetValidationError]


class TargetValidator:
    """
    Validates and normalizes discovery targets.

    Handles:
    - Empty input rejection
    - Splitting URLs into host and check URL; bare domains get https://
    - Lowercasing and IDNA encoding of the host
    - Rejection of hosts with forbidden characters or without a TLD
    """

    def validate(self, raw_target: str) -> TargetValidationResult:
        """
        Validate a domain or URL entered by the operator.

        Args:
            raw_target: The raw input

        Returns:
            TargetValidationResult with the normalized target or an error
        """
        if not raw_target or not raw_target.strip():
            return self._error(
                TargetErrorCode.EMPTY_INPUT,
                "Enter a domain or URL to test",
                {"raw_input": raw_target},
            )

        text = raw_target.strip()

        # Bare input is treated as an https URL, so paths and ports are allowed
        has_scheme = URL_PATTERN.match(text) is not None
        match = URL_PATTERN.match(text if has_scheme else f"https://{text}")
        authority = match.group("authority")
        host = PORT_SUFFIX.sub("", authority)
        if not host:
            return self._error(
                TargetErrorCode.INVALID_URL,
                "URL has no host",
                {"raw_input": raw_target},
            )

        if has_scheme:
            check_url = text
        elif match.group("rest").strip("/") or host != authority:
            check_url = f"https://{text}"
        else:
            check_url = None

        if FORBIDDEN_HOST_CHARS.search(host):
            return self._error(
                TargetErrorCode.FORBIDDEN_CHARS,
                "Domain contains forbidden characters",
                {
                    "raw_input": raw_target,
                    "forbidden_chars": FORBIDDEN_HOST_CHARS.findall(host),
                },
            )

        try:
            domain = self.normalize_host(host)
        except ValidationError as e:
            return self._error(TargetErrorCode.IDNA_ERROR, e.message, e.details)

        labels = domain.split(".")
        if len(labels) < 2 or not all(labels):
            return self._error(
                TargetErrorCode.MISSING_TLD,
                f"'{domain}' is not a fully qualified domain",
                {"raw_input": raw_target, "domain": domain},
            )

        if check_url is None:
            check_url = f"https://{domain}/"

        return TargetValidationResult(
            valid=True,
            target=DiscoveryTarget(raw=raw_target, domain=domain, check_url=check_url),
            error=None,
        )

    def normalize_host(self, host: str) -> str:
        """
        Convert a host to canonical form (lowercase, IDNA-encoded).

        Raises:
            ValidationError: If IDNA encoding fails
        """
        host_lower = host.lower().rstrip(".")

        if any(ord(c) > 127 for c in host_lower):
            try:
                return idna.encode(host_lower, uts46=True).decode("ascii")
            except idna.IDNAError as e:
                raise ValidationError(
                    code=TargetErrorCode.IDNA_ERROR.value,
                    message=f"IDNA encoding failed: {e}",
                    details={"host": host, "idna_error": str(e)},
                )

        return host_lower

    def _error(self, code: TargetErrorCode, message: str, details: dict) -> TargetValidationResult:
        return TargetValidationResult(
            valid=False,
            target=None,
            error=TargetValidationError(code=code, message=message, details=details),
        )
