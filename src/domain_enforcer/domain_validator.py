"""
Domain validation and normalization module.

Turns free-form user input (bare hostnames, URLs, ``user@host:port`` strings)
into canonical lowercase DNS names, or rejects it. Every name that reaches the
hosts file, the resolver, or the anchor signature passes through here.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

import idna

from .enums import DomainValidationErrorCode
from .exceptions import ValidationError


# Characters a canonical name may contain after IDNA conversion
ALLOWED_CHARS_PATTERN = re.compile(r"^[a-z0-9.-]+$")
FORBIDDEN_CHAR_PATTERN = re.compile(r"[^a-z0-9.-]")

WWW_PREFIX = "www."


@dataclass
class DomainValidationError:
    """Structured error information for domain validation failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict


@dataclass
class DomainValidationResult:
    """Result of domain validation operation."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]


class DomainValidator:
    """
    Validates and normalizes domain names.

    Handles:
    - Extraction of the host from URLs and ``user@host:port`` forms
    - Conversion to lowercase canonical form
    - IDNA encoding for international characters
    - Rejection of malformed names (no dot, ``..``, edge hyphens, bad chars)
    """

    def validate(self, raw_domain: str) -> DomainValidationResult:
        """
        Validate and normalize a domain string.

        Args:
            raw_domain: The raw domain string to validate

        Returns:
            DomainValidationResult with validation status and canonical form or error
        """
        value = (raw_domain or "").strip().lower()
        if not value:
            return self._failure(
                DomainValidationErrorCode.EMPTY_INPUT,
                "Domain input is empty",
                raw_domain,
            )

        value = self.extract_host(value)
        value = value.strip(".")

        if not value:
            return self._failure(
                DomainValidationErrorCode.EMPTY_INPUT,
                "Domain input has no host part",
                raw_domain,
            )

        if value == "localhost":
            return DomainValidationResult(valid=True, canonical_domain=value, error=None)

        if any(ord(c) > 127 for c in value):
            try:
                value = self.encode_idna(value)
            except ValidationError as e:
                return self._failure(
                    DomainValidationErrorCode.IDNA_ERROR,
                    e.message,
                    raw_domain,
                )

        if "." not in value:
            return self._failure(
                DomainValidationErrorCode.MISSING_DOT,
                "Domain must contain at least one dot",
                raw_domain,
            )

        if ".." in value:
            return self._failure(
                DomainValidationErrorCode.CONSECUTIVE_DOTS,
                "Domain contains an empty label",
                raw_domain,
            )

        if value.startswith("-") or value.endswith("-"):
            return self._failure(
                DomainValidationErrorCode.EDGE_HYPHEN,
                "Domain starts or ends with a hyphen",
                raw_domain,
            )

        if not ALLOWED_CHARS_PATTERN.match(value):
            result = self._failure(
                DomainValidationErrorCode.FORBIDDEN_CHARS,
                "Domain contains forbidden characters",
                raw_domain,
            )
            result.error.details["forbidden_chars"] = FORBIDDEN_CHAR_PATTERN.findall(value)
            return result

        return DomainValidationResult(valid=True, canonical_domain=value, error=None)

    @staticmethod
    def extract_host(value: str) -> str:
        """
        Strip scheme, path, userinfo and port from a lowercased input.

        Args:
            value: Trimmed, lowercased input

        Returns:
            The host portion (may still be invalid)
        """
        if "://" in value:
            try:
                host = urlparse(value).hostname
            except ValueError:
                host = None
            if host:
                value = host

        value = value.split("/", 1)[0]

        if "@" in value:
            value = value.rsplit("@", 1)[1]

        return value.split(":", 1)[0]

    @staticmethod
    def encode_idna(value: str) -> str:
        """
        Convert an internationalized host to its ASCII (A-label) form.

        Raises:
            ValidationError: If IDNA encoding fails
        """
        try:
            return idna.encode(value, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"domain": value, "idna_error": str(e)},
            )

    @staticmethod
    def _failure(
        code: DomainValidationErrorCode,
        message: str,
        raw_domain: str,
    ) -> DomainValidationResult:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(
                code=code,
                message=message,
                details={"raw_input": raw_domain},
            ),
        )


_VALIDATOR = DomainValidator()


def normalize(raw_domain: str) -> Optional[str]:
    """Return the canonical form of ``raw_domain`` or None when it is rejected."""
    return _VALIDATOR.validate(raw_domain).canonical_domain


def normalize_list(raw_domains: Iterable[str]) -> list[str]:
    """
    Normalize many entries, dropping rejects and duplicates.

    Order follows the first occurrence of each canonical name.
    """
    seen: set[str] = set()
    result: list[str] = []
    for raw in raw_domains:
        canonical = normalize(raw)
        if canonical is None or canonical in seen:
            continue
        seen.add(canonical)
        result.append(canonical)
    return result


def expand_hostnames(domain: str) -> list[str]:
    """
    Return the bare/``www.`` pair for a canonical domain, input first.

    The counterpart is omitted when it would not itself be a valid name
    (``www.com`` does not expand to ``com``).
    """
    if domain.startswith(WWW_PREFIX):
        counterpart = normalize(domain[len(WWW_PREFIX):])
    else:
        counterpart = f"{WWW_PREFIX}{domain}"

    if counterpart is None or counterpart == domain or "." not in counterpart:
        return [domain]
    return [domain, counterpart]


def expand_domain_list(domains: Iterable[str]) -> list[str]:
    """Expand every domain and deduplicate, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for domain in domains:
        for host in expand_hostnames(domain):
            if host not in seen:
                seen.add(host)
                result.append(host)
    return result


def collapse_expansions(hosts: Iterable[str]) -> list[str]:
    """
    Invert expand_domain_list for an expanded host list.

    A host is dropped when the bare/``www.`` counterpart it would have been
    expanded from was already kept, so the first form of each pair survives.
    """
    kept: list[str] = []
    covered: set[str] = set()
    for host in normalize_list(hosts):
        if host in covered:
            continue
        kept.append(host)
        covered.update(expand_hostnames(host))
    return kept
