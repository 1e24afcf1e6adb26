"""
Property-based tests for domain validation module.

Uses Hypothesis for property-based testing to verify that every entry is
reduced to a canonical DNS name or rejected.
"""

import re
import string

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_enforcer.domain_validator import (
    DomainValidator,
    collapse_expansions,
    expand_domain_list,
    expand_hostnames,
    normalize,
    normalize_list,
)
from domain_enforcer.enums import DomainValidationErrorCode


CANONICAL_PATTERN = re.compile(r"^[a-z0-9.-]+$")
TLDS = ["de", "com", "net", "org", "eu", "io"]


# Labels cannot start or end with hyphen
def valid_ascii_label() -> st.SearchStrategy[str]:
    """Generate valid ASCII domain labels (no leading/trailing hyphens)."""
    alphanumeric = st.sampled_from(string.ascii_lowercase + string.digits)

    return st.one_of(
        alphanumeric,
        st.builds(
            lambda first, middle, last: first + middle + last,
            alphanumeric,
            st.text(
                alphabet=string.ascii_lowercase + string.digits + "-",
                min_size=0,
                max_size=10,
            ),
            alphanumeric,
        ),
    ).filter(lambda s: len(s) <= 63 and "--" not in s[:4])


def valid_ascii_domain() -> st.SearchStrategy[str]:
    """Generate valid ASCII domain names."""
    return st.builds(
        lambda label, tld: f"{label}.{tld}",
        valid_ascii_label(),
        st.sampled_from(TLDS),
    ).filter(lambda d: not d.startswith("www."))


@st.composite
def decorated_domain(draw) -> str:
    """Wrap a valid domain in scheme, userinfo, port, path, casing and dots."""
    domain = draw(valid_ascii_domain())
    if draw(st.booleans()):
        domain = domain.upper()
    scheme = draw(st.sampled_from(["", "http://", "https://", "HTTPS://"]))
    userinfo = draw(st.sampled_from(["", "user@", "user:pass@"])) if scheme else ""
    port = draw(st.sampled_from(["", ":80", ":8443"]))
    path = draw(st.sampled_from(["", "/", "/path", "/a/b?q=1"]))
    dots = draw(st.sampled_from(["", ".", ".."]))
    padding = draw(st.sampled_from(["", " ", "\t"]))
    return f"{padding}{scheme}{userinfo}{dots}{domain}{dots}{port}{path}{padding}"


def is_canonical(value: str) -> bool:
    if value == "localhost":
        return True
    return (
        bool(CANONICAL_PATTERN.match(value))
        and "." in value
        and ".." not in value
        and not value.startswith((".", "-"))
        and not value.endswith((".", "-"))
    )


class TestDomainNormalizationProperty:
    """Property-based tests for domain normalization."""

    @given(raw=st.text(max_size=40))
    @settings(max_examples=100)
    def test_output_is_canonical_or_none(self, raw: str) -> None:
        """
        Property: *For any* input, normalize returns None or a name that
        satisfies the canonical form (charset, a dot, no empty label, no edge
        hyphen).
        """
        result = normalize(raw)
        assert result is None or is_canonical(result), f"{raw!r} -> {result!r}"

    @given(raw=decorated_domain())
    @settings(max_examples=100)
    def test_normalization_is_idempotent(self, raw: str) -> None:
        """
        Property: *For any* URL-like entry built around a valid domain,
        normalizing the canonical form again yields the same value.
        """
        once = normalize(raw)
        assert once is not None, raw
        assert normalize(once) == once

    @given(domain=valid_ascii_domain())
    @settings(max_examples=100)
    def test_normalization_ignores_case_and_whitespace(self, domain: str) -> None:
        """
        Property: *For any* valid domain, case changes and surrounding
        whitespace do not change the canonical form.
        """
        for variant in (domain, domain.upper(), domain.swapcase(), f"  {domain}\t\n"):
            assert normalize(variant) == domain

    @given(
        domain=valid_ascii_domain(),
        scheme=st.sampled_from(["http", "https"]),
        port=st.integers(min_value=1, max_value=65535),
        path=st.text(alphabet=string.ascii_lowercase + "/?=&", max_size=12),
    )
    @settings(max_examples=100)
    def test_url_forms_reduce_to_host(self, domain: str, scheme: str, port: int, path: str) -> None:
        """
        Property: *For any* valid domain, URL and ``user@host:port`` forms
        normalize to the bare host.
        """
        assert normalize(f"{scheme}://{domain}/{path}") == domain
        assert normalize(f"{scheme}://user@{domain}:{port}/{path}") == domain
        assert normalize(f"{domain}/{path}") == domain
        assert normalize(f"user@{domain}:{port}") == domain

    @given(domain=valid_ascii_domain())
    @settings(max_examples=100)
    def test_leading_and_trailing_dots_are_dropped(self, domain: str) -> None:
        assert normalize(f".{domain}.") == domain

    def test_localhost_is_accepted(self) -> None:
        assert normalize("LOCALHOST") == "localhost"

    def test_internationalized_name_is_converted_to_a_label(self) -> None:
        assert normalize("Bücher.de") == "xn--bcher-kva.de"
        assert normalize("https://münchen.de/path") == "xn--mnchen-3ya.de"

    def test_rejections(self) -> None:
        for raw in ["", "   ", "nodot", "a..b", "-a.com", "a.com-", "a_b.com", "exa mple.com", "://", "..."]:
            assert normalize(raw) is None, raw


class TestValidationErrorCodes:
    """Structured error codes explain each rejection."""

    def test_error_codes(self) -> None:
        validator = DomainValidator()
        cases = {
            "": DomainValidationErrorCode.EMPTY_INPUT,
            "/path": DomainValidationErrorCode.EMPTY_INPUT,
            "intranet": DomainValidationErrorCode.MISSING_DOT,
            "a..com": DomainValidationErrorCode.CONSECUTIVE_DOTS,
            "-bad.com": DomainValidationErrorCode.EDGE_HYPHEN,
            "bad_name.com": DomainValidationErrorCode.FORBIDDEN_CHARS,
        }
        for raw, code in cases.items():
            result = validator.validate(raw)
            assert not result.valid, raw
            assert result.canonical_domain is None
            assert result.error.code == code, f"{raw!r}: {result.error.code}"
            assert result.error.details["raw_input"] == raw

    def test_forbidden_chars_are_reported(self) -> None:
        result = DomainValidator().validate("ex!ample.com")
        assert result.error.code == DomainValidationErrorCode.FORBIDDEN_CHARS
        assert "!" in result.error.details["forbidden_chars"]

    def test_valid_result(self) -> None:
        result = DomainValidator().validate("Example.COM")
        assert result.valid
        assert result.canonical_domain == "example.com"
        assert result.error is None


class TestNormalizeList:
    """Batch normalization drops rejects and duplicates."""

    @given(domains=st.lists(valid_ascii_domain(), max_size=10))
    @settings(max_examples=100)
    def test_dedupes_in_first_seen_order(self, domains: list[str]) -> None:
        noisy = []
        for domain in domains:
            noisy.extend([domain.upper(), "not valid", domain])

        result = normalize_list(noisy)
        expected = list(dict.fromkeys(domains))
        assert result == expected


class TestHostnameExpansion:
    """Bare and ``www.`` forms are expanded symmetrically."""

    @given(domain=valid_ascii_domain())
    @settings(max_examples=100)
    def test_expansion_is_symmetric(self, domain: str) -> None:
        """
        Property: *For any* bare domain, expansion yields the domain and its
        ``www.`` form, and expanding the ``www.`` form yields the same pair.
        """
        pair = expand_hostnames(domain)
        assert pair == [domain, f"www.{domain}"]
        assert set(expand_hostnames(f"www.{domain}")) == set(pair)

    def test_www_of_tld_does_not_expand_to_tld(self) -> None:
        assert expand_hostnames("www.com") == ["www.com"]

    @given(domains=st.lists(valid_ascii_domain(), unique=True, max_size=8))
    @settings(max_examples=100)
    def test_collapse_inverts_expansion(self, domains: list[str]) -> None:
        """
        Property: *For any* list of distinct bare domains, collapsing the
        expanded host list recovers the original list.
        """
        expanded = expand_domain_list(domains)
        assert len(expanded) == 2 * len(domains)
        assert collapse_expansions(expanded) == domains

    def test_collapse_keeps_first_form(self) -> None:
        assert collapse_expansions(["www.example.com", "example.com", "other.org"]) == [
            "www.example.com",
            "other.org",
        ]
