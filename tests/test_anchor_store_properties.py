"""
Property-based tests for anchor file rendering and parsing.
"""

import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_enforcer.anchor_store import (
    HEADER_LINE,
    NO_ADDRESSES_LINE,
    AnchorStore,
    domain_signature,
    parse_anchor,
    render_anchor,
)
from domain_enforcer.models import ResolvedAddressSet


def public_ipv4() -> st.SearchStrategy[str]:
    return st.ip_addresses(v=4).map(str).filter(lambda a: a not in ("0.0.0.0", "127.0.0.1"))


def public_ipv6() -> st.SearchStrategy[str]:
    return st.ip_addresses(v=6).map(str).filter(lambda a: a not in ("::", "::1"))


def ipv4_cidr() -> st.SearchStrategy[str]:
    return st.tuples(
        st.integers(min_value=1, max_value=223),
        st.integers(min_value=0, max_value=255),
        st.integers(min_value=0, max_value=255),
    ).map(lambda t: f"{t[0]}.{t[1]}.{t[2]}.0/24")


@st.composite
def resolved_strategy(draw) -> ResolvedAddressSet:
    return ResolvedAddressSet(
        ipv4=draw(st.sets(public_ipv4(), max_size=8)),
        ipv6=draw(st.sets(public_ipv6(), max_size=8)),
        ipv4_cidrs=draw(st.sets(ipv4_cidr(), max_size=3)),
    )


signature_strategy = st.lists(
    st.sampled_from(["example.com", "www.example.com", "news.org", "video.net"]),
    min_size=1,
    max_size=4,
).map(domain_signature)


class TestAnchorRoundTripProperty:
    """The anchor file is the engine's only memory between cycles."""

    @given(
        resolved=resolved_strategy(),
        signature=signature_strategy,
        updated_at=st.integers(min_value=0, max_value=2**34),
    )
    @settings(max_examples=100)
    def test_parse_recovers_rendered_state(
        self,
        resolved: ResolvedAddressSet,
        signature: str,
        updated_at: int,
    ) -> None:
        """
        Property: *For any* address set, signature and timestamp, parsing the
        rendered anchor yields the same snapshot.
        """
        text = render_anchor(resolved, signature=signature, updated_at_epoch=updated_at)
        snapshot = parse_anchor(text)

        assert snapshot.resolved == resolved
        assert snapshot.domain_signature == signature
        assert snapshot.updated_at_epoch == updated_at

    @given(resolved=resolved_strategy())
    @settings(max_examples=100)
    def test_rules_follow_tables(self, resolved: ResolvedAddressSet) -> None:
        text = render_anchor(resolved, ipv4_table="t4", ipv6_table="t6")
        lines = text.splitlines()

        assert lines[0] == HEADER_LINE
        assert text.endswith("\n")
        assert ("block drop out quick inet to <t4>" in lines) == bool(resolved.ipv4_entries())
        assert ("block drop out quick inet6 to <t6>" in lines) == bool(resolved.ipv6_entries())
        assert (NO_ADDRESSES_LINE in lines) == resolved.is_empty


class TestAnchorExamples:
    """Concrete anchor texts."""

    def test_render_layout(self) -> None:
        resolved = ResolvedAddressSet(
            ipv4={"93.184.216.34", "23.1.2.3"},
            ipv6={"2606:2800:220:1:248:1893:25c8:1946"},
            ipv4_cidrs={"23.1.2.0/24"},
        )
        text = render_anchor(resolved, signature="example.com", updated_at_epoch=1700000000)
        assert text == (
            "# domain-enforcer generated PF rules\n"
            "# domain-enforcer domains: example.com\n"
            "# domain-enforcer updatedAt: 1700000000\n"
            "table <domain_enforcer_ipv4> persist { 23.1.2.0/24, 23.1.2.3, 93.184.216.34 }\n"
            "block drop out quick inet to <domain_enforcer_ipv4>\n"
            "table <domain_enforcer_ipv6> persist { 2606:2800:220:1:248:1893:25c8:1946 }\n"
            "block drop out quick inet6 to <domain_enforcer_ipv6>\n"
        )

    def test_empty_render_without_metadata(self) -> None:
        text = render_anchor(ResolvedAddressSet())
        assert text == f"{HEADER_LINE}\n{NO_ADDRESSES_LINE}\n"
        snapshot = parse_anchor(text)
        assert snapshot.resolved.is_empty
        assert snapshot.domain_signature is None
        assert snapshot.updated_at_epoch is None

    def test_parse_ignores_sinks_and_junk(self) -> None:
        text = (
            "table <x> persist { 0.0.0.0, 127.0.0.1, ::, ::1, 1.2.3.4, 10.0.0.0/abc, fe80::1 }\n"
            "# 5.6.7.8 in a comment\n"
            "# domain-enforcer updatedAt: not-a-number\n"
        )
        snapshot = parse_anchor(text)
        assert snapshot.resolved.ipv4 == {"1.2.3.4"}
        assert snapshot.resolved.ipv6 == {"fe80::1"}
        assert snapshot.resolved.ipv4_cidrs == set()
        assert snapshot.updated_at_epoch is None

    def test_parse_classifies_cidrs_by_family(self) -> None:
        snapshot = parse_anchor("table <a> persist { 23.1.2.0/24, 2001:db8::/32 }\n")
        assert snapshot.resolved.ipv4_cidrs == {"23.1.2.0/24"}
        assert snapshot.resolved.ipv6_cidrs == {"2001:db8::/32"}

    def test_signature_is_order_independent(self) -> None:
        assert domain_signature(["b.com", "A.com", "a.com"]) == "a.com,b.com"
        assert domain_signature([]) == ""


class TestAnchorStore:
    """Reading the live anchor file."""

    def test_missing_file_yields_empty_snapshot(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = AnchorStore(Path(tmp) / "absent.conf")
            assert store.read_text() is None
            snapshot = store.read_snapshot()
            assert snapshot.resolved.is_empty
            assert snapshot.domain_signature is None

    def test_reads_written_anchor(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "anchor.conf"
            resolved = ResolvedAddressSet(ipv4={"8.8.4.4"})
            path.write_text(render_anchor(resolved, "example.com", 42), encoding="utf-8")

            snapshot = AnchorStore(path).read_snapshot()
            assert snapshot.resolved == resolved
            assert snapshot.domain_signature == "example.com"
            assert snapshot.updated_at_epoch == 42
