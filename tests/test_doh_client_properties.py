"""
Tests for the DNS-over-HTTPS channel.

Uses httpx.MockTransport so no network access is needed.
"""

import asyncio
import json

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_enforcer.config import DoHConfig
from domain_enforcer.doh_client import DNS_JSON_ACCEPT, DoHClient
from domain_enforcer.enums import RecordType


def answer_body(*values: str) -> dict:
    return {"Status": 0, "Answer": [{"name": "x.", "type": 1, "data": v} for v in values]}


def run_query(handler, host="example.com", record_type=RecordType.A, aggressive=False, config=None):
    async def _run():
        async with DoHClient(config or DoHConfig(), transport=httpx.MockTransport(handler)) as client:
            return await client.query(host, record_type, aggressive=aggressive)

    return asyncio.run(_run())


class TestRequestPlan:
    """Which requests one lookup issues."""

    def test_plain_lookup(self) -> None:
        requests = DoHClient().build_requests("example.com", RecordType.AAAA)
        assert requests == [
            ("https://dns.google/resolve", {"name": "example.com", "type": "AAAA"}, {}),
            (
                "https://cloudflare-dns.com/dns-query",
                {"name": "example.com", "type": "AAAA"},
                {"Accept": DNS_JSON_ACCEPT},
            ),
        ]

    @given(subnets=st.lists(st.sampled_from(["0.0.0.0/0", "23.0.0.0/8", "2.16.0.0/13"]), max_size=5))
    @settings(max_examples=50)
    def test_aggressive_lookup_samples_every_subnet(self, subnets: list[str]) -> None:
        """
        Property: *For any* subnet list, an aggressive lookup issues one Google
        request per subnet between the plain Google and Cloudflare requests.
        """
        client = DoHClient(DoHConfig(ecs_subnets=subnets))
        requests = client.build_requests("a.akamaiedge.net", RecordType.A, aggressive=True)

        assert len(requests) == len(subnets) + 2
        assert "edns_client_subnet" not in requests[0][1]
        assert [params["edns_client_subnet"] for _, params, _ in requests[1:-1]] == subnets
        assert requests[-1][2] == {"Accept": DNS_JSON_ACCEPT}


class TestQuery:
    """Answers are merged and failures contribute nothing."""

    def test_answers_from_both_providers_are_merged(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "dns.google":
                return httpx.Response(200, json=answer_body("93.184.216.34", "edge.example.net."))
            assert request.headers["accept"] == DNS_JSON_ACCEPT
            return httpx.Response(200, json=answer_body("93.184.216.34", "93.184.216.35"))

        values = run_query(handler)
        assert values == ["93.184.216.34", "edge.example.net.", "93.184.216.35"]

    def test_query_parameters(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={})

        run_query(handler, host="example.org", record_type=RecordType.AAAA)
        assert seen == [{"name": "example.org", "type": "AAAA"}] * 2

    def test_non_200_and_bad_json_are_ignored(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "dns.google":
                return httpx.Response(503, json=answer_body("1.1.1.1"))
            return httpx.Response(200, content=b"not json")

        assert run_query(handler) == []

    def test_transport_errors_are_ignored(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "dns.google":
                raise httpx.ConnectTimeout("timed out", request=request)
            return httpx.Response(200, json=answer_body("2606:4700::1"))

        assert run_query(handler, record_type=RecordType.AAAA) == ["2606:4700::1"]


class TestParseAnswer:
    """Only non-empty ``data`` strings are taken."""

    def test_malformed_bodies(self) -> None:
        for payload in (None, [], "x", {"Answer": "x"}, {"Answer": [1, {"data": 5}, {"data": "  "}]}):
            assert DoHClient.parse_answer(payload) == []

    def test_data_is_stripped(self) -> None:
        payload = json.loads('{"Answer": [{"data": " 1.2.3.4 "}, {"type": 5}]}')
        assert DoHClient.parse_answer(payload) == ["1.2.3.4"]
