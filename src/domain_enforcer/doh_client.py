"""
DNS-over-HTTPS channel.

Uses the JSON APIs of Google Public DNS and Cloudflare. Edge-network hosts
are sampled with several EDNS client-subnet hints on the Google endpoint so
answers tailored to other regions are seen too.
"""

from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .config import DoHConfig
from .enums import LogLevel, RecordType


DNS_JSON_ACCEPT = "application/dns-json"


class DoHClient:
    """
    Async DNS-over-HTTPS client.

    Every request failure (timeout, connection error, non-200 status,
    malformed body) contributes no values.
    """

    def __init__(
        self,
        config: Optional[DoHConfig] = None,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the DoH client.

        Args:
            config: Endpoints, timeout, and client-subnet hints
            logger: Optional audit logger for logging
            transport: Optional httpx transport (used for testing)
        """
        self._config = config or DoHConfig()
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DoHClient":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def build_requests(
        self,
        host: str,
        record_type: RecordType,
        aggressive: bool = False,
    ) -> list[tuple[str, dict, dict]]:
        """
        List the (url, params, headers) requests for one lookup.

        Args:
            host: Hostname to query
            record_type: A or AAAA
            aggressive: Add one Google request per client-subnet hint

        Returns:
            Google request(s) first, Cloudflare last
        """
        base_params = {"name": host, "type": record_type.value}
        requests = [(self._config.google_endpoint, dict(base_params), {})]

        if aggressive:
            for subnet in self._config.ecs_subnets:
                params = dict(base_params)
                params["edns_client_subnet"] = subnet
                requests.append((self._config.google_endpoint, params, {}))

        requests.append(
            (self._config.cloudflare_endpoint, dict(base_params), {"Accept": DNS_JSON_ACCEPT})
        )
        return requests

    async def query(
        self,
        host: str,
        record_type: RecordType,
        aggressive: bool = False,
    ) -> list[str]:
        """
        Query all endpoints for a host.

        Returns:
            Distinct answer ``data`` values (addresses and alias targets)
        """
        values: list[str] = []
        for url, params, headers in self.build_requests(host, record_type, aggressive):
            for value in await self._fetch(url, params, headers):
                if value not in values:
                    values.append(value)
        return values

    async def _fetch(self, url: str, params: dict, headers: dict) -> list[str]:
        client = self._ensure_client()
        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            self._log_failure(url, params, type(e).__name__)
            return []

        if response.status_code != 200:
            self._log_failure(url, params, f"http_{response.status_code}")
            return []

        try:
            payload = response.json()
        except ValueError:
            self._log_failure(url, params, "invalid_json")
            return []

        return self.parse_answer(payload)

    @staticmethod
    def parse_answer(payload: object) -> list[str]:
        """Extract the non-empty ``Answer[].data`` strings of a DNS JSON body."""
        if not isinstance(payload, dict):
            return []
        answers = payload.get("Answer")
        if not isinstance(answers, list):
            return []

        values: list[str] = []
        for entry in answers:
            if not isinstance(entry, dict):
                continue
            data = entry.get("data")
            if isinstance(data, str) and data.strip():
                values.append(data.strip())
        return values

    def _log_failure(self, url: str, params: dict, reason: str) -> None:
        if self._logger:
            self._logger.log(
                LogLevel.DEBUG,
                "DoHClient",
                f"DoH request failed: {reason}",
                {"url": url, "name": params.get("name"), "type": params.get("type")},
            )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
