"""
Multi-source address resolution.

Resolves every hostname of the active domain set through three independent
channels and unions what they return:

1. the system resolver (``getaddrinfo``),
2. repeated direct DNS queries that follow alias (CNAME) chains hop by hop,
3. DNS-over-HTTPS queries for every host visited in the chain.

Hosts on known edge networks get more repetitions, queries pinned to public
resolvers, and client-subnet sampling, because those pools rotate quickly and
differ by region. No channel failure aborts resolution; the worst case is an
empty result, which the merge step treats as "keep the previous block".
"""

import ipaddress
from typing import Iterable, Optional, Union

from .aggregator import aggregate_ipv4
from .audit_logger import AuditLogger
from .config import AggregationConfig, ResolverConfig
from .dns_client import IterativeDNSChannel
from .doh_client import DoHClient
from .domain_validator import expand_domain_list, normalize, normalize_list
from .enums import LogLevel, RecordType
from .models import ResolvedAddressSet
from .system_resolver import SystemResolverChannel


LOOPBACK_ADDRESSES = frozenset({"0.0.0.0", "127.0.0.1", "::", "::1"})


def parse_address(value: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


class MultiSourceResolver:
    """
    Resolves domain sets to blockable addresses.

    Channels are injectable; any object with the matching coroutine
    (``lookup``/``query``) can stand in for the defaults.
    """

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        aggregation: Optional[AggregationConfig] = None,
        system_channel: Optional[SystemResolverChannel] = None,
        dns_channel: Optional[IterativeDNSChannel] = None,
        doh_channel: Optional[DoHClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            config: Resolver tuning (attempt counts, limits, channel switches)
            aggregation: /24 churn aggregation settings
            system_channel: Optional system resolver channel
            dns_channel: Optional iterative DNS channel
            doh_channel: Optional DNS-over-HTTPS channel
            logger: Optional audit logger for logging
        """
        self._config = config or ResolverConfig()
        self._aggregation = aggregation or AggregationConfig()
        self._logger = logger

        self._owns_doh = doh_channel is None
        self._system = system_channel or SystemResolverChannel(
            timeout_seconds=self._config.system_timeout_seconds, logger=logger
        )
        self._dns = dns_channel or IterativeDNSChannel(
            timeout_seconds=self._config.dns_timeout_seconds, logger=logger
        )
        self._doh = doh_channel or DoHClient(self._config.doh, logger=logger)

    async def __aenter__(self) -> "MultiSourceResolver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close channels created by this resolver."""
        if self._owns_doh:
            await self._doh.close()

    def is_aggressive(self, host: str) -> bool:
        """Hosts on rotating edge networks get the heavier sampling."""
        lowered = host.lower()
        return any(suffix in lowered for suffix in self._config.aggressive_suffixes)

    async def resolve(self, domains: Iterable[str]) -> ResolvedAddressSet:
        """
        Resolve a domain set through every enabled channel.

        Args:
            domains: Raw or canonical domain entries

        Returns:
            Union of all channel results with loopback addresses removed and
            IPv4 churn ranges attached
        """
        hosts = expand_domain_list(normalize_list(domains))
        ipv4: set[str] = set()
        ipv6: set[str] = set()

        for host in hosts:
            if self._config.use_system:
                for value in await self._system_lookup(host):
                    address = parse_address(value)
                    if address is None or str(address) in LOOPBACK_ADDRESSES:
                        continue
                    if address.version == 4:
                        ipv4.add(str(address))
                    else:
                        ipv6.add(str(address))

            ipv4.update(await self.resolve_chain(host, RecordType.A))
            ipv6.update(await self.resolve_chain(host, RecordType.AAAA))

        ipv4_cidrs: set[str] = set()
        if self._aggregation.enabled:
            ipv4_cidrs = aggregate_ipv4(ipv4, self._aggregation.min_addresses_per_prefix)

        result = ResolvedAddressSet(ipv4=ipv4, ipv6=ipv6, ipv4_cidrs=ipv4_cidrs)
        self._log(
            LogLevel.INFO,
            "Resolution finished",
            {
                "hosts": len(hosts),
                "ipv4": len(ipv4),
                "ipv6": len(ipv6),
                "ipv4_cidrs": sorted(ipv4_cidrs),
            },
        )
        return result

    async def resolve_chain(self, host: str, record_type: RecordType) -> list[str]:
        """
        Follow alias answers from ``host`` and collect addresses of one family.

        The number of distinct hosts visited is bounded by
        ``max_alias_expansions``; cycles stop at hosts already seen.
        """
        limit = self._config.max_alias_expansions
        wanted_version = 4 if record_type == RecordType.A else 6

        queue = [host]
        seen_hosts = {normalize(host) or host.lower()}
        addresses: list[str] = []

        while queue and len(seen_hosts) <= limit:
            current = queue.pop(0)

            for value in await self._query_host(current, record_type):
                address = parse_address(value)
                if address is not None:
                    text = str(address)
                    if (
                        address.version == wanted_version
                        and text not in LOOPBACK_ADDRESSES
                        and text not in addresses
                    ):
                        addresses.append(text)
                    continue

                alias = normalize(value)
                if alias is None or alias in seen_hosts or len(seen_hosts) >= limit:
                    continue
                seen_hosts.add(alias)
                queue.append(alias)

        return addresses

    async def _query_host(self, host: str, record_type: RecordType) -> list[str]:
        aggressive = self.is_aggressive(host)
        values: list[str] = []

        def collect(batch: list[str]) -> None:
            for value in batch:
                if value not in values:
                    values.append(value)

        if self._config.use_iterative:
            attempts = self._config.attempts_per_record
            if aggressive:
                attempts = max(attempts, self._config.aggressive_attempts_per_record)
            for _ in range(max(1, attempts)):
                collect(await self._dns_query(host, record_type))

            if aggressive:
                for _ in range(self._config.aggressive_resolver_rounds):
                    for nameserver in self._config.public_resolvers:
                        collect(await self._dns_query(host, record_type, nameserver))

        if self._config.use_doh:
            doh = self._config.doh
            attempts = doh.aggressive_attempts if aggressive else doh.attempts
            for _ in range(max(1, attempts)):
                collect(await self._doh_query(host, record_type, aggressive))

        return values

    # Channel boundary: a failing channel contributes nothing.

    async def _system_lookup(self, host: str) -> list[str]:
        try:
            return list(await self._system.lookup(host))
        except Exception as e:
            self._log_channel_failure("system", host, e)
            return []

    async def _dns_query(
        self,
        host: str,
        record_type: RecordType,
        nameserver: Optional[str] = None,
    ) -> list[str]:
        try:
            return list(await self._dns.query(host, record_type, nameserver=nameserver))
        except Exception as e:
            self._log_channel_failure("dns", host, e)
            return []

    async def _doh_query(self, host: str, record_type: RecordType, aggressive: bool) -> list[str]:
        try:
            return list(await self._doh.query(host, record_type, aggressive=aggressive))
        except Exception as e:
            self._log_channel_failure("doh", host, e)
            return []

    def _log_channel_failure(self, channel: str, host: str, error: Exception) -> None:
        self._log(
            LogLevel.DEBUG,
            f"Channel {channel} failed for {host}",
            {"channel": channel, "host": host, "error_type": type(error).__name__, "error_message": str(error)},
        )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "Resolver", message, data)
