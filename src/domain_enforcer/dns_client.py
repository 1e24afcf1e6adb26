"""
Iterative DNS lookup channel.

Queries A or AAAA records with dnspython and returns everything the answer
section carries: address literals and the alias (CNAME) targets that led to
them. The resolver follows the alias targets itself, so chains whose final
hop the system resolver would hide still get explored.
"""

from typing import Optional

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from .audit_logger import AuditLogger
from .enums import LogLevel, RecordType


class IterativeDNSChannel:
    """
    Direct DNS queries with alias-chain visibility.

    One query uses a single short timeout and one try; repetition is decided
    by the caller.
    """

    def __init__(
        self,
        timeout_seconds: float = 1.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the channel.

        Args:
            timeout_seconds: Lifetime of one query
            logger: Optional audit logger for logging
        """
        self._timeout = timeout_seconds
        self._logger = logger
        self._default_resolver: Optional[dns.asyncresolver.Resolver] = None
        self._pinned_resolvers: dict[str, dns.asyncresolver.Resolver] = {}

    def _resolver_for(self, nameserver: Optional[str]) -> dns.asyncresolver.Resolver:
        if nameserver is None:
            if self._default_resolver is None:
                resolver = dns.asyncresolver.Resolver()
                resolver.lifetime = self._timeout
                self._default_resolver = resolver
            return self._default_resolver

        resolver = self._pinned_resolvers.get(nameserver)
        if resolver is None:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = [nameserver]
            resolver.lifetime = self._timeout
            self._pinned_resolvers[nameserver] = resolver
        return resolver

    async def query(
        self,
        host: str,
        record_type: RecordType,
        nameserver: Optional[str] = None,
    ) -> list[str]:
        """
        Query one record type for a host.

        Args:
            host: Hostname to query
            record_type: A or AAAA
            nameserver: Optional resolver address to ask instead of the system ones

        Returns:
            Address literals and alias targets from the answer; empty on failure
        """
        try:
            resolver = self._resolver_for(nameserver)
            answer = await resolver.resolve(
                host,
                record_type.value,
                lifetime=self._timeout,
                search=False,
                raise_on_no_answer=False,
            )
        except (dns.exception.DNSException, OSError, ValueError) as e:
            if self._logger:
                self._logger.log(
                    LogLevel.DEBUG,
                    "DNSClient",
                    f"{record_type.value} query failed for {host}",
                    {"host": host, "nameserver": nameserver, "error_type": type(e).__name__},
                )
            return []

        return self._answer_values(answer)

    @staticmethod
    def _answer_values(answer: dns.resolver.Answer) -> list[str]:
        values: list[str] = []
        response = answer.response
        if response is None:
            return values

        for rrset in response.answer:
            for rdata in rrset:
                if rrset.rdtype == dns.rdatatype.CNAME:
                    value = rdata.target.to_text(omit_final_dot=True)
                elif rrset.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
                    value = rdata.address
                else:
                    continue
                if value not in values:
                    values.append(value)
        return values
