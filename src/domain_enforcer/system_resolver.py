"""
System resolver channel.

Asks the operating system's resolver (``getaddrinfo``) through the event
loop, bounded by a timeout. Any failure yields no addresses.
"""

import asyncio
import socket
from typing import Optional

from .audit_logger import AuditLogger
from .enums import LogLevel


class SystemResolverChannel:
    """Address lookup through the platform resolver."""

    def __init__(
        self,
        timeout_seconds: float = 2.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._logger = logger

    async def lookup(self, host: str) -> list[str]:
        """
        Resolve ``host`` to IPv4 and IPv6 address literals.

        Args:
            host: Canonical hostname

        Returns:
            Distinct addresses in resolver order; empty on any failure
        """
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(
                    host,
                    None,
                    family=socket.AF_UNSPEC,
                    type=socket.SOCK_STREAM,
                    proto=socket.IPPROTO_TCP,
                ),
                timeout=self._timeout,
            )
        except (OSError, asyncio.TimeoutError, UnicodeError) as e:
            if self._logger:
                self._logger.log(
                    LogLevel.DEBUG,
                    "SystemResolver",
                    f"getaddrinfo failed for {host}",
                    {"host": host, "error_type": type(e).__name__},
                )
            return []

        addresses: list[str] = []
        for family, _, _, _, sockaddr in infos:
            if family not in (socket.AF_INET, socket.AF_INET6):
                continue
            # IPv6 link-local results may carry a %scope suffix
            address = str(sockaddr[0]).split("%", 1)[0]
            if address not in addresses:
                addresses.append(address)
        return addresses
