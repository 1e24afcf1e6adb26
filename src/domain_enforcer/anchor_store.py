"""
Packet-filter anchor file rendering and parsing.

The anchor file is both the firewall rule set and the engine's only memory
between cycles: a comment header records which domain set produced it and
when, and the address tables record what was blocked. Reading it back yields
an AnchorSnapshot for the merge step.
"""

import ipaddress
import re
from pathlib import Path
from typing import Iterable, Optional

from .domain_validator import normalize_list
from .models import AnchorSnapshot, ResolvedAddressSet


HEADER_LINE = "# domain-enforcer generated PF rules"
SIGNATURE_PREFIX = "# domain-enforcer domains: "
UPDATED_AT_PREFIX = "# domain-enforcer updatedAt: "
NO_ADDRESSES_LINE = "# no resolvable addresses at apply time"

DEFAULT_IPV4_TABLE = "domain_enforcer_ipv4"
DEFAULT_IPV6_TABLE = "domain_enforcer_ipv6"

# Sink and loopback literals never count as blocked addresses
IGNORED_ADDRESSES = frozenset({"0.0.0.0", "127.0.0.1", "::", "::1"})

_TOKEN_SEPARATORS = re.compile(r"[{} ,\n\t\r]+")


def domain_signature(domains: Iterable[str]) -> str:
    """Order-independent fingerprint of a domain set."""
    return ",".join(sorted(normalize_list(domains)))


def render_anchor(
    resolved: ResolvedAddressSet,
    signature: Optional[str] = None,
    updated_at_epoch: Optional[int] = None,
    ipv4_table: str = DEFAULT_IPV4_TABLE,
    ipv6_table: str = DEFAULT_IPV6_TABLE,
) -> str:
    """
    Render the anchor file text.

    Args:
        resolved: Effective addresses and ranges to block
        signature: Domain signature to record, omitted when None or empty
        updated_at_epoch: Apply timestamp to record, omitted when None
        ipv4_table: pf table name for IPv4 entries
        ipv6_table: pf table name for IPv6 entries

    Returns:
        Anchor text terminated by a newline
    """
    lines = [HEADER_LINE]
    if signature:
        lines.append(f"{SIGNATURE_PREFIX}{signature}")
    if updated_at_epoch is not None:
        lines.append(f"{UPDATED_AT_PREFIX}{updated_at_epoch}")

    ipv4_entries = sorted(resolved.ipv4_entries())
    if ipv4_entries:
        lines.append(f"table <{ipv4_table}> persist {{ {', '.join(ipv4_entries)} }}")
        lines.append(f"block drop out quick inet to <{ipv4_table}>")

    ipv6_entries = sorted(resolved.ipv6_entries())
    if ipv6_entries:
        lines.append(f"table <{ipv6_table}> persist {{ {', '.join(ipv6_entries)} }}")
        lines.append(f"block drop out quick inet6 to <{ipv6_table}>")

    if not ipv4_entries and not ipv6_entries:
        lines.append(NO_ADDRESSES_LINE)

    return "\n".join(lines) + "\n"


def parse_anchor(text: str) -> AnchorSnapshot:
    """
    Recover the snapshot recorded in anchor text.

    Header comments supply the signature and timestamp; address tokens are
    collected from every non-comment line and classified by family.
    """
    signature: Optional[str] = None
    updated_at: Optional[int] = None
    resolved = ResolvedAddressSet()

    for raw_line in text.splitlines():
        line = raw_line.strip()

        if line.startswith(SIGNATURE_PREFIX):
            signature = line[len(SIGNATURE_PREFIX):]
            continue
        if line.startswith(UPDATED_AT_PREFIX):
            try:
                updated_at = int(line[len(UPDATED_AT_PREFIX):])
            except ValueError:
                updated_at = None
            continue
        if line.startswith("#"):
            continue

        for token in _TOKEN_SEPARATORS.split(line):
            if token:
                _classify_token(token, resolved)

    return AnchorSnapshot(
        resolved=resolved,
        domain_signature=signature,
        updated_at_epoch=updated_at,
    )


def _classify_token(token: str, resolved: ResolvedAddressSet) -> None:
    if "/" in token:
        if not token.split("/", 1)[1].isdigit():
            return
        try:
            network = ipaddress.ip_network(token, strict=False)
        except ValueError:
            return
        if network.version == 4:
            resolved.ipv4_cidrs.add(token)
        else:
            resolved.ipv6_cidrs.add(token)
        return

    try:
        address = ipaddress.ip_address(token)
    except ValueError:
        return
    if token in IGNORED_ADDRESSES:
        return
    if address.version == 4:
        resolved.ipv4.add(token)
    else:
        resolved.ipv6.add(token)


class AnchorStore:
    """Reads the live anchor file."""

    def __init__(self, anchor_path: Path) -> None:
        self._anchor_path = Path(anchor_path)

    @property
    def anchor_path(self) -> Path:
        return self._anchor_path

    def read_text(self) -> Optional[str]:
        """Return the anchor file content, or None when it is absent or unreadable."""
        try:
            return self._anchor_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def read_snapshot(self) -> AnchorSnapshot:
        """A missing or unreadable anchor file yields an empty snapshot."""
        text = self.read_text()
        if text is None:
            return AnchorSnapshot()
        return parse_anchor(text)
