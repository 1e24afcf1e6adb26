"""
Churn aggregation for rotating IPv4 address pools.

CDN-fronted names answer from large pools; blocking only the handful of
addresses seen during one resolution leaves the rest reachable. When several
addresses of one /24 show up, the whole /24 is blocked instead.
"""

import ipaddress
from collections import defaultdict
from typing import Iterable

DEFAULT_MIN_ADDRESSES_PER_PREFIX = 4


def aggregate_ipv4(
    addresses: Iterable[str],
    min_addresses_per_prefix: int = DEFAULT_MIN_ADDRESSES_PER_PREFIX,
) -> set[str]:
    """
    Derive ``a.b.c.0/24`` ranges for densely sampled /24 blocks.

    Args:
        addresses: IPv4 address literals; anything else is ignored
        min_addresses_per_prefix: Distinct addresses needed to emit a range

    Returns:
        Set of CIDR strings
    """
    groups: dict[str, set[str]] = defaultdict(set)

    for address in addresses:
        try:
            parsed = ipaddress.IPv4Address(address)
        except ValueError:
            continue
        network = ipaddress.IPv4Network(f"{parsed}/24", strict=False)
        groups[str(network)].add(str(parsed))

    return {
        prefix
        for prefix, members in groups.items()
        if len(members) >= min_addresses_per_prefix
    }
