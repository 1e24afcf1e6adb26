"""
Anchor state reconciliation.

Decides which addresses the next anchor blocks, given the addresses resolved
this cycle and the snapshot left by the previous apply. A resolution outage
never lifts a block, and addresses that rotate out of DNS answers stay
blocked for a bounded window while the domain set is unchanged.
"""

from typing import Optional

from .config import MergePolicyConfig
from .models import AnchorSnapshot, ResolvedAddressSet


def is_snapshot_fresh(
    snapshot: AnchorSnapshot,
    now_epoch: int,
    max_age_seconds: int,
) -> bool:
    """A snapshot without a timestamp counts as fresh."""
    if snapshot.updated_at_epoch is None:
        return True
    return now_epoch - snapshot.updated_at_epoch <= max_age_seconds


def merge_entries(newest: set[str], previous: set[str], max_entries: int) -> set[str]:
    """
    Union two entry sets under a size cap, newest entries first.

    Both sides are taken in sorted order so the result is deterministic when
    the cap truncates.
    """
    if len(newest) >= max_entries:
        return set(sorted(newest)[:max_entries])

    ordered = sorted(newest)
    for value in sorted(previous - newest):
        if len(ordered) >= max_entries:
            break
        ordered.append(value)
    return set(ordered)


def merge_resolved(
    fresh: ResolvedAddressSet,
    previous: AnchorSnapshot,
    current_signature: str,
    now_epoch: int,
    policy: Optional[MergePolicyConfig] = None,
) -> ResolvedAddressSet:
    """
    Compute the effective address set for the next anchor.

    Args:
        fresh: Addresses resolved during this cycle
        previous: Snapshot parsed from the live anchor file
        current_signature: Signature of the domain set being applied
        now_epoch: Current time in seconds since the epoch
        policy: Freshness window and per-family cap

    Returns:
        ``previous`` addresses when nothing resolved, a capped rolling union
        when the domain set matches a fresh snapshot, otherwise ``fresh``
    """
    policy = policy or MergePolicyConfig()

    if fresh.is_empty:
        return _copy(previous.resolved)

    if previous.domain_signature == current_signature and is_snapshot_fresh(
        previous, now_epoch, policy.max_age_seconds
    ):
        cap = policy.max_entries_per_family
        return ResolvedAddressSet(
            ipv4=merge_entries(fresh.ipv4, previous.resolved.ipv4, cap),
            ipv6=merge_entries(fresh.ipv6, previous.resolved.ipv6, cap),
            ipv4_cidrs=merge_entries(fresh.ipv4_cidrs, previous.resolved.ipv4_cidrs, cap),
            ipv6_cidrs=merge_entries(fresh.ipv6_cidrs, previous.resolved.ipv6_cidrs, cap),
        )

    return _copy(fresh)


def _copy(resolved: ResolvedAddressSet) -> ResolvedAddressSet:
    return ResolvedAddressSet(
        ipv4=set(resolved.ipv4),
        ipv6=set(resolved.ipv6),
        ipv4_cidrs=set(resolved.ipv4_cidrs),
        ipv6_cidrs=set(resolved.ipv6_cidrs),
    )
