"""
Data models for the domain enforcer system.

This module defines the data structures that flow through a synchronization
cycle: resolved address sets, anchor snapshots, privileged command results,
and the outcome of an apply transaction.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import FailureReason, SyncOutcome


@dataclass
class ResolvedAddressSet:
    """Addresses and aggregated ranges to block, per address family."""

    ipv4: set[str] = field(default_factory=set)
    ipv6: set[str] = field(default_factory=set)
    ipv4_cidrs: set[str] = field(default_factory=set)
    ipv6_cidrs: set[str] = field(default_factory=set)  # never populated by aggregation

    @property
    def is_empty(self) -> bool:
        return not (self.ipv4 or self.ipv6 or self.ipv4_cidrs or self.ipv6_cidrs)

    def ipv4_entries(self) -> set[str]:
        """Addresses and ranges that go into the IPv4 table."""
        return self.ipv4 | self.ipv4_cidrs

    def ipv6_entries(self) -> set[str]:
        """Addresses and ranges that go into the IPv6 table."""
        return self.ipv6 | self.ipv6_cidrs

    def to_dict(self) -> dict:
        return {
            "ipv4": sorted(self.ipv4),
            "ipv6": sorted(self.ipv6),
            "ipv4_cidrs": sorted(self.ipv4_cidrs),
            "ipv6_cidrs": sorted(self.ipv6_cidrs),
        }


@dataclass
class AnchorSnapshot:
    """State recovered from the anchor file written by a previous apply."""

    resolved: ResolvedAddressSet = field(default_factory=ResolvedAddressSet)
    domain_signature: Optional[str] = None
    updated_at_epoch: Optional[int] = None


@dataclass
class CommandResult:
    """Outcome of one privileged command invocation."""

    exit_status: int
    stdout: str = ""
    stderr: str = ""
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.exit_status == 0 and not self.cancelled


@dataclass
class ApplyResult:
    """Outcome of an apply transaction."""

    success: bool
    failure_reason: Optional[FailureReason] = None
    message: str = ""
    hosts_changed: bool = False
    anchor_changed: bool = False
    addresses: ResolvedAddressSet = field(default_factory=ResolvedAddressSet)
    command: Optional[str] = None
    simulated: bool = False


@dataclass
class SyncResult:
    """Outcome of one orchestrator cycle."""

    outcome: SyncOutcome
    domains: list[str]
    apply_result: Optional[ApplyResult] = None
    message: str = ""
    skip_reason: Optional[str] = None  # "in_progress", "unchanged", "backoff"
    timestamp: str = ""
