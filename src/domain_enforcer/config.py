"""
Configuration dataclasses for the domain enforcer system.

This module defines all configuration structures used throughout the system,
including file locations, external tool paths, resolver tuning, anchor merge
policy, privileged transport, refresh cadence, and logging configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class PathsConfig:
    """Locations of the system files the engine manages."""

    hosts_path: Path = Path("/etc/hosts")
    anchor_path: Path = Path("/etc/pf.anchors/com.apple.domain-enforcer")
    anchor_name: str = "com.apple/domain-enforcer"
    ipv4_table: str = "domain_enforcer_ipv4"
    ipv6_table: str = "domain_enforcer_ipv6"
    temp_dir: Optional[Path] = None  # None: system temp directory


@dataclass
class ToolsConfig:
    """External commands invoked inside the privileged command chain."""

    cp: str = "/bin/cp"
    pfctl: str = "/sbin/pfctl"
    grep: str = "/usr/bin/grep"
    dscacheutil: str = "/usr/bin/dscacheutil"
    killall: str = "/usr/bin/killall"
    dns_responder_process: str = "mDNSResponder"


@dataclass
class DoHConfig:
    """DNS-over-HTTPS channel configuration."""

    google_endpoint: str = "https://dns.google/resolve"
    cloudflare_endpoint: str = "https://cloudflare-dns.com/dns-query"
    timeout_seconds: float = 2.0
    attempts: int = 1
    aggressive_attempts: int = 3
    ecs_subnets: list[str] = field(
        default_factory=lambda: [
            "0.0.0.0/0",
            "89.64.0.0/16",
            "95.100.0.0/16",
            "23.0.0.0/8",
            "2.16.0.0/13",
        ]
    )


@dataclass
class ResolverConfig:
    """Multi-source resolver tuning."""

    use_system: bool = True
    use_iterative: bool = True
    use_doh: bool = True
    system_timeout_seconds: float = 2.0
    dns_timeout_seconds: float = 1.0
    attempts_per_record: int = 4
    aggressive_attempts_per_record: int = 12
    max_alias_expansions: int = 24
    aggressive_suffixes: list[str] = field(
        default_factory=lambda: ["akamaiedge.net", "edgekey.net"]
    )
    public_resolvers: list[str] = field(
        default_factory=lambda: ["8.8.8.8", "1.1.1.1", "9.9.9.9", "208.67.222.222"]
    )
    aggressive_resolver_rounds: int = 4
    doh: DoHConfig = field(default_factory=DoHConfig)


@dataclass
class MergePolicyConfig:
    """Rolling-union policy for anchor state reconciliation."""

    max_age_seconds: int = 7 * 24 * 60 * 60
    max_entries_per_family: int = 4096


@dataclass
class AggregationConfig:
    """Churn aggregation of IPv4 addresses into /24 ranges."""

    enabled: bool = True
    min_addresses_per_prefix: int = 4


@dataclass
class TransportConfig:
    """Privileged execution adapter selection."""

    kind: str = "osascript"  # 'osascript', 'sudo', 'shell'
    timeout_seconds: float = 120.0
    osascript_path: str = "/usr/bin/osascript"
    sudo_path: str = "/usr/bin/sudo"
    shell_path: str = "/bin/sh"


@dataclass
class RetryConfig:
    """Backoff applied to automatic syncs after a failed cycle."""

    base_delay_seconds: float = 30.0
    max_delay_seconds: float = 600.0


@dataclass
class RefreshConfig:
    """Periodic refresh cadence while domains are active."""

    min_refresh_interval_seconds: float = 60.0
    tick_seconds: float = 60.0
    domains_file: Optional[Path] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    merge_policy: MergePolicyConfig = field(default_factory=MergePolicyConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    language: str = "en"  # 'de' or 'en'
    simulation_mode: bool = False
    startup_self_test: bool = False
