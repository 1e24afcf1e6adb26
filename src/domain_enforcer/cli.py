"""
Command-line interface for the domain enforcer system.

This module provides the main CLI entry point with commands for:
- apply: Block a set of domains (hosts section plus firewall anchor)
- clear: Remove every block
- refresh: Re-resolve and re-apply the domains already in the hosts section
- watch: Keep a domains file enforced, refreshing periodically
- resolve: Show the addresses a domain set would block, without applying
- status: Show what is currently enforced
- config: Configuration management
- self-test: Verify configuration, local tools and DoH endpoints
"""

import argparse
import asyncio
import dataclasses
import json
import os
import signal
import sys
import time
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from . import __version__, hosts_renderer
from .anchor_store import AnchorStore
from .apply_transaction import ApplyTransaction
from .audit_logger import AuditLogger
from .config import (
    AggregationConfig,
    DoHConfig,
    LoggingConfig,
    MergePolicyConfig,
    PathsConfig,
    RefreshConfig,
    ResolverConfig,
    RetryConfig,
    SystemConfig,
    ToolsConfig,
    TransportConfig,
)
from .domain_sources import (
    DomainSource,
    FileDomainSource,
    HostsSectionDomainSource,
    StaticDomainSource,
)
from .domain_validator import DomainValidator, normalize_list
from .enums import FailureReason, SyncOutcome
from .exceptions import ConfigurationError, DomainSourceError
from .i18n import SUPPORTED_LANGUAGES, get_message
from .merger import is_snapshot_fresh
from .models import SyncResult
from .orchestrator import SyncOrchestrator, user_message
from .resolver import MultiSourceResolver
from .scheduler import RefreshScheduler
from .self_test import SelfTest, run_self_test


DEFAULT_CONFIG_PATH = Path.home() / ".domain_enforcer" / "config.json"

# Environment variables that override the loaded configuration
ENV_HOSTS_PATH = "DOMAIN_ENFORCER_HOSTS_PATH"
ENV_ANCHOR_PATH = "DOMAIN_ENFORCER_ANCHOR_PATH"
ENV_ANCHOR_NAME = "DOMAIN_ENFORCER_ANCHOR_NAME"
ENV_LANGUAGE = "DOMAIN_ENFORCER_LANGUAGE"
ENV_TRANSPORT = "DOMAIN_ENFORCER_TRANSPORT"

# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_AUTHORIZATION_CANCELED = 2


def create_default_config(
    simulation_mode: bool = False,
    language: str = "en",
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no privileged command runs)
        language: Output language ('de' or 'en')

    Returns:
        SystemConfig with default settings
    """
    return SystemConfig(
        logging=LoggingConfig(
            level="info",
            output_format="text",
        ),
        language=language,
        simulation_mode=simulation_mode,
        startup_self_test=False,
    )


def _section(cls: type, data: Optional[Mapping[str, Any]], path_fields: tuple = ()) -> Any:
    """Build a config dataclass from a JSON object, ignoring unknown keys."""
    data = data or {}
    known = {f.name for f in dataclasses.fields(cls)}
    values = {key: value for key, value in data.items() if key in known}
    for name in path_fields:
        if values.get(name) is not None:
            values[name] = Path(values[name])
    return cls(**values)


def config_from_dict(data: Mapping[str, Any]) -> SystemConfig:
    """
    Build a SystemConfig from parsed JSON.

    Missing sections and keys fall back to their defaults.

    Raises:
        TypeError: If a section is not a JSON object
    """
    resolver_data = dict(data.get("resolver", {}))
    doh = _section(DoHConfig, resolver_data.pop("doh", None))
    resolver = _section(ResolverConfig, resolver_data)
    resolver.doh = doh

    return SystemConfig(
        paths=_section(PathsConfig, data.get("paths"), ("hosts_path", "anchor_path", "temp_dir")),
        tools=_section(ToolsConfig, data.get("tools")),
        resolver=resolver,
        merge_policy=_section(MergePolicyConfig, data.get("merge_policy")),
        aggregation=_section(AggregationConfig, data.get("aggregation")),
        transport=_section(TransportConfig, data.get("transport")),
        retry=_section(RetryConfig, data.get("retry")),
        refresh=_section(RefreshConfig, data.get("refresh"), ("domains_file",)),
        logging=_section(LoggingConfig, data.get("logging")),
        language=data.get("language", "en"),
        simulation_mode=data.get("simulation_mode", False),
        startup_self_test=data.get("startup_self_test", False),
    )


def config_to_dict(config: SystemConfig) -> dict:
    """Serialize a SystemConfig to JSON-compatible data."""
    def convert(value: Any) -> Any:
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, dict):
            return {key: convert(item) for key, item in value.items()}
        if isinstance(value, list):
            return [convert(item) for item in value]
        return value

    return convert(dataclasses.asdict(config))


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError("top-level value must be an object")
        return config_from_dict(data)

    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None
    except OSError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def apply_env_overrides(
    config: SystemConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> SystemConfig:
    """
    Apply DOMAIN_ENFORCER_* environment variables on top of a configuration.

    Args:
        config: Configuration to update in place
        environ: Variables to read (defaults to os.environ)

    Returns:
        The same configuration object
    """
    env = os.environ if environ is None else environ

    hosts_path = env.get(ENV_HOSTS_PATH, "").strip()
    if hosts_path:
        config.paths.hosts_path = Path(hosts_path)

    anchor_path = env.get(ENV_ANCHOR_PATH, "").strip()
    if anchor_path:
        config.paths.anchor_path = Path(anchor_path)

    anchor_name = env.get(ENV_ANCHOR_NAME, "").strip()
    if anchor_name:
        config.paths.anchor_name = anchor_name

    language = env.get(ENV_LANGUAGE, "").strip().lower()
    if language in SUPPORTED_LANGUAGES:
        config.language = language

    transport = env.get(ENV_TRANSPORT, "").strip().lower()
    if transport:
        config.transport.kind = transport

    return config


def build_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """
    Resolve the effective configuration for a command.

    Order: config file (or defaults), environment, command line flags.
    """
    config = None
    config_arg = getattr(args, "config", None)
    if config_arg:
        config = load_config_from_file(Path(config_arg))
        if config is None:
            print(f"Error: Could not load config from {config_arg}", file=sys.stderr)
            return None

    if config is None:
        config = create_default_config()

    apply_env_overrides(config)

    if getattr(args, "language", None):
        config.language = args.language
    if getattr(args, "dry_run", False):
        config.simulation_mode = True
    return config


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    """Create the audit logger for a command run."""
    level = "debug" if verbose else config.logging.level
    try:
        return AuditLogger.from_level_name(level, output_format=config.logging.output_format)
    except ValueError:
        return AuditLogger(output_format=config.logging.output_format)


def _exit_code(result: SyncResult) -> int:
    if result.outcome == SyncOutcome.APPLIED:
        return EXIT_OK
    if result.outcome == SyncOutcome.SKIPPED:
        return EXIT_OK
    apply_result = result.apply_result
    if apply_result is not None and apply_result.failure_reason == FailureReason.AUTHORIZATION_CANCELED:
        return EXIT_AUTHORIZATION_CANCELED
    return EXIT_FAILED


async def _startup_self_test(config: SystemConfig, verbose: bool, logger: AuditLogger) -> bool:
    if not config.startup_self_test:
        return True
    result = await run_self_test(
        config=config,
        print_output=verbose,
        language=config.language,
        logger=logger,
    )
    if not result.success:
        print(get_message("selftest.failed", config.language), file=sys.stderr)
    return result.success


async def sync_once(
    config: SystemConfig,
    source: DomainSource,
    verbose: bool = False,
) -> int:
    """
    Run one forced, user-initiated synchronization cycle.

    Args:
        config: System configuration
        source: Where the domain set comes from
        verbose: Enable verbose output

    Returns:
        Exit code (0 on success, 2 when authorization was canceled, 1 otherwise)
    """
    language = config.language
    logger = create_logger(config, verbose)

    if not await _startup_self_test(config, verbose, logger):
        return EXIT_FAILED

    try:
        transaction = ApplyTransaction(config=config, logger=logger)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FAILED

    if config.simulation_mode:
        print(get_message("simulation.enabled", language))

    async with SyncOrchestrator(
        config=config,
        transaction=transaction,
        source=source,
        logger=logger,
    ) as orchestrator:
        result = await orchestrator.sync(force=True, user_initiated=True)

    stream = sys.stdout if result.outcome != SyncOutcome.FAILED else sys.stderr
    print(user_message(result, language), file=stream)

    apply_result = result.apply_result
    if verbose and apply_result is not None:
        print(f"  {get_message('cli.hosts_changed', language)}: {apply_result.hosts_changed}")
        print(f"  {get_message('cli.anchor_changed', language)}: {apply_result.anchor_changed}")
        print(f"  IPv4: {len(apply_result.addresses.ipv4_entries())}")
        print(f"  IPv6: {len(apply_result.addresses.ipv6_entries())}")
        if apply_result.command and config.simulation_mode:
            print(f"  {get_message('cli.command', language)}: {apply_result.command}")

    return _exit_code(result)


async def watch(
    config: SystemConfig,
    source: DomainSource,
    verbose: bool = False,
    max_ticks: Optional[int] = None,
) -> int:
    """
    Keep a domain source enforced until interrupted.

    Args:
        config: System configuration
        source: Where the domain set comes from on every tick
        verbose: Enable verbose output
        max_ticks: Optional number of ticks after which to stop

    Returns:
        Exit code
    """
    language = config.language
    logger = create_logger(config, verbose)

    if not await _startup_self_test(config, verbose, logger):
        return EXIT_FAILED

    try:
        transaction = ApplyTransaction(config=config, logger=logger)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FAILED

    if config.simulation_mode:
        print(get_message("simulation.enabled", language))
    print(get_message("cli.watching", language, source=source.describe(), seconds=config.refresh.tick_seconds))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError):
            pass

    async with SyncOrchestrator(
        config=config,
        transaction=transaction,
        source=source,
        logger=logger,
    ) as orchestrator:
        scheduler = RefreshScheduler(
            orchestrator,
            tick_seconds=config.refresh.tick_seconds,
            logger=logger,
        )
        await scheduler.run(stop_event=stop_event, max_ticks=max_ticks)

    if scheduler.last_result is not None:
        print(user_message(scheduler.last_result, language))
        return _exit_code(scheduler.last_result)
    return EXIT_OK


async def resolve_domains(
    domains: list[str],
    config: SystemConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Resolve a domain set and print the addresses; changes nothing.

    Returns:
        Exit code (1 when nothing resolved)
    """
    logger = create_logger(config, verbose)
    async with MultiSourceResolver(
        config=config.resolver,
        aggregation=config.aggregation,
        logger=logger,
    ) as resolver:
        resolved = await resolver.resolve(domains)

    if as_json:
        print(json.dumps(resolved.to_dict(), indent=2))
    else:
        for entry in sorted(resolved.ipv4_entries()):
            print(entry)
        for entry in sorted(resolved.ipv6_entries()):
            print(entry)

    if resolved.is_empty:
        print(get_message("cli.nothing_resolved", config.language), file=sys.stderr)
        return EXIT_FAILED
    return EXIT_OK


def _parse_domains(args: argparse.Namespace, language: str) -> Optional[list[str]]:
    """Collect and normalize domains from positional arguments and --file."""
    raw = list(getattr(args, "domains", None) or [])
    if getattr(args, "file", None):
        try:
            raw.extend(FileDomainSource(Path(args.file)).load())
        except DomainSourceError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return None

    validator = DomainValidator()
    for entry in raw:
        result = validator.validate(entry)
        if not result.valid:
            print(
                get_message(
                    "cli.domain_rejected",
                    language,
                    domain=entry,
                    reason=get_message(f"validation.{result.error.code.value}", language),
                ),
                file=sys.stderr,
            )
    return normalize_list(raw)


def cmd_apply(args: argparse.Namespace) -> int:
    """Handle the 'apply' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED

    domains = _parse_domains(args, config.language)
    if domains is None:
        return EXIT_FAILED
    if not domains:
        print(get_message("cli.no_domains", config.language), file=sys.stderr)
        return EXIT_FAILED

    return asyncio.run(sync_once(config, StaticDomainSource(domains), verbose=args.verbose))


def cmd_clear(args: argparse.Namespace) -> int:
    """Handle the 'clear' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED
    return asyncio.run(sync_once(config, StaticDomainSource([]), verbose=args.verbose))


def cmd_refresh(args: argparse.Namespace) -> int:
    """Handle the 'refresh' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED
    source = HostsSectionDomainSource(Path(config.paths.hosts_path))
    return asyncio.run(sync_once(config, source, verbose=args.verbose))


def cmd_watch(args: argparse.Namespace) -> int:
    """Handle the 'watch' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED

    if args.interval is not None:
        config.refresh.tick_seconds = args.interval

    domains_file = args.file or config.refresh.domains_file
    if domains_file:
        source: DomainSource = FileDomainSource(Path(domains_file))
    else:
        source = HostsSectionDomainSource(Path(config.paths.hosts_path))

    return asyncio.run(watch(config, source, verbose=args.verbose, max_ticks=args.max_ticks))


def cmd_resolve(args: argparse.Namespace) -> int:
    """Handle the 'resolve' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED

    domains = _parse_domains(args, config.language)
    if not domains:
        print(get_message("cli.no_domains", config.language), file=sys.stderr)
        return EXIT_FAILED

    return asyncio.run(resolve_domains(domains, config, as_json=args.json, verbose=args.verbose))


def cmd_status(args: argparse.Namespace) -> int:
    """Handle the 'status' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED
    language = config.language

    hosts_path = Path(config.paths.hosts_path)
    try:
        hosts_text = hosts_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    domains = hosts_renderer.extract_managed_domains(hosts_text)
    snapshot = AnchorStore(Path(config.paths.anchor_path)).read_snapshot()

    if hosts_renderer.has_managed_section(hosts_text):
        print(get_message("status.hosts_active", language, count=len(domains)))
        if args.verbose:
            for domain in domains:
                print(f"    {domain}")
    else:
        print(get_message("status.hosts_inactive", language))

    resolved = snapshot.resolved
    print(
        get_message(
            "status.anchor_entries",
            language,
            ipv4=len(resolved.ipv4_entries()),
            ipv6=len(resolved.ipv6_entries()),
        )
    )
    if snapshot.updated_at_epoch is not None:
        updated = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(snapshot.updated_at_epoch))
        print(get_message("status.anchor_updated", language, updated=updated))
        fresh = is_snapshot_fresh(snapshot, int(time.time()), config.merge_policy.max_age_seconds)
        print(get_message("status.anchor_fresh" if fresh else "status.anchor_stale", language))
    return EXIT_OK


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = build_config(args)
    if config is None:
        return EXIT_FAILED

    logger = create_logger(config, args.verbose) if args.verbose else None
    result = asyncio.run(run_self_test(
        config=config,
        print_output=True,
        language=config.language,
        logger=logger,
    ))

    return EXIT_OK if result.success else EXIT_FAILED


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH
    language = args.language or "en"

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("config.not_found", language, path=config_path))
            print(get_message("config.init_hint", language))
            return EXIT_FAILED

        apply_env_overrides(config)
        print(get_message("config.loaded_from", language, path=config_path))
        print(f"  Language: {config.language}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Hosts file: {config.paths.hosts_path}")
        print(f"  Anchor file: {config.paths.anchor_path}")
        print(f"  Anchor name: {config.paths.anchor_name}")
        print(f"  Transport: {config.transport.kind}")
        print(f"  Refresh interval: {config.refresh.min_refresh_interval_seconds}s")
        print(f"  Log level: {config.logging.level}")
        return EXIT_OK

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("config.exists", language, path=config_path))
            print(get_message("config.force_hint", language))
            return EXIT_FAILED

        config = create_default_config(language=language)
        if save_config_to_file(config, config_path):
            print(get_message("config.created", language, path=config_path))
            return EXIT_OK
        return EXIT_FAILED

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return EXIT_FAILED

        apply_env_overrides(config)
        validation = SelfTest(config).validate_config()
        for warning in validation.warnings:
            print(f"  ! {warning}")
        if not validation.valid:
            for error in validation.errors:
                print(f"  ✗ {error}", file=sys.stderr)
            print(get_message("config.invalid", language, path=config_path), file=sys.stderr)
            return EXIT_FAILED

        print(get_message("config.valid", language, path=config_path))
        return EXIT_OK

    return EXIT_FAILED


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language (default: from configuration)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - stage and print the command, change nothing",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-enforcer",
        description="Block domains through the hosts file and packet filter rules",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'apply' command
    apply_parser = subparsers.add_parser(
        "apply",
        help="Block the given domains (replaces the current set)",
    )
    apply_parser.add_argument(
        "domains",
        nargs="*",
        help="Domains, URLs or hosts to block (e.g., example.com)",
    )
    apply_parser.add_argument(
        "--file", "-f",
        help="Read additional domains from a file (one per line)",
    )
    _add_common_arguments(apply_parser)
    apply_parser.set_defaults(func=cmd_apply)

    # 'clear' command
    clear_parser = subparsers.add_parser(
        "clear",
        help="Remove all blocks",
    )
    _add_common_arguments(clear_parser)
    clear_parser.set_defaults(func=cmd_clear)

    # 'refresh' command
    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Re-resolve and re-apply the domains in the managed hosts section",
    )
    _add_common_arguments(refresh_parser)
    refresh_parser.set_defaults(func=cmd_refresh)

    # 'watch' command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Keep a domains file enforced and refresh periodically",
    )
    watch_parser.add_argument(
        "--file", "-f",
        help="Domains file (default: refresh.domains_file, else the managed hosts section)",
    )
    watch_parser.add_argument(
        "--interval", "-i",
        type=float,
        default=None,
        help="Seconds between ticks (default: refresh.tick_seconds)",
    )
    watch_parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Stop after this many ticks",
    )
    _add_common_arguments(watch_parser)
    watch_parser.set_defaults(func=cmd_watch)

    # 'resolve' command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Print the addresses that would be blocked, without applying",
    )
    resolve_parser.add_argument(
        "domains",
        nargs="*",
        help="Domains to resolve",
    )
    resolve_parser.add_argument(
        "--file", "-f",
        help="Read additional domains from a file (one per line)",
    )
    resolve_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    _add_common_arguments(resolve_parser)
    resolve_parser.set_defaults(func=cmd_resolve)

    # 'status' command
    status_parser = subparsers.add_parser(
        "status",
        help="Show the currently enforced state",
    )
    _add_common_arguments(status_parser)
    status_parser.set_defaults(func=cmd_status)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default=None,
        help="Output language and default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'self-test' command
    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Verify configuration, local tools and DoH connectivity",
    )
    _add_common_arguments(self_test_parser)
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
