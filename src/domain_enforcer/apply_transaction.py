"""
Apply transaction for the domain enforcer system.

One call brings the hosts file and the packet-filter anchor in line with an
active domain set:

1. normalize the domains and render the new hosts content
2. resolve addresses (only when domains are active)
3. merge them with the snapshot left in the live anchor file
4. stage the changed files in temp files
5. run one combined privileged command (copy, cache flush, anchor
   load or flush, connection-state kill)
6. re-read the hosts file and verify the managed section matches

Nothing on the system changes before step 5. Failures are returned as typed
ApplyResult values; retrying is the caller's decision.
"""

import os
import tempfile
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from . import hosts_renderer
from .anchor_store import AnchorStore, domain_signature, render_anchor
from .audit_logger import AuditLogger
from .commands import (
    Command,
    CommandChain,
    Either,
    Pipeline,
    Tolerant,
    checked_path,
)
from .config import SystemConfig
from .domain_validator import expand_domain_list, normalize_list
from .enums import FailureReason, LogLevel
from .exceptions import (
    AuthorizationCanceledError,
    HostsReadError,
    PrivilegedCommandError,
    StagingError,
    VerificationError,
)
from .merger import merge_resolved
from .models import AnchorSnapshot, ApplyResult, ResolvedAddressSet
from .resolver import MultiSourceResolver
from .transport import PrivilegedTransport, create_transport


# Staged files are readable by the unprivileged engine after cp
STAGED_FILE_MODE = 0o644


class AnchorAction(Enum):
    """What the command chain does with the firewall anchor."""

    NONE = "none"
    LOAD = "load"
    FLUSH = "flush"


@dataclass
class ApplyPlan:
    """Everything decided before any privileged step runs."""

    domains: list[str]
    signature: str
    original_hosts: str
    updated_hosts: str
    anchor_text: str
    effective: ResolvedAddressSet
    previous: AnchorSnapshot
    anchor_action: AnchorAction
    kill_ipv4: list[str] = field(default_factory=list)
    kill_ipv6: list[str] = field(default_factory=list)

    @property
    def hosts_changed(self) -> bool:
        return self.updated_hosts != self.original_hosts


class ApplyTransaction:
    """
    Synchronizes the hosts file and the firewall anchor with a domain set.

    Collaborators (resolver, transport, clock) are injectable so the whole
    transaction can run against temp files and fake channels.
    """

    def __init__(
        self,
        config: Optional[SystemConfig] = None,
        resolver: Optional[MultiSourceResolver] = None,
        transport: Optional[PrivilegedTransport] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the apply transaction.

        Args:
            config: System configuration
            resolver: Optional resolver (built from config when omitted)
            transport: Optional privileged transport (built from config when omitted)
            logger: Optional audit logger for logging
            clock: Returns the current time in seconds since the epoch

        Raises:
            ConfigurationError: If a configured path is not absolute
        """
        self._config = config or SystemConfig()
        self._logger = logger
        self._clock = clock

        paths = self._config.paths
        self._hosts_path = Path(checked_path(paths.hosts_path))
        self._anchor_path = Path(checked_path(paths.anchor_path))
        self._temp_dir = checked_path(paths.temp_dir) if paths.temp_dir else None
        self._anchor_store = AnchorStore(self._anchor_path)

        self._owns_resolver = resolver is None
        self._resolver = resolver or MultiSourceResolver(
            config=self._config.resolver,
            aggregation=self._config.aggregation,
            logger=logger,
        )
        self._transport = transport or create_transport(self._config.transport, logger)

    async def __aenter__(self) -> "ApplyTransaction":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self._owns_resolver:
            await self._resolver.close()

    @property
    def anchor_store(self) -> AnchorStore:
        return self._anchor_store

    async def apply(
        self,
        active_domains: Iterable[str],
        force_anchor_reload: bool = False,
    ) -> ApplyResult:
        """
        Apply a domain set to the hosts file and firewall anchor.

        Args:
            active_domains: Raw or canonical domain entries; empty clears the block
            force_anchor_reload: Reload the anchor and kill states for every
                blocked address even when the address set is unchanged

        Returns:
            ApplyResult describing success or the typed failure
        """
        try:
            return await self._apply(list(active_domains), force_anchor_reload)
        except HostsReadError as e:
            return self._failure(FailureReason.READ_FAILURE, e)
        except StagingError as e:
            return self._failure(FailureReason.WRITE_FAILURE, e)
        except AuthorizationCanceledError as e:
            return self._failure(FailureReason.AUTHORIZATION_CANCELED, e)
        except PrivilegedCommandError as e:
            return self._failure(FailureReason.COMMAND_FAILED, e)
        except VerificationError as e:
            return self._failure(FailureReason.VERIFICATION_FAILED, e)

    async def plan(
        self,
        active_domains: Iterable[str],
        force_anchor_reload: bool = False,
    ) -> ApplyPlan:
        """
        Decide hosts content, anchor content, and anchor action.

        Raises:
            HostsReadError: If the hosts file cannot be read
        """
        domains = normalize_list(active_domains)
        # Covers the blocked hostnames, so bare and www. spellings of one set match
        signature = domain_signature(expand_domain_list(domains))

        original_hosts = self._read_hosts()
        updated_hosts = hosts_renderer.render(original_hosts, domains)

        if domains:
            fresh = await self._resolver.resolve(domains)
        else:
            fresh = ResolvedAddressSet()

        previous = self._anchor_store.read_snapshot()
        now_epoch = int(self._clock())

        if domains:
            effective = merge_resolved(
                fresh,
                previous,
                signature,
                now_epoch,
                self._config.merge_policy,
            )
        else:
            effective = ResolvedAddressSet()

        paths = self._config.paths
        anchor_text = render_anchor(
            effective,
            signature=signature if domains else None,
            updated_at_epoch=now_epoch if domains else None,
            ipv4_table=paths.ipv4_table,
            ipv6_table=paths.ipv6_table,
        )

        plan = ApplyPlan(
            domains=domains,
            signature=signature,
            original_hosts=original_hosts,
            updated_hosts=updated_hosts,
            anchor_text=anchor_text,
            effective=effective,
            previous=previous,
            anchor_action=self._anchor_action(domains, signature, effective, previous, force_anchor_reload),
        )

        if plan.anchor_action == AnchorAction.LOAD:
            if force_anchor_reload:
                plan.kill_ipv4 = sorted(effective.ipv4)
                plan.kill_ipv6 = sorted(effective.ipv6)
            else:
                plan.kill_ipv4 = sorted(effective.ipv4 - previous.resolved.ipv4)
                plan.kill_ipv6 = sorted(effective.ipv6 - previous.resolved.ipv6)

        self._log_info(
            "Apply plan ready",
            {
                "domains": len(domains),
                "hosts_changed": plan.hosts_changed,
                "anchor_action": plan.anchor_action.value,
                "fresh_empty": fresh.is_empty,
                "effective": effective.to_dict(),
            },
        )
        return plan

    @staticmethod
    def _anchor_action(
        domains: list[str],
        signature: str,
        effective: ResolvedAddressSet,
        previous: AnchorSnapshot,
        force: bool,
    ) -> AnchorAction:
        if not domains:
            return AnchorAction.FLUSH
        if effective.is_empty:
            return AnchorAction.NONE
        if force or effective != previous.resolved or previous.domain_signature != signature:
            return AnchorAction.LOAD
        return AnchorAction.NONE

    def build_command(self, plan: ApplyPlan, staged_hosts: Optional[str], staged_anchor: Optional[str]) -> CommandChain:
        """
        Assemble the combined privileged command for a plan.

        Args:
            plan: Decided plan
            staged_hosts: Temp file holding new hosts content, if it changed
            staged_anchor: Temp file holding new anchor content, if the anchor is touched

        Returns:
            Chain of steps; empty when there is nothing to do
        """
        tools = self._config.tools
        paths = self._config.paths
        hosts_path = str(self._hosts_path)
        anchor_path = str(self._anchor_path)
        chain = CommandChain()

        if staged_hosts is not None:
            chain.extend([
                Command([tools.cp, staged_hosts, hosts_path]),
                Command([tools.dscacheutil, "-flushcache"]),
                Command([tools.killall, "-HUP", tools.dns_responder_process]),
            ])

        if staged_anchor is not None and plan.anchor_action == AnchorAction.FLUSH:
            chain.extend([
                Command([tools.cp, staged_anchor, anchor_path]),
                Tolerant(Command([tools.pfctl, "-a", paths.anchor_name, "-F", "all"])),
            ])
        elif staged_anchor is not None and plan.anchor_action == AnchorAction.LOAD:
            chain.extend([
                Command([tools.cp, staged_anchor, anchor_path]),
                Command([tools.pfctl, "-q", "-a", paths.anchor_name, "-f", anchor_path]),
                Either(
                    Pipeline([
                        Command([tools.pfctl, "-s", "info"]),
                        Command([tools.grep, "-q", "Status: Enabled"]),
                    ]),
                    Command([tools.pfctl, "-E"]),
                ),
            ])
            for address in plan.kill_ipv4:
                chain.add(Tolerant(Command([tools.pfctl, "-k", "0.0.0.0/0", "-k", address], quiet=True)))
            for address in plan.kill_ipv6:
                chain.add(Tolerant(Command([tools.pfctl, "-k", "::/0", "-k", address], quiet=True)))

        return chain

    async def _apply(self, active_domains: list[str], force: bool) -> ApplyResult:
        plan = await self.plan(active_domains, force)
        staged: list[str] = []

        try:
            staged_hosts = None
            if plan.hosts_changed:
                staged_hosts = self._stage(plan.updated_hosts, "domain-enforcer-hosts-", ".tmp")
                staged.append(staged_hosts)

            staged_anchor = None
            if plan.anchor_action != AnchorAction.NONE:
                staged_anchor = self._stage(plan.anchor_text, "domain-enforcer-pf-", ".conf")
                staged.append(staged_anchor)

            chain = self.build_command(plan, staged_hosts, staged_anchor)
            command = chain.render() if chain else None

            if self._config.simulation_mode:
                self._log_info("Simulation mode: privileged command not executed", {"command": command})
                return ApplyResult(
                    success=True,
                    hosts_changed=plan.hosts_changed,
                    anchor_changed=plan.anchor_action != AnchorAction.NONE,
                    addresses=plan.effective,
                    command=command,
                    simulated=True,
                )

            if command is not None:
                await self._run_privileged(command)
        finally:
            self._remove_staged(staged)

        self._verify(plan.domains)

        self._log_info(
            "Apply completed",
            {
                "domains": len(plan.domains),
                "hosts_changed": plan.hosts_changed,
                "anchor_action": plan.anchor_action.value,
                "killed_states": len(plan.kill_ipv4) + len(plan.kill_ipv6),
            },
        )
        return ApplyResult(
            success=True,
            hosts_changed=plan.hosts_changed,
            anchor_changed=plan.anchor_action != AnchorAction.NONE,
            addresses=plan.effective,
            command=command,
        )

    def _read_hosts(self) -> str:
        try:
            return self._hosts_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise HostsReadError(
                code=FailureReason.READ_FAILURE.value,
                message=f"Failed to read {self._hosts_path}: {e}",
                details={"path": str(self._hosts_path)},
            )

    def _stage(self, content: str, prefix: str, suffix: str) -> str:
        try:
            fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=self._temp_dir)
        except OSError as e:
            raise StagingError(
                code=FailureReason.WRITE_FAILURE.value,
                message=f"Failed to create temp file: {e}",
                details={"temp_dir": self._temp_dir},
            )

        try:
            # cp creates a missing target with this mode
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                os.fchmod(f.fileno(), STAGED_FILE_MODE)
                f.write(content)
        except OSError as e:
            self._remove_staged([path])
            raise StagingError(
                code=FailureReason.WRITE_FAILURE.value,
                message=f"Failed to write temp file {path}: {e}",
                details={"path": path},
            )

        return checked_path(path)

    def _remove_staged(self, paths: list[str]) -> None:
        for path in paths:
            try:
                os.unlink(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                self._log_error(f"Could not remove temp file {path}", {"error_message": str(e)})

    async def _run_privileged(self, command: str) -> None:
        result = await self._transport.run(command)
        if result.success:
            return

        details = {"exit_status": result.exit_status, "stderr": result.stderr}
        if result.cancelled:
            raise AuthorizationCanceledError(
                code=FailureReason.AUTHORIZATION_CANCELED.value,
                message="Administrator authorization was canceled",
                details=details,
                exit_status=result.exit_status,
            )
        raise PrivilegedCommandError(
            code=FailureReason.COMMAND_FAILED.value,
            message=result.stderr or f"Privileged command exited with status {result.exit_status}",
            details=details,
            exit_status=result.exit_status,
        )

    def _verify(self, domains: list[str]) -> None:
        try:
            reloaded = self._hosts_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise VerificationError(
                code=FailureReason.VERIFICATION_FAILED.value,
                message=f"Could not re-read {self._hosts_path}: {e}",
            )

        present = hosts_renderer.has_managed_section(reloaded)
        if domains and not present:
            raise VerificationError(
                code=FailureReason.VERIFICATION_FAILED.value,
                message="Managed hosts section was not written",
                details={"path": str(self._hosts_path)},
            )
        if not domains and present:
            raise VerificationError(
                code=FailureReason.VERIFICATION_FAILED.value,
                message="Managed hosts section is still present after cleanup",
                details={"path": str(self._hosts_path)},
            )

    def _failure(self, reason: FailureReason, error: Exception) -> ApplyResult:
        self._log_error(f"Apply failed: {reason.value}", {"error_message": str(error)})
        return ApplyResult(
            success=False,
            failure_reason=reason,
            message=str(error),
        )

    def _log_info(self, message: str, data: dict) -> None:
        """Log an info message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.INFO, "ApplyTransaction", message, data)

    def _log_error(self, message: str, data: dict) -> None:
        """Log an error message if logger is available."""
        if self._logger:
            self._logger.log(LogLevel.ERROR, "ApplyTransaction", message, data)
