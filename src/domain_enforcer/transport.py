"""
Privileged command transports.

The apply transaction hands one combined shell command to a transport, which
runs it with administrator rights and reports the exit status. Two adapters
are provided: an AppleScript prompt for interactive use, and a plain shell
(optionally through ``sudo -n``) for a daemon that already runs as root.
"""

import asyncio
from typing import Optional

from .audit_logger import AuditLogger
from .config import TransportConfig
from .enums import LogLevel, TransportKind
from .exceptions import ConfigurationError
from .models import CommandResult


# osascript reports a dismissed authorization dialog with error -128
CANCEL_MARKERS = ("user canceled", "user cancelled", "(-128)")


class PrivilegedTransport:
    """Base class for privileged command execution."""

    def __init__(
        self,
        timeout_seconds: float = 120.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            timeout_seconds: Upper bound for one command invocation
            logger: Optional audit logger for logging
        """
        self._timeout = timeout_seconds
        self._logger = logger

    def build_argv(self, command: str) -> list[str]:
        raise NotImplementedError

    def is_cancellation(self, exit_status: int, stderr: str) -> bool:
        return False

    async def run(self, command: str) -> CommandResult:
        """
        Run a shell command with elevated privileges.

        Args:
            command: Complete shell command line

        Returns:
            CommandResult with exit status, output, and cancellation flag
        """
        argv = self.build_argv(command)
        self._log(LogLevel.DEBUG, "Running privileged command", {"argv0": argv[0]})

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._log(LogLevel.ERROR, f"Cannot start {argv[0]}: {e}", {})
            return CommandResult(exit_status=127, stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self._log(
                LogLevel.ERROR,
                "Privileged command timed out",
                {"timeout_seconds": self._timeout},
            )
            return CommandResult(
                exit_status=-1,
                stderr=f"Command timed out after {self._timeout}s",
            )

        exit_status = process.returncode if process.returncode is not None else -1
        stderr_text = stderr.decode("utf-8", errors="replace").strip()
        result = CommandResult(
            exit_status=exit_status,
            stdout=stdout.decode("utf-8", errors="replace").strip(),
            stderr=stderr_text,
            cancelled=self.is_cancellation(exit_status, stderr_text),
        )

        if not result.success:
            self._log(
                LogLevel.WARN,
                "Privileged command did not succeed",
                {"exit_status": exit_status, "cancelled": result.cancelled, "stderr": stderr_text},
            )
        return result

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "Transport", message, data)


class AppleScriptTransport(PrivilegedTransport):
    """Runs the command through ``do shell script ... with administrator privileges``."""

    def __init__(
        self,
        osascript_path: str = "/usr/bin/osascript",
        timeout_seconds: float = 120.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        super().__init__(timeout_seconds, logger)
        self._osascript_path = osascript_path

    @staticmethod
    def apple_script_literal(text: str) -> str:
        """Quote text as an AppleScript string literal."""
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    def build_argv(self, command: str) -> list[str]:
        source = (
            f"do shell script {self.apple_script_literal(command)} "
            "with administrator privileges"
        )
        return [self._osascript_path, "-e", source]

    def is_cancellation(self, exit_status: int, stderr: str) -> bool:
        if exit_status == 0:
            return False
        lowered = stderr.lower()
        return any(marker in lowered for marker in CANCEL_MARKERS)


class ShellTransport(PrivilegedTransport):
    """Runs the command with ``/bin/sh -c``, optionally prefixed by ``sudo -n``."""

    def __init__(
        self,
        shell_path: str = "/bin/sh",
        use_sudo: bool = False,
        sudo_path: str = "/usr/bin/sudo",
        timeout_seconds: float = 120.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        super().__init__(timeout_seconds, logger)
        self._shell_path = shell_path
        self._use_sudo = use_sudo
        self._sudo_path = sudo_path

    def build_argv(self, command: str) -> list[str]:
        argv = [self._shell_path, "-c", command]
        if self._use_sudo:
            # -n: never prompt, fail instead
            argv = [self._sudo_path, "-n"] + argv
        return argv


def create_transport(
    config: TransportConfig,
    logger: Optional[AuditLogger] = None,
) -> PrivilegedTransport:
    """
    Create the transport selected in configuration.

    Raises:
        ConfigurationError: If the transport kind is unknown
    """
    try:
        kind = TransportKind(config.kind)
    except ValueError:
        raise ConfigurationError(
            code="unknown_transport",
            message=f"Unknown transport: {config.kind}",
            details={"kind": config.kind},
        )

    if kind == TransportKind.OSASCRIPT:
        return AppleScriptTransport(
            osascript_path=config.osascript_path,
            timeout_seconds=config.timeout_seconds,
            logger=logger,
        )
    return ShellTransport(
        shell_path=config.shell_path,
        use_sudo=kind == TransportKind.SUDO,
        sudo_path=config.sudo_path,
        timeout_seconds=config.timeout_seconds,
        logger=logger,
    )
