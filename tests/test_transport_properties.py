"""
Tests for the privileged command transports.

The shell transport is exercised against the real ``/bin/sh``; the AppleScript
transport is checked for quoting and cancellation detection only.
"""

import asyncio
import shlex

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_enforcer.config import TransportConfig
from domain_enforcer.exceptions import ConfigurationError
from domain_enforcer.transport import (
    AppleScriptTransport,
    ShellTransport,
    create_transport,
)


def unquote_apple_literal(literal: str) -> str:
    """Inverse of the AppleScript quoting used by the transport."""
    assert literal.startswith('"') and literal.endswith('"')
    body = literal[1:-1]
    result = []
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\":
            index += 1
            char = body[index]
        else:
            assert char != '"'
        result.append(char)
        index += 1
    return "".join(result)


class TestAppleScriptQuotingProperty:
    """Commands survive AppleScript string quoting unchanged."""

    @given(command=st.text(max_size=60))
    @settings(max_examples=100)
    def test_literal_round_trip(self, command: str) -> None:
        """
        Property: *For any* command text, the AppleScript literal contains no
        unescaped quote and decodes back to the command.
        """
        literal = AppleScriptTransport.apple_script_literal(command)
        assert unquote_apple_literal(literal) == command

    def test_build_argv(self) -> None:
        transport = AppleScriptTransport(osascript_path="/usr/bin/osascript")
        argv = transport.build_argv('/bin/cp "/tmp/a b" /etc/hosts')
        assert argv[:2] == ["/usr/bin/osascript", "-e"]
        assert argv[2] == (
            'do shell script "/bin/cp \\"/tmp/a b\\" /etc/hosts" with administrator privileges'
        )


class TestCancellationDetection:
    """A dismissed prompt is distinguishable from a failed command."""

    @pytest.mark.parametrize(
        "stderr",
        [
            "0:45: execution error: User canceled. (-128)",
            "execution error: User cancelled.",
            "error (-128)",
        ],
    )
    def test_cancel_markers(self, stderr: str) -> None:
        assert AppleScriptTransport().is_cancellation(1, stderr)

    def test_other_failures_are_not_cancellation(self) -> None:
        transport = AppleScriptTransport()
        assert not transport.is_cancellation(1, "cp: /etc/hosts: Operation not permitted")
        assert not transport.is_cancellation(0, "User canceled.")

    def test_shell_never_reports_cancellation(self) -> None:
        assert not ShellTransport().is_cancellation(1, "User canceled. (-128)")


class TestShellTransport:
    """Runs commands through the real shell."""

    def test_success_captures_stdout(self) -> None:
        result = asyncio.run(ShellTransport().run("echo hello"))
        assert result.exit_status == 0
        assert result.stdout == "hello"
        assert result.success

    def test_exit_status_and_stderr(self) -> None:
        result = asyncio.run(ShellTransport().run("echo broken >&2; exit 3"))
        assert result.exit_status == 3
        assert result.stderr == "broken"
        assert not result.success
        assert not result.cancelled

    def test_chain_stops_at_first_failure(self, tmp_path) -> None:
        marker = tmp_path / "marker"
        command = f"false && touch {shlex.quote(str(marker))}"
        result = asyncio.run(ShellTransport().run(command))
        assert result.exit_status != 0
        assert not marker.exists()

    def test_timeout(self) -> None:
        result = asyncio.run(ShellTransport(timeout_seconds=0.2).run("sleep 5"))
        assert result.exit_status == -1
        assert "timed out" in result.stderr

    def test_missing_interpreter(self) -> None:
        result = asyncio.run(ShellTransport(shell_path="/nonexistent/sh").run("true"))
        assert result.exit_status == 127
        assert not result.success

    def test_sudo_prefix(self) -> None:
        transport = ShellTransport(use_sudo=True, sudo_path="/usr/bin/sudo")
        assert transport.build_argv("true") == ["/usr/bin/sudo", "-n", "/bin/sh", "-c", "true"]
        assert ShellTransport().build_argv("true") == ["/bin/sh", "-c", "true"]


class TestCreateTransport:
    """Transport selection from configuration."""

    def test_osascript(self) -> None:
        assert isinstance(create_transport(TransportConfig(kind="osascript")), AppleScriptTransport)

    def test_sudo_and_shell(self) -> None:
        sudo = create_transport(TransportConfig(kind="sudo"))
        shell = create_transport(TransportConfig(kind="shell"))
        assert isinstance(sudo, ShellTransport)
        assert sudo.build_argv("x")[:2] == ["/usr/bin/sudo", "-n"]
        assert shell.build_argv("x") == ["/bin/sh", "-c", "x"]

    def test_unknown_kind(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            create_transport(TransportConfig(kind="telnet"))
        assert excinfo.value.code == "unknown_transport"
