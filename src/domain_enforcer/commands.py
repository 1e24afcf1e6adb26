"""
Structured shell command construction.

The privileged transport accepts a single shell string. It is assembled here
from argument vectors so every path and address is quoted exactly once, and
failure tolerance is expressed with explicit grouping instead of relying on
``&&``/``||`` precedence.
"""

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Union

from .exceptions import ConfigurationError


class Renderable(Protocol):
    def render(self) -> str: ...


@dataclass
class Command:
    """A single program invocation."""

    argv: list[str]
    quiet: bool = False  # discard stdout and stderr

    def render(self) -> str:
        rendered = shlex.join(self.argv)
        if self.quiet:
            rendered += " >/dev/null 2>&1"
        return rendered


@dataclass
class Pipeline:
    """``a | b | ...``"""

    commands: list[Command]

    def render(self) -> str:
        return " | ".join(command.render() for command in self.commands)


@dataclass
class Either:
    """``(primary || fallback)``: fallback runs only when primary fails."""

    primary: Renderable
    fallback: Renderable

    def render(self) -> str:
        return f"({self.primary.render()} || {self.fallback.render()})"


@dataclass
class Tolerant:
    """``(step || true)``: the step may fail without failing the chain."""

    step: Renderable

    def render(self) -> str:
        return f"({self.step.render()} || true)"


@dataclass
class CommandChain:
    """Steps joined with ``&&``; the first failure stops the chain."""

    steps: list[Renderable] = field(default_factory=list)

    def add(self, step: Renderable) -> "CommandChain":
        self.steps.append(step)
        return self

    def extend(self, steps: list[Renderable]) -> "CommandChain":
        self.steps.extend(steps)
        return self

    def __bool__(self) -> bool:
        return bool(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def render(self) -> str:
        return " && ".join(step.render() for step in self.steps)


def checked_path(path: Union[str, Path]) -> str:
    """
    Validate a filesystem path before it is embedded in a command.

    Raises:
        ConfigurationError: If the path is relative or contains NUL or newline
    """
    text = str(path)
    if "\x00" in text or "\n" in text or "\r" in text:
        raise ConfigurationError(
            code="invalid_path",
            message="Path contains control characters",
            details={"path": repr(text)},
        )
    if not Path(text).is_absolute():
        raise ConfigurationError(
            code="relative_path",
            message=f"Path must be absolute: {text}",
            details={"path": text},
        )
    return text
