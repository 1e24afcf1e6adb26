"""
Sources of the active domain set.

The orchestrator asks a source for the domains that should be blocked right
now. A source that cannot be read raises DomainSourceError instead of
returning an empty list, so a read problem never clears an active block.
"""

from pathlib import Path
from typing import Iterable

from . import hosts_renderer
from .domain_validator import collapse_expansions, normalize_list
from .exceptions import DomainSourceError


class DomainSource:
    """Base class for domain sources."""

    def load(self) -> list[str]:
        raise NotImplementedError

    def describe(self) -> str:
        return self.__class__.__name__


class StaticDomainSource(DomainSource):
    """A fixed list, typically from the command line."""

    def __init__(self, domains: Iterable[str]) -> None:
        self._domains = normalize_list(domains)

    def load(self) -> list[str]:
        return list(self._domains)

    def describe(self) -> str:
        return f"static({len(self._domains)})"


class FileDomainSource(DomainSource):
    """
    A text file with one entry per line.

    Blank lines and lines starting with ``#`` are ignored. The file is
    re-read on every call so edits take effect on the next cycle.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def load(self) -> list[str]:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                entries = [
                    line.strip()
                    for line in f
                    if line.strip() and not line.strip().startswith("#")
                ]
        except (OSError, UnicodeDecodeError) as e:
            raise DomainSourceError(
                code="domains_file_unreadable",
                message=f"Cannot read domains file {self._path}: {e}",
                details={"path": str(self._path)},
            )
        return normalize_list(entries)

    def describe(self) -> str:
        return f"file({self._path})"


class HostsSectionDomainSource(DomainSource):
    """
    The domains currently listed in the managed hosts section.

    Used by the periodic refresh daemon: whatever the last apply wrote to the
    hosts file is what gets re-resolved. Expanded ``www.`` pairs are folded
    back to the form that was originally applied.
    """

    def __init__(self, hosts_path: Path) -> None:
        self._hosts_path = Path(hosts_path)

    def load(self) -> list[str]:
        try:
            text = self._hosts_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DomainSourceError(
                code="hosts_unreadable",
                message=f"Cannot read {self._hosts_path}: {e}",
                details={"path": str(self._hosts_path)},
            )
        return collapse_expansions(hosts_renderer.extract_managed_domains(text))

    def describe(self) -> str:
        return f"hosts-section({self._hosts_path})"
