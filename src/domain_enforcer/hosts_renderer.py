"""
Hosts file managed section rendering.

The engine owns exactly one block of the hosts file, delimited by sentinel
comment lines. Rendering removes any existing block and, when domains are
active, appends a freshly generated one. Content outside the block is kept
as-is apart from blank-line normalization around the removed block.
"""

import re
from typing import Iterable

from .domain_validator import expand_hostnames, normalize, normalize_list


BEGIN_MARKER = "# >>> domain-enforcer BEGIN"
END_MARKER = "# <<< domain-enforcer END"

IPV4_SINK = "0.0.0.0"
IPV6_SINK = "::"

_SECTION_PATTERN = re.compile(
    r"\n?" + re.escape(BEGIN_MARKER) + r".*?" + re.escape(END_MARKER) + r"\n?",
    re.MULTILINE | re.DOTALL,
)


def render(original_text: str, active_domains: Iterable[str]) -> str:
    """
    Produce the new hosts file content for the given active domains.

    Args:
        original_text: Current hosts file content
        active_domains: Raw or canonical domain entries

    Returns:
        Hosts text with the managed section replaced (or removed when empty)
    """
    domains = normalize_list(active_domains)
    stripped = remove_managed_section(original_text)

    if not domains:
        return stripped

    section = managed_section(domains)

    if not stripped:
        return section + "\n"

    output = stripped
    if not output.endswith("\n"):
        output += "\n"
    return output + "\n" + section + "\n"


def managed_section(active_domains: Iterable[str]) -> str:
    """
    Build the marker-delimited block, without a trailing newline.

    Each hostname (bare and ``www.`` counterpart) is sunk to both the IPv4
    and the IPv6 unspecified address, once.
    """
    domains = normalize_list(active_domains)
    if not domains:
        return ""

    lines = [BEGIN_MARKER]
    emitted: set[str] = set()

    for domain in domains:
        for host in expand_hostnames(domain):
            if host in emitted:
                continue
            emitted.add(host)
            lines.append(f"{IPV4_SINK} {host}")
            lines.append(f"{IPV6_SINK} {host}")

    lines.append(END_MARKER)
    return "\n".join(lines)


def remove_managed_section(text: str) -> str:
    """Strip every managed block and collapse the blank lines it leaves behind."""
    stripped = _SECTION_PATTERN.sub("\n", text)

    while "\n\n\n" in stripped:
        stripped = stripped.replace("\n\n\n", "\n\n")

    stripped = stripped.strip("\n")
    if not stripped:
        return ""
    return stripped + "\n"


def has_managed_section(text: str) -> bool:
    return BEGIN_MARKER in text


def extract_managed_domains(text: str) -> list[str]:
    """
    Recover the hostnames listed inside the managed section.

    Only sink lines (``0.0.0.0 host`` / ``:: host``) inside the block count;
    the result is normalized and deduplicated in file order.
    """
    hosts: list[str] = []
    inside = False

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line == BEGIN_MARKER:
            inside = True
            continue
        if line == END_MARKER:
            inside = False
            continue
        if not inside or not line or line.startswith("#"):
            continue

        tokens = line.split()
        if len(tokens) >= 2 and tokens[0] in (IPV4_SINK, IPV6_SINK):
            canonical = normalize(tokens[1])
            if canonical is not None:
                hosts.append(canonical)

    return normalize_list(hosts)
