"""Risk classifier — ordered (predicate, tier, reason) table over tool calls.

Shell commands are matched top-down against ``SHELL_RULES``; the first rule
that fires decides the tier. Anything that matches nothing is ``safe``:
reconnaissance tools (curl, nmap, dig...) only print to stdout, which the
agent captures.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from voidex.agent.models import RiskAssessment, RiskLevel

SHELL_TOOLS = frozenset({"run_shell_command", "execute_bash"})
FILE_MUTATING_TOOLS = frozenset({"write_file", "writeFile", "replace"})
DELEGATION_TOOLS = frozenset({"delegate_to_agent"})

# Start of a command word: line start or a shell separator
_CMD = r"(?:^|[\s;&|(`])"
# Optional directory prefix of an executable (/bin/rm)
_PATH = r"(?:\.{0,2}/(?:[\w.-]+/)*)?"


@dataclass(frozen=True)
class RiskRule:
    """One row of the policy table."""

    predicate: Callable[[str], Any]
    level: RiskLevel
    reason: str

    def matches(self, command: str) -> bool:
        return bool(self.predicate(command))


def _pattern(regex: str) -> Callable[[str], Any]:
    return re.compile(regex).search


# ── Redirection ─────────────────────────────────────────────

_REDIRECT = re.compile(r"(?:\d|&)?>{1,2}\|?\s*(&\d+|&-|[^\s;&|<>]+)?")
_SAFE_TARGET = re.compile(r"^(?:&\d+|&-|/dev/null|/dev/std(?:out|err)|/tmp/\S*|/var/tmp/\S*)$")


def has_unsafe_redirect(command: str) -> bool:
    """True when any ``>``/``>>`` writes somewhere other than a scratch target.

    Scratch targets are ``/dev/null``, ``/tmp/...``, ``/var/tmp/...`` and
    stream duplications such as ``2>&1``. Paths are normalised first, so
    ``/tmp/../etc/passwd`` is not scratch.
    """
    for match in _REDIRECT.finditer(command):
        target = (match.group(1) or "").strip("'\"")
        if target.startswith("/"):
            target = posixpath.normpath(target)
        if not _SAFE_TARGET.match(target):
            return True
    return False


SHELL_RULES: tuple[RiskRule, ...] = (
    # critical: destroys data or takes the machine down
    RiskRule(
        _pattern(
            _CMD + _PATH + r"rm(?:\s+-\S*)*?\s+(?:-[a-zA-Z]*[rRf][a-zA-Z]*|--recursive|--force)(?:\s|$)"
        ),
        RiskLevel.CRITICAL,
        "Force delete (rm -rf)",
    ),
    RiskRule(
        _pattern(_CMD + _PATH + r"(?:mkfs(?:\.\w+)?|mke2fs|wipefs|diskpart)\b"),
        RiskLevel.CRITICAL,
        "Format disk",
    ),
    RiskRule(_pattern(_CMD + _PATH + r"dd\s+"), RiskLevel.CRITICAL, "Low-level disk write"),
    RiskRule(
        _pattern(r">\s*/dev/(?:sd|hd|vd|nvme|mmcblk|disk)"),
        RiskLevel.CRITICAL,
        "Low-level disk write",
    ),
    RiskRule(
        _pattern(r":\s*\(\s*\)\s*\{.*\|.*&.*\}"),
        RiskLevel.CRITICAL,
        "Fork bomb detected",
    ),
    RiskRule(
        _pattern(_CMD + _PATH + r"(?:shutdown|reboot|poweroff|halt|init\s+[06])\b"),
        RiskLevel.CRITICAL,
        "System power control",
    ),
    # caution: changes privileges or overwrites files
    RiskRule(_pattern(_CMD + _PATH + r"(?:sudo|doas)\s+"), RiskLevel.CAUTION, "Root access (sudo)"),
    RiskRule(
        _pattern(_CMD + _PATH + r"(?:chmod|chown|chgrp)\s+"),
        RiskLevel.CAUTION,
        "Permission modification",
    ),
    RiskRule(has_unsafe_redirect, RiskLevel.CAUTION, "File overwrite (redirection)"),
)

TOOL_RULES: tuple[tuple[frozenset[str], RiskLevel, str], ...] = (
    (FILE_MUTATING_TOOLS, RiskLevel.CAUTION, "Modify file content"),
    (DELEGATION_TOOLS, RiskLevel.CAUTION, "Sub-agent delegation"),
)


def classify_command(command: str) -> RiskAssessment:
    """Classify a raw shell command line."""
    command = command.strip()
    for rule in SHELL_RULES:
        if rule.matches(command):
            return RiskAssessment(level=rule.level, reason=rule.reason)
    return RiskAssessment(level=RiskLevel.SAFE)


def classify(tool_name: str, args: Mapping[str, Any]) -> RiskAssessment:
    """Map a tool call to its risk tier. Pure and synchronous."""
    if tool_name in SHELL_TOOLS:
        return classify_command(str(args.get("command") or ""))

    for names, level, reason in TOOL_RULES:
        if tool_name in names:
            return RiskAssessment(level=level, reason=reason)

    return RiskAssessment(level=RiskLevel.SAFE)
