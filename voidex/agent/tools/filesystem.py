"""Filesystem tools — read, write, replace, list, glob, search (relative to CWD)."""

from __future__ import annotations

import os
import re
from pathlib import Path

from langchain_core.tools import tool

from voidex.agent.tools.result import ToolResult

SKIP_DIRS = frozenset({".git", "node_modules"})
MAX_MATCHES_PER_FILE = 20


def _resolve(path: str) -> Path:
    return (Path.cwd() / Path(path).expanduser()).resolve()


def _relative(path: Path) -> str:
    try:
        return path.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return path.as_posix()


def _walk_files(base: Path):
    """Yield every file under *base*, skipping VCS and dependency folders."""
    for root, dirs, files in os.walk(base):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for name in sorted(files):
            yield Path(root) / name


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a glob with ``**`` and ``{a,b}`` support into a regex."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.+/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        ch = pattern[i]
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "{":
            end = pattern.find("}", i)
            if end == -1:
                out.append(re.escape(ch))
            else:
                options = pattern[i + 1:end].split(",")
                out.append("(?:" + "|".join(re.escape(o) for o in options) + ")")
                i = end
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$")


def replace_in_text(content: str, old_text: str, new_text: str) -> tuple[str | None, str]:
    """Return ``(new_content, how)``; ``new_content`` is None with an error in ``how``.

    An exact, unique match wins. Otherwise a block of lines equal to
    *old_text* up to trailing whitespace is replaced.
    """
    if not old_text:
        return None, "Target text is empty. Provide the exact block to replace."
    occurrences = content.count(old_text)
    if occurrences > 1:
        return None, (
            f"Ambiguous replacement. Found {occurrences} occurrences of the target "
            "text. Provide a more specific block to replace."
        )
    if occurrences == 1:
        return content.replace(old_text, new_text, 1), "exact match"

    lines = content.split("\n")
    old_lines = old_text.split("\n")
    for i in range(len(lines) - len(old_lines) + 1):
        window = lines[i:i + len(old_lines)]
        if all(a.rstrip() == b.rstrip() for a, b in zip(window, old_lines)):
            lines[i:i + len(old_lines)] = [new_text]
            return "\n".join(lines), "fuzzy-line match"
    return None, "Text not found. Check for exact content including indentation."


def make_filesystem_tools() -> list:
    """Create filesystem tools resolving paths against the current directory."""

    @tool
    def read_file(path: str) -> ToolResult:
        """Read the contents of a file."""
        try:
            return ToolResult(_resolve(path).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult(f"Error reading file: {e}", is_error=True)

    @tool
    def list_directory(path: str = ".") -> ToolResult:
        """List items in a directory. Directories end with '/'."""
        try:
            entries = sorted(_resolve(path).iterdir(), key=lambda e: e.name)
        except OSError as e:
            return ToolResult(f"Error listing directory: {e}", is_error=True)
        names = [e.name + "/" if e.is_dir() else e.name for e in entries]
        return ToolResult("\n".join(names))

    @tool
    def write_file(path: str, content: str) -> ToolResult:
        """Write content to a file (overwrites existing, creates parent directories)."""
        try:
            p = _resolve(path)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")
        except OSError as e:
            return ToolResult(f"Error writing file: {e}", is_error=True)
        return ToolResult(f"Successfully wrote to {path}")

    @tool
    def replace(path: str, old_text: str, new_text: str) -> ToolResult:
        """Replace a unique block of text in a file (simple edit)."""
        try:
            p = _resolve(path)
            updated, how = replace_in_text(p.read_text(encoding="utf-8"), old_text, new_text)
            if updated is None:
                return ToolResult(f"Error in {path}: {how}", is_error=True)
            p.write_text(updated, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult(f"Replace error: {e}", is_error=True)
        return ToolResult(f"Successfully applied {how} replacement in {path}")

    @tool
    def glob(pattern: str, path: str = ".") -> ToolResult:
        """Find files matching a pattern (e.g. '*.py', 'src/**/*.{ts,tsx}')."""
        base = _resolve(path)
        if not base.is_dir():
            return ToolResult(f"Not a directory: {path}", is_error=True)
        matcher = glob_to_regex(pattern)
        results = [
            _relative(f) for f in _walk_files(base)
            if matcher.match(_relative(f)) or matcher.match(f.relative_to(base).as_posix())
            or matcher.match(f.name)
        ]
        return ToolResult("\n".join(results) or "No files found")

    @tool
    def search_file_content(query: str, path: str = ".") -> ToolResult:
        """Search for text in files (like grep). At most 20 matches per file."""
        base = _resolve(path)
        results: list[str] = []
        for f in _walk_files(base) if base.is_dir() else [base]:
            try:
                lines = f.read_text(encoding="utf-8").split("\n")
            except (OSError, UnicodeDecodeError):
                continue
            hits = [
                f"{_relative(f)}:{n}: {line.strip()}"
                for n, line in enumerate(lines, start=1)
                if query in line
            ]
            results.extend(hits[:MAX_MATCHES_PER_FILE])
        return ToolResult("\n".join(results) or "No matches found")

    return [read_file, list_directory, write_file, replace, glob, search_file_content]
