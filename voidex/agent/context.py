"""ContextBuilder — assembles the system prompt from host facts + memory note."""

from __future__ import annotations

import os
import platform
from datetime import datetime
from pathlib import Path

from voidex.core.config.schema import Config

DEFAULT_IDENTITY = (
    "You are a SOVEREIGN AGENT with FULL ACCESS to this system.\n"
    "You are the executor, not just a mentor. Use your tools to achieve "
    "the user's objective."
)

INSTRUCTIONS = (
    "1. Use natural language followed by tool calls.\n"
    "2. If a command fails, analyze the error and try a different approach.\n"
    "3. Keep your internal monologue brief.\n"
    "4. Do not repeat an action that already failed in the same way."
)


class ContextBuilder:
    """
    Builds the fixed system prompt.

    Layers:
      1. Identity (assistant.system_prompt > built-in identity)
      2. System context (OS, home, cwd, shell, date)
      3. Memory note (free-text file written by save_memory)
      4. Instructions
    """

    MEMORY_BUDGET = 8_000  # chars

    def __init__(self, config: Config):
        self.config = config

    def build(self) -> str:
        parts = [
            f"### IDENTITY\n{self._get_identity()}",
            f"### SYSTEM CONTEXT\n{self.get_system_context()}",
            f"### INSTRUCTIONS\n{INSTRUCTIONS}",
        ]
        return "\n\n".join(parts)

    def get_system_context(self) -> str:
        """Host facts plus the memory note, as shown to the model."""
        cwd = Path.cwd()
        home = Path.home()
        shell = os.environ.get("SHELL") or "/bin/bash"
        now = datetime.now().strftime("%Y-%m-%d %H:%M")
        return (
            f"OS: {platform.system().lower()} {platform.release()}\n"
            f"Home: {home}\n"
            f"CWD: {cwd}\n"
            f"Shell: {shell}\n"
            f"Date: {now}\n\n"
            f"[MEMORY]\n{self._get_memory() or 'None'}\n\n"
            f"You have access to the file system at '{cwd}'."
        )

    def _get_identity(self) -> str:
        return self.config.assistant.system_prompt or DEFAULT_IDENTITY

    def _get_memory(self) -> str | None:
        path = self.config.memory_path
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError):
            return None
        return self._truncate(text, self.MEMORY_BUDGET) if text else None

    @staticmethod
    def _truncate(text: str, char_limit: int) -> str:
        """Keep the newest part of the note (it is append-only)."""
        if len(text) <= char_limit:
            return text
        return "[...truncated]\n\n" + text[-char_limit:]
