"""Memory and planning tools — free-text memory note, TODO list, delegation."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from langchain_core.tools import tool

from voidex.agent.tools.result import ToolResult
from voidex.core.config.schema import Config


def make_memory_tools(config: Config) -> list:
    """Create tools closed over the memory note path."""
    memory_path = config.memory_path

    @tool
    def save_memory(info: str) -> ToolResult:
        """Save key knowledge or progress for future reference."""
        try:
            memory_path.parent.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y-%m-%d %H:%M")
            with open(memory_path, "a", encoding="utf-8") as f:
                f.write(f"\n- [{stamp}] {info}")
        except OSError as e:
            return ToolResult(f"Memory error: {e}", is_error=True)
        return ToolResult(f"Saved to memory: {memory_path}")

    return [save_memory]


def make_planning_tools() -> list:
    """Create TODO and delegation tools."""

    @tool
    def write_todos(todos: list[str]) -> ToolResult:
        """Update the project TODO.md list."""
        todos_path = Path.cwd() / "TODO.md"
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M")
        items = "\n".join(f"- [ ] {t}" for t in todos)
        try:
            todos_path.write_text(
                f"# Project TODOs (Updated {stamp})\n\n{items}\n", encoding="utf-8"
            )
        except OSError as e:
            return ToolResult(f"Todos error: {e}", is_error=True)
        return ToolResult(f"Objectives updated in {todos_path}")

    @tool
    def delegate_to_agent(task: str) -> ToolResult:
        """Delegate a complex task to a sub-thinking process."""
        return ToolResult(
            f'[DELEGATION] Strategic analysis for: "{task}"\n'
            "Internalize this sub-goal and prioritize it in the next thinking cycle."
        )

    return [write_todos, delegate_to_agent]
