"""Tool system — ToolRegistry and factory that creates all agent tools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from langchain_core.tools import BaseTool
from loguru import logger

from voidex.agent.tools.filesystem import make_filesystem_tools
from voidex.agent.tools.memory_tools import make_memory_tools, make_planning_tools
from voidex.agent.tools.result import OutputCallback, ToolResult, live_output
from voidex.agent.tools.shell import make_shell_tools
from voidex.agent.tools.web import make_web_tools
from voidex.core.config.schema import Config


@dataclass
class ToolInfo:
    """Metadata for a registered tool."""

    tool: BaseTool
    group: str


class ToolRegistry:
    """Central tool registry and the executor's tool-execution collaborator.

    Each factory function (make_*_tools) registers its tools under a group
    name. Aliases resolve to a registered tool but are not advertised to
    the model.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolInfo] = {}
        self._groups: dict[str, list[str]] = {}
        self._aliases: dict[str, str] = {}

    def register_group(self, group: str, tools: list) -> None:
        """Register a list of tools under a group name."""
        self._groups[group] = []
        for t in tools:
            self._tools[t.name] = ToolInfo(tool=t, group=group)
            self._groups[group].append(t.name)

    def register_alias(self, alias: str, target: str) -> None:
        if target not in self._tools:
            raise KeyError(f"Cannot alias '{alias}' to unknown tool '{target}'")
        self._aliases[alias] = target

    def resolve(self, name: str) -> BaseTool | None:
        info = self._tools.get(self._aliases.get(name, name))
        return info.tool if info else None

    def get_all_tools(self) -> list:
        return [info.tool for info in self._tools.values()]

    def get_groups_summary(self) -> dict[str, list[str]]:
        """Return group name to tool names mapping."""
        return {g: list(names) for g, names in self._groups.items()}

    def definitions(self) -> list[dict[str, Any]]:
        """OpenAI function-calling schemas for every registered tool."""
        defs = []
        for info in self._tools.values():
            schema = info.tool.args_schema.model_json_schema() if info.tool.args_schema else {}
            defs.append(
                {
                    "type": "function",
                    "function": {
                        "name": info.tool.name,
                        "description": info.tool.description or "",
                        "parameters": schema,
                    },
                }
            )
        return defs

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        on_output: OutputCallback | None = None,
    ) -> ToolResult:
        """Run a tool. Failures come back as ``is_error`` results, never raised."""
        tool = self.resolve(name)
        if tool is None:
            logger.warning(f"Tool not found: {name}")
            return ToolResult(f"Tool '{name}' not found", is_error=True)

        reset = live_output.set(on_output)
        try:
            logger.debug(f"Executing tool: {name}({args})")
            result = await tool.ainvoke(args)
        except Exception as e:
            logger.error(f"Tool error: {name} → {e}")
            return ToolResult(f"Tool error: {e}", is_error=True)
        finally:
            live_output.reset(reset)

        if not isinstance(result, ToolResult):
            result = ToolResult(str(result))
        logger.debug(f"Tool result: {name} → {result.output[:100]!r}")
        return result

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools or name in self._aliases


_ALIASES = {
    "execute_bash": "run_shell_command",
    "list_files": "list_directory",
    "find_files": "glob",
}


def make_tools(config: Config) -> ToolRegistry:
    """Create all agent tools and return a ToolRegistry."""
    registry = ToolRegistry()
    registry.register_group("shell", make_shell_tools(config))
    registry.register_group("filesystem", make_filesystem_tools())
    registry.register_group("web", make_web_tools(config))
    registry.register_group("memory", make_memory_tools(config))
    registry.register_group("planning", make_planning_tools())
    for alias, target in _ALIASES.items():
        registry.register_alias(alias, target)
    return registry


__all__ = ["ToolRegistry", "ToolInfo", "ToolResult", "make_tools"]
