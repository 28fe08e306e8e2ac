"""
Tool registry.

This module provides:
- get_tool_registry: every tool a Session exposes
- get_tool_map: the same tools keyed by name
"""

from devtools_mcp.tools import debugging, pages
from devtools_mcp.tools.types import ToolDefinition


def get_tool_registry() -> list[ToolDefinition]:
    tools: list[ToolDefinition] = []
    tools.extend(pages.TOOLS)
    tools.extend(debugging.TOOLS)
    return tools


def get_tool_map() -> dict[str, ToolDefinition]:
    registry = get_tool_registry()
    tool_map = {tool.name: tool for tool in registry}
    if len(tool_map) != len(registry):
        raise ValueError("Duplicate tool names in registry")
    return tool_map
