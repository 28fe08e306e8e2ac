"""
Browser tools exposed over MCP.

Tools:
- list_pages / select_page / new_page / navigate_page / close_page
- list_console_messages / list_network_requests
- take_screenshot / evaluate_script
"""

from devtools_mcp.tools.registry import get_tool_map, get_tool_registry
from devtools_mcp.tools.types import ToolAnnotations, ToolCategory, ToolDefinition, tool

__all__ = [
    "ToolAnnotations",
    "ToolCategory",
    "ToolDefinition",
    "get_tool_map",
    "get_tool_registry",
    "tool",
]
