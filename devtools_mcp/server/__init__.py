"""
MCP server layer.

- session: Session and SessionCache
- mutex: FIFO mutex serializing tool calls
- context: McpContext bound to one browser handle
- dispatch: ToolDispatcher and the low-level MCP Server
- response: McpResponse reply accumulator
- http: Streamable HTTP transport
"""

from devtools_mcp.server.context import McpContext
from devtools_mcp.server.dispatch import ToolDispatcher, ToolReply, build_mcp_server
from devtools_mcp.server.mutex import Guard, Mutex
from devtools_mcp.server.response import McpResponse
from devtools_mcp.server.session import Session, SessionCache, install_shutdown_hooks

__all__ = [
    "Guard",
    "McpContext",
    "McpResponse",
    "Mutex",
    "Session",
    "SessionCache",
    "ToolDispatcher",
    "ToolReply",
    "build_mcp_server",
    "install_shutdown_hooks",
]
