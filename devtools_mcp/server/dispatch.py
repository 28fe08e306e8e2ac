"""
Tool dispatch.

ToolDispatcher runs one tool call at a time per session: acquire the
session lock, validate the arguments, resolve the context, run the handler
against a fresh McpResponse, finalize the reply, release the lock. Failures become
error-flagged replies instead of propagating to the transport.
"""

import json
from typing import TYPE_CHECKING, Any, Optional

from mcp import types
from mcp.server.lowlevel import Server
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from devtools_mcp.server.response import ContentBlock, McpResponse
from devtools_mcp.tools.types import ToolDefinition
from devtools_mcp.utils.errors import ToolHandlerError
from devtools_mcp.utils.logger import get_logger, set_log_level

if TYPE_CHECKING:
    from devtools_mcp.server.session import Session

logger = get_logger(__name__)

SERVER_NAME = "chrome_devtools"

# MCP logging levels mapped onto loguru levels.
LOG_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "notice": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
    "alert": "CRITICAL",
    "emergency": "CRITICAL",
}


# ======================================================================
## Tool Reply
# ======================================================================


class ToolReply(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: list[Any] = Field(default_factory=list, description="MCP content blocks.")
    is_error: bool = Field(False, description="True when the call failed.")

    @classmethod
    def error(cls, message: str) -> "ToolReply":
        return cls(content=[types.TextContent(type="text", text=message)], is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(
            block.text for block in self.content if isinstance(block, types.TextContent)
        )


# ======================================================================
## Tool Dispatcher
# ======================================================================


class ToolDispatcher:
    def __init__(self, session: "Session", tools: list[ToolDefinition]):
        self.session = session
        self.tools = tools
        self.tool_map: dict[str, ToolDefinition] = {tool.name: tool for tool in tools}

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolReply:
        tool = self.tool_map.get(name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {name}")
            return ToolReply.error(f"Unknown tool: {name}")
        return await self.session.with_lock(lambda: self._run(tool, arguments))

    async def _run(self, tool: ToolDefinition, arguments: Optional[dict[str, Any]]) -> ToolReply:
        logger.info(f"{tool.name} request: {json.dumps(arguments or {}, default=str)}")
        try:
            params = tool.parse_params(arguments)
            context = await self.session.get_context()
            response = McpResponse()
            await tool.handler(params, response, context)
            content: list[ContentBlock] = await response.handle(tool.name, context)
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {tool.name}: {e}")
            return ToolReply.error(f"Invalid arguments for {tool.name}: {e}")
        except Exception as e:
            logger.error(f"{tool.name} failed: {e}")
            return ToolReply.error(str(e) or e.__class__.__name__)
        return ToolReply(content=content)


def build_mcp_server(session: "Session") -> Server:
    """Expose the session's tools through the MCP low-level Server."""
    server = Server(SERVER_NAME)
    dispatcher = session.dispatcher

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return [tool.to_mcp_tool() for tool in dispatcher.tools]

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> list[ContentBlock]:
        reply = await dispatcher.call_tool(name, arguments)
        if reply.is_error:
            # The SDK reports raised handler errors as isError results.
            raise ToolHandlerError(reply.text)
        return reply.content

    @server.set_logging_level()
    async def handle_set_logging_level(level: types.LoggingLevel) -> None:
        set_log_level(LOG_LEVELS.get(level, "INFO"))
        logger.info(f"Log level set to {level}")

    return server
