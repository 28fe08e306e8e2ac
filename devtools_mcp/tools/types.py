"""
Type definitions for tools.

This module provides:
- ToolCategory / ToolAnnotations: metadata advertised to MCP clients
- ToolDefinition: a Pydantic model binding a name, input schema and handler
- tool: decorator turning an async handler into a ToolDefinition
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from mcp import types
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from devtools_mcp.server.context import McpContext
    from devtools_mcp.server.response import McpResponse

ToolHandler = Callable[[Any, "McpResponse", "McpContext"], Awaitable[None]]


class ToolCategory(str, Enum):
    NAVIGATION = "navigation"
    DEBUGGING = "debugging"
    NETWORK = "network"


class ToolAnnotations(BaseModel):
    category: ToolCategory = Field(..., description="Group the tool is listed under.")
    read_only_hint: bool = Field(
        False,
        description="True when the tool does not change browser state.",
    )


class ToolDefinition(BaseModel):
    """A tool with its input schema and handler."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Tool name exposed to MCP clients")
    description: str = Field(..., description="Description shown to the model")
    args_schema: type[BaseModel] = Field(..., description="Pydantic model for the arguments")
    annotations: ToolAnnotations
    handler: Callable[..., Awaitable[None]]

    def parse_params(self, arguments: Optional[dict[str, Any]]) -> BaseModel:
        return self.args_schema.model_validate(arguments or {})

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.args_schema.model_json_schema(),
            annotations=types.ToolAnnotations(
                title=self.annotations.category.value,
                readOnlyHint=self.annotations.read_only_hint,
            ),
        )


class EmptyInput(BaseModel):
    """Input for tools that take no arguments."""


def tool(
    name: str,
    args_schema: type[BaseModel] = EmptyInput,
    category: ToolCategory = ToolCategory.NAVIGATION,
    read_only: bool = False,
) -> Callable[[ToolHandler], ToolDefinition]:
    """
    Register an async ``handler(params, response, context)`` as a tool.

    The handler's docstring becomes the tool description.

    Example:
        @tool(name="list_pages", read_only=True)
        async def list_pages(params, response, context):
            response.set_include_pages()
    """

    def decorator(handler: ToolHandler) -> ToolDefinition:
        description = (handler.__doc__ or "").strip()
        return ToolDefinition(
            name=name,
            description=description,
            args_schema=args_schema,
            annotations=ToolAnnotations(category=category, read_only_hint=read_only),
            handler=handler,
        )

    return decorator
