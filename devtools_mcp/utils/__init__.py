"""
Utility modules shared by the server.

- logger: Structured logging with loguru
- config: Per-session configuration and environment settings
- errors: Exception types
"""

from devtools_mcp.utils.logger import LoggerManager, get_logger, set_log_level
from devtools_mcp.utils.config import ResolvedArgs, ServerConfig, Viewport, parse_viewport
from devtools_mcp.utils.errors import (
    ConfigValidationError,
    DevtoolsMcpError,
    PageNotFoundError,
    ProfileLockedError,
    ToolHandlerError,
)

__all__ = [
    # Logger
    "get_logger",
    "set_log_level",
    "LoggerManager",
    # Config
    "ResolvedArgs",
    "ServerConfig",
    "Viewport",
    "parse_viewport",
    # Errors
    "ConfigValidationError",
    "DevtoolsMcpError",
    "PageNotFoundError",
    "ProfileLockedError",
    "ToolHandlerError",
]
