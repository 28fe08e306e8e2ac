"""
Exception types raised across the server.

Connection failures are not typed here: whether a connect error is
recoverable is decided by devtools_mcp.browser.manager.is_recoverable_browser_connect_error.
"""


class DevtoolsMcpError(Exception):
    """Base class for errors raised by devtools_mcp."""


class ProfileLockedError(DevtoolsMcpError):
    """A local launch collided with a browser already running on the profile."""

    def __init__(self, user_data_dir: str):
        self.user_data_dir = user_data_dir
        super().__init__(
            f"The browser is already running for {user_data_dir}. "
            "Use --isolated to run multiple browser instances."
        )


class ConfigValidationError(DevtoolsMcpError):
    """Per-request configuration was rejected before any browser was touched."""


class ToolHandlerError(DevtoolsMcpError):
    """A tool handler or reply finalization failed."""


class PageNotFoundError(DevtoolsMcpError):
    """A tool referenced a page index that is not open."""
