"""
Browser access layer.

- handle: BrowserHandle wrapping Playwright's Browser / BrowserContext
- launcher: local launch, profile sidecar attach, CDP connect
- manager: connect-or-launch resolution with recoverable-error fallback
- stealth: one-time init script installation
- collector: per-page console / network buffers
"""

from devtools_mcp.browser.collector import (
    NetworkCollector,
    PageCollector,
    console_listeners,
    network_listeners,
)
from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.browser.launcher import LaunchOptions, ensure_browser_connected, launch
from devtools_mcp.browser.manager import (
    ConnectOrLaunchOptions,
    connect_or_launch_browser,
    is_recoverable_browser_connect_error,
)
from devtools_mcp.browser.stealth import install_stealth

__all__ = [
    "BrowserHandle",
    "ConnectOrLaunchOptions",
    "LaunchOptions",
    "NetworkCollector",
    "PageCollector",
    "connect_or_launch_browser",
    "console_listeners",
    "ensure_browser_connected",
    "install_stealth",
    "is_recoverable_browser_connect_error",
    "launch",
    "network_listeners",
]
