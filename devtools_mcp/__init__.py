"""
devtools-mcp: an MCP server giving tool calls serialized access to a Chrome
browser through Playwright.
"""

__version__ = "0.1.0"
