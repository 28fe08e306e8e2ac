"""
McpResponse: the per-call reply accumulator handed to tool handlers.

Handlers append lines, attach images and ask for context sections; handle()
renders everything into MCP content blocks once the handler returns.
"""

import base64
from typing import TYPE_CHECKING, Any, Union

from mcp.types import ImageContent, TextContent

if TYPE_CHECKING:
    from devtools_mcp.server.context import McpContext

ContentBlock = Union[TextContent, ImageContent]


def format_console_event(event: Any) -> str:
    """One line for a ConsoleMessage or an uncaught page error."""
    if isinstance(event, BaseException) or not hasattr(event, "text"):
        message = getattr(event, "message", None) or str(event)
        return f"error> Uncaught {message}"
    location = getattr(event, "location", None) or {}
    source = location.get("url") if isinstance(location, dict) else None
    suffix = f" ({source})" if source else ""
    return f"{event.type}> {event.text}{suffix}"


def format_network_request(index: int, request: Any) -> str:
    failure = request.failure
    status = f" [failed - {failure}]" if failure else ""
    return f"reqid={index} {request.method} {request.url} ({request.resource_type}){status}"


class McpResponse:
    def __init__(self):
        self._lines: list[str] = []
        self._images: list[tuple[str, str]] = []
        self._include_pages = False
        self._include_console_data = False
        self._include_network_requests = False

    @property
    def response_lines(self) -> list[str]:
        return list(self._lines)

    @property
    def images(self) -> list[tuple[str, str]]:
        return list(self._images)

    def append_response_line(self, line: str) -> None:
        self._lines.append(line)

    def attach_image(self, data: Union[bytes, str], mime_type: str) -> None:
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode()
        self._images.append((data, mime_type))

    def set_include_pages(self, value: bool = True) -> None:
        self._include_pages = value

    def set_include_console_data(self, value: bool = True) -> None:
        self._include_console_data = value

    def set_include_network_requests(self, value: bool = True) -> None:
        self._include_network_requests = value

    async def handle(self, tool_name: str, context: "McpContext") -> list[ContentBlock]:
        parts = [f"# {tool_name} response", *self._lines]

        if self._include_pages:
            parts.append("## Pages")
            selected = context.get_selected_page_index()
            for index, page in enumerate(context.pages()):
                marker = " [selected]" if index == selected else ""
                parts.append(f"{index}: {page.url}{marker}")

        if self._include_console_data:
            parts.append("## Console messages")
            messages = context.get_console_data()
            if messages:
                parts.extend(format_console_event(message) for message in messages)
            else:
                parts.append("<no console messages found>")

        if self._include_network_requests:
            parts.append("## Network requests")
            requests = context.get_network_requests()
            if requests:
                parts.extend(
                    format_network_request(index, request)
                    for index, request in enumerate(requests)
                )
            else:
                parts.append("No requests found.")

        content: list[ContentBlock] = [TextContent(type="text", text="\n".join(parts))]
        for data, mime_type in self._images:
            content.append(ImageContent(type="image", data=data, mimeType=mime_type))
        return content
