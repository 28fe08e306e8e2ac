"""
Debugging tools: console, network, screenshots and script evaluation.
"""

import json
from typing import Literal, Optional

from pydantic import BaseModel, Field

from devtools_mcp.tools.types import ToolCategory, tool


class TakeScreenshotInput(BaseModel):
    format: Literal["png", "jpeg"] = Field("png", description="Image format")
    quality: Optional[int] = Field(
        None,
        ge=0,
        le=100,
        description="JPEG quality (0-100); ignored for png",
    )
    full_page: bool = Field(
        False,
        description="Capture the full scrollable page instead of the viewport",
    )


class EvaluateScriptInput(BaseModel):
    function: str = Field(
        ...,
        description="A JavaScript function declaration to run in the selected page, e.g. `() => document.title`",
    )


@tool(name="list_console_messages", category=ToolCategory.DEBUGGING, read_only=True)
async def list_console_messages(params, response, context) -> None:
    """List console messages and uncaught errors of the selected page since its last navigation."""
    response.set_include_console_data()


@tool(name="list_network_requests", category=ToolCategory.NETWORK, read_only=True)
async def list_network_requests(params, response, context) -> None:
    """List network requests of the selected page since its last navigation."""
    response.set_include_network_requests()


@tool(
    name="take_screenshot",
    args_schema=TakeScreenshotInput,
    category=ToolCategory.DEBUGGING,
    read_only=True,
)
async def take_screenshot(params: TakeScreenshotInput, response, context) -> None:
    """Take a screenshot of the selected page."""
    page = context.get_selected_page()
    options = {"type": params.format, "full_page": params.full_page}
    if params.format == "jpeg" and params.quality is not None:
        options["quality"] = params.quality
    screenshot = await page.screenshot(**options)
    kind = "full page" if params.full_page else "current viewport"
    response.append_response_line(f"Took a screenshot of the {kind}.")
    response.attach_image(screenshot, f"image/{params.format}")


@tool(name="evaluate_script", args_schema=EvaluateScriptInput, category=ToolCategory.DEBUGGING)
async def evaluate_script(params: EvaluateScriptInput, response, context) -> None:
    """Evaluate a JavaScript function in the selected page and return its JSON-serializable result."""
    page = context.get_selected_page()
    result = await page.evaluate(params.function)
    response.append_response_line("Script ran on page and returned:")
    response.append_response_line("```json")
    response.append_response_line(json.dumps(result, indent=2, default=str))
    response.append_response_line("```")


TOOLS = [list_console_messages, list_network_requests, take_screenshot, evaluate_script]
