"""
Page management tools.
"""

from typing import Optional

from pydantic import BaseModel, Field

from devtools_mcp.tools.types import ToolCategory, tool


class SelectPageInput(BaseModel):
    page_idx: int = Field(
        ...,
        ge=0,
        description="Index of the page to select, as reported by list_pages",
    )


class NewPageInput(BaseModel):
    url: Optional[str] = Field(None, description="URL to load in the new page")


class NavigatePageInput(BaseModel):
    url: str = Field(..., description="URL to navigate the selected page to")
    timeout: Optional[int] = Field(
        None,
        gt=0,
        description="Maximum navigation time in milliseconds",
    )


class ClosePageInput(BaseModel):
    page_idx: int = Field(..., ge=0, description="Index of the page to close")


@tool(name="list_pages", category=ToolCategory.NAVIGATION, read_only=True)
async def list_pages(params, response, context) -> None:
    """Get a list of pages open in the browser."""
    response.set_include_pages()


@tool(name="select_page", args_schema=SelectPageInput, category=ToolCategory.NAVIGATION)
async def select_page(params: SelectPageInput, response, context) -> None:
    """Select a page as the context for future tool calls."""
    page = context.select_page(params.page_idx)
    await page.bring_to_front()
    response.set_include_pages()


@tool(name="new_page", args_schema=NewPageInput, category=ToolCategory.NAVIGATION)
async def new_page(params: NewPageInput, response, context) -> None:
    """Open a new page, optionally loading a URL, and select it."""
    await context.new_page(params.url)
    response.set_include_pages()


@tool(name="navigate_page", args_schema=NavigatePageInput, category=ToolCategory.NAVIGATION)
async def navigate_page(params: NavigatePageInput, response, context) -> None:
    """Navigate the currently selected page to a URL."""
    page = context.get_selected_page()
    result = await page.goto(params.url, timeout=params.timeout)
    status = result.status if result is not None else "n/a"
    response.append_response_line(f"Navigated to {page.url} (status: {status}).")
    response.set_include_pages()


@tool(name="close_page", args_schema=ClosePageInput, category=ToolCategory.NAVIGATION)
async def close_page(params: ClosePageInput, response, context) -> None:
    """Close the page at the given index. The last open page cannot be closed."""
    await context.close_page(params.page_idx)
    response.set_include_pages()


TOOLS = [list_pages, select_page, new_page, navigate_page, close_page]
