"""
McpContext: state derived from one BrowserHandle.

A context is bound to exactly one handle. When the broker hands a Session a
different handle (the previous browser disconnected), the Session disposes
the old context and builds a new one with from_browser().
"""

from typing import Any, Optional

from devtools_mcp.browser.collector import (
    NetworkCollector,
    PageCollector,
    console_listeners,
    network_listeners,
)
from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.utils.errors import PageNotFoundError
from devtools_mcp.utils.logger import get_logger

logger = get_logger(__name__)


class McpContext:
    def __init__(self, browser: BrowserHandle):
        self.browser = browser
        self._console_collector: PageCollector[Any] = PageCollector(browser, console_listeners)
        self._network_collector = NetworkCollector(browser, network_listeners)
        self._selected_page_index = 0

    @classmethod
    async def from_browser(cls, browser: BrowserHandle) -> "McpContext":
        context = cls(browser)
        await context._init()
        return context

    async def _init(self) -> None:
        await self._console_collector.init()
        await self._network_collector.init()
        logger.debug(f"Context bound to {self.browser!r} with {len(self.pages())} page(s)")

    def dispose(self) -> None:
        self._console_collector.dispose()
        self._network_collector.dispose()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def pages(self) -> list[Any]:
        return [page for page in self.browser.pages() if not page.is_closed()]

    def get_page_by_index(self, index: int) -> Any:
        pages = self.pages()
        if index < 0 or index >= len(pages):
            raise PageNotFoundError(f"No page found with index {index}")
        return pages[index]

    def get_selected_page_index(self) -> int:
        return self._selected_page_index

    def get_selected_page(self) -> Any:
        pages = self.pages()
        if not pages:
            raise PageNotFoundError("No open pages. Use new_page to open one.")
        if self._selected_page_index >= len(pages):
            self._selected_page_index = 0
        return pages[self._selected_page_index]

    def select_page(self, index: int) -> Any:
        page = self.get_page_by_index(index)
        self._selected_page_index = index
        return page

    async def new_page(self, url: Optional[str] = None) -> Any:
        page = await self.browser.new_page()
        # The context "page" event may not have been delivered yet.
        self._console_collector.add_page(page)
        self._network_collector.add_page(page)
        if url:
            await page.goto(url)
        pages = self.pages()
        self._selected_page_index = pages.index(page) if page in pages else 0
        return page

    async def close_page(self, index: int) -> None:
        pages = self.pages()
        if len(pages) <= 1:
            raise PageNotFoundError("The last open page cannot be closed.")
        page = self.get_page_by_index(index)
        await page.close()
        self._selected_page_index = 0

    # ------------------------------------------------------------------
    # Collected data
    # ------------------------------------------------------------------

    def get_console_data(self, page: Any = None) -> list[Any]:
        return self._console_collector.get_data(page or self.get_selected_page())

    def get_network_requests(self, page: Any = None) -> list[Any]:
        return self._network_collector.get_data(page or self.get_selected_page())
