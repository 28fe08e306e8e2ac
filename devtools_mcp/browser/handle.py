"""
BrowserHandle: the live connected or launched browser owned by one Session.

Playwright models a CDP connection as a Browser and a persistent launch as a
BrowserContext without a Browser object; the handle hides that difference
from the rest of the server.
"""

import shutil
from typing import Any, Callable, Optional

from devtools_mcp.utils.logger import get_logger

logger = get_logger(__name__)

_IGNORED_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "chrome-untrusted://",
)
_NEW_TAB_URL = "chrome://newtab/"


def make_target_filter(devtools: bool):
    """Return a predicate deciding which page URLs are exposed to tools."""
    prefixes = _IGNORED_PREFIXES if devtools else _IGNORED_PREFIXES + ("devtools://",)

    def target_filter(url: str) -> bool:
        if url == _NEW_TAB_URL:
            return True
        return not url.startswith(prefixes)

    return target_filter


class BrowserHandle:
    """A connected (``browser``) or launched (``context``) Chrome instance."""

    def __init__(
        self,
        playwright: Any,
        *,
        browser: Any = None,
        context: Any = None,
        endpoint: Optional[str] = None,
        devtools: bool = False,
        launched: bool = False,
        temp_profile_dir: Optional[str] = None,
    ):
        if browser is None and context is None:
            raise ValueError("BrowserHandle needs a browser or a context")
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.endpoint = endpoint
        self.launched = launched
        self.stealth_installed = False
        # Applied to every context this handle creates later on.
        self.init_scripts: list[str] = []
        self._context_listeners: list[Callable[[Any], None]] = []
        self._target_filter = make_target_filter(devtools)
        self._temp_profile_dir = temp_profile_dir
        self._closed = False

        if browser is not None:
            browser.on("disconnected", self._on_gone)
        else:
            context.on("close", self._on_gone)

    def _on_gone(self, *_args) -> None:
        self._closed = True

    def is_connected(self) -> bool:
        if self._closed:
            return False
        if self.browser is not None:
            return self.browser.is_connected()
        return True

    @property
    def contexts(self) -> list[Any]:
        if self.browser is not None:
            return list(self.browser.contexts)
        return [self.context]

    def on_context(self, listener: Callable[[Any], None]) -> None:
        """Call ``listener`` with each browser context created through this handle."""
        self._context_listeners.append(listener)

    def remove_context_listener(self, listener: Callable[[Any], None]) -> None:
        if listener in self._context_listeners:
            self._context_listeners.remove(listener)

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)
        for context in self.contexts:
            await context.add_init_script(script=script)

    def all_pages(self) -> list[Any]:
        return [page for context in self.contexts for page in context.pages]

    def pages(self) -> list[Any]:
        """Open pages, minus internal chrome:// and extension targets."""
        return [page for page in self.all_pages() if self.is_tracked(page)]

    def is_tracked(self, page: Any) -> bool:
        return self._target_filter(page.url)

    async def new_page(self) -> Any:
        contexts = self.contexts
        if contexts:
            return await contexts[0].new_page()
        context = await self.new_context()
        return await context.new_page()

    async def new_context(self) -> Any:
        if self.browser is None:
            raise RuntimeError("A launched browser has a single persistent context")
        context = await self.browser.new_context()
        for script in self.init_scripts:
            await context.add_init_script(script=script)
        for listener in list(self._context_listeners):
            listener(context)
        return context

    async def close(self) -> None:
        """
        Release the browser.

        Launched instances are shut down; connected or attached ones are only
        disconnected so the shared browser keeps running.
        """
        self._closed = True
        try:
            if self.browser is not None:
                await self.browser.close()
            else:
                await self.context.close()
        finally:
            await self.playwright.stop()
            if self._temp_profile_dir:
                shutil.rmtree(self._temp_profile_dir, ignore_errors=True)
        logger.info(f"Browser handle closed ({self.endpoint or 'pipe'})")

    def __repr__(self) -> str:
        kind = "launched" if self.launched else "connected"
        return f"<BrowserHandle {kind} endpoint={self.endpoint!r}>"
