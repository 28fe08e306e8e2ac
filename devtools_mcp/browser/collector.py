"""
Per-page event collectors.

A PageCollector keeps one ordered buffer per tracked page and resets it when
the page's main frame navigates. Buffers are never replaced, only mutated in
place, because callers may hold on to the list returned by get_data().

Pages are keyed by identity (``id(page)``) and evicted explicitly when the
page closes, so the tables never outlive the pages they describe.
"""

from typing import Any, Callable, Generic, TypeVar

from devtools_mcp.browser.handle import BrowserHandle

T = TypeVar("T")

Listener = Callable[..., None]
ListenerSet = list[tuple[str, Listener]]
# Given the "append to this page's buffer" callback, return the page events
# to subscribe to.
ListenerFactory = Callable[[Callable[[T], None]], ListenerSet]


class PageCollector(Generic[T]):
    def __init__(self, browser: BrowserHandle, listeners: ListenerFactory):
        self._browser = browser
        self._listeners_initializer = listeners
        self._storage: dict[int, list[T]] = {}
        self._listeners: dict[int, tuple[Any, ListenerSet]] = {}
        self._watched_contexts: list[Any] = []

    async def init(self) -> None:
        for page in self._browser.pages():
            self._initialize_page(page)

        for context in self._browser.contexts:
            self._watch_context(context)
        self._browser.on_context(self._watch_context)

    def add_page(self, page: Any) -> None:
        """Track a page discovered outside the context "page" event."""
        self._initialize_page(page)

    def get_data(self, page: Any) -> list[T]:
        return self._storage.get(id(page), [])

    def is_tracked(self, page: Any) -> bool:
        return id(page) in self._storage

    def dispose(self) -> None:
        """Detach from every context and page; used when the context is rebuilt."""
        self._browser.remove_context_listener(self._watch_context)
        for context in self._watched_contexts:
            context.remove_listener("page", self._on_page_created)
        self._watched_contexts.clear()
        for page_id in list(self._listeners):
            self._unwire(page_id)

    def _watch_context(self, context: Any) -> None:
        context.on("page", self._on_page_created)
        self._watched_contexts.append(context)

    def _on_page_created(self, page: Any) -> None:
        if not self._browser.is_tracked(page):
            return
        self._initialize_page(page)

    def _initialize_page(self, page: Any) -> None:
        page_id = id(page)
        if page_id in self._storage:
            return

        stored: list[T] = []
        self._storage[page_id] = stored

        def collect(item: T) -> None:
            stored.append(item)

        listeners = list(self._listeners_initializer(collect))

        def on_frame_navigated(frame: Any) -> None:
            # Sub-frame navigations keep the buffer.
            if frame != page.main_frame:
                return
            self.cleanup_after_navigation(page)

        def on_close(*_args) -> None:
            self._cleanup_page_destroyed(page)

        listeners.append(("framenavigated", on_frame_navigated))
        listeners.append(("close", on_close))

        for name, listener in listeners:
            page.on(name, listener)
        self._listeners[page_id] = (page, listeners)

    def cleanup_after_navigation(self, page: Any) -> None:
        collection = self._storage.get(id(page))
        if collection is not None:
            del collection[:]

    def _cleanup_page_destroyed(self, page: Any) -> None:
        self._unwire(id(page))

    def _unwire(self, page_id: int) -> None:
        entry = self._listeners.pop(page_id, None)
        self._storage.pop(page_id, None)
        if entry is None:
            return
        page, listeners = entry
        for name, listener in listeners:
            page.remove_listener(name, listener)


def _is_main_frame_navigation(request: Any, page: Any) -> bool:
    try:
        frame = request.frame
    except Exception:
        # Service worker requests have no frame.
        return False
    return frame == page.main_frame and request.is_navigation_request()


class NetworkCollector(PageCollector[Any]):
    """
    Collects requests and keeps the current document's ones across navigation.

    The navigation request is observed before "framenavigated" fires, so
    everything from the last main-frame navigation request onward belongs to
    the new document.
    """

    def cleanup_after_navigation(self, page: Any) -> None:
        requests = self._storage.get(id(page))
        if not requests:
            return
        last_navigation = -1
        for index in range(len(requests) - 1, -1, -1):
            if _is_main_frame_navigation(requests[index], page):
                last_navigation = index
                break
        del requests[: max(last_navigation, 0)]


def console_listeners(collect: Callable[[Any], None]) -> ListenerSet:
    return [
        ("console", collect),
        ("pageerror", collect),
    ]


def network_listeners(collect: Callable[[Any], None]) -> ListenerSet:
    return [("request", collect)]
