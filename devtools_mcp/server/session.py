"""
Sessions and the session cache.

A Session owns everything one configuration needs: its browser handle slot,
the McpContext bound to that handle, a FIFO mutex serializing tool calls and
the MCP server exposing the tools. Sessions are cached by the configuration's
canonical key so equivalent configurations share one browser.
"""

import asyncio
import atexit
import inspect
import signal
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.browser.manager import ConnectOrLaunchOptions, connect_or_launch_browser
from devtools_mcp.server.context import McpContext
from devtools_mcp.server.dispatch import ToolDispatcher, build_mcp_server
from devtools_mcp.server.mutex import Mutex
from devtools_mcp.tools.registry import get_tool_registry
from devtools_mcp.tools.types import ToolDefinition
from devtools_mcp.utils.config import ResolvedArgs, ServerConfig
from devtools_mcp.utils.errors import ConfigValidationError
from devtools_mcp.utils.logger import (
    get_logger,
    save_logs_to_file,
    session_scope,
    stop_saving_logs,
)

logger = get_logger(__name__)

T = TypeVar("T")

ConnectOrLaunch = Callable[[ConnectOrLaunchOptions], Awaitable[BrowserHandle]]
SessionFactory = Callable[[ServerConfig], Union["Session", Awaitable["Session"]]]

DISCLAIMER = (
    "chrome-devtools-mcp exposes content of the browser instance to the MCP clients "
    "allowing them to inspect, debug, and modify any data in the browser or DevTools. "
    "Avoid sharing sensitive or personal information that you do not want to share "
    "with MCP clients."
)

_background_tasks: set[asyncio.Task] = set()


# ======================================================================
## Session
# ======================================================================


class Session:
    def __init__(
        self,
        config: ServerConfig,
        args: Optional[ResolvedArgs] = None,
        tools: Optional[list[ToolDefinition]] = None,
        connect_or_launch: Optional[ConnectOrLaunch] = None,
    ):
        self.config = config
        self.args = args or config.resolve(headless_default=False, isolated_default=False)
        self.key = config.cache_key()
        self.mutex = Mutex()
        self.closed = False
        self._disclaimers_shown = False

        self._connect_or_launch = connect_or_launch or connect_or_launch_browser
        self._browser: Optional[BrowserHandle] = None
        self._context: Optional[McpContext] = None
        self._log_sink: Optional[int] = None
        if self.args.log_file:
            self._log_sink = save_logs_to_file(self.args.log_file, session=self.key)

        self.dispatcher = ToolDispatcher(self, tools if tools is not None else get_tool_registry())
        self.server = build_mcp_server(self)

    def log_disclaimers(self) -> None:
        """Log the usage disclaimer the first time a client connects."""
        if self._disclaimers_shown:
            return
        self._disclaimers_shown = True
        logger.warning(DISCLAIMER)

    @property
    def browser(self) -> Optional[BrowserHandle]:
        return self._browser

    @property
    def context(self) -> Optional[McpContext]:
        return self._context

    async def with_lock(self, fn: Callable[[], Awaitable[T]]) -> T:
        with session_scope(self.key):
            guard = await self.mutex.acquire()
            try:
                return await fn()
            finally:
                guard.dispose()

    async def get_context(self) -> McpContext:
        """
        Resolve the browser handle and return the context bound to it.

        The broker reuses the held handle while it is connected. When it
        returns a different handle the old context's collectors are
        disposed and a new context is built over the new handle.
        """
        handle = await self._connect_or_launch(
            ConnectOrLaunchOptions.from_args(self.args, current_browser=self._browser)
        )
        previous = self._browser
        self._browser = handle
        if previous is not None and previous is not handle:
            logger.info(f"Browser handle replaced: {previous!r} -> {handle!r}")
            await _close_handle(previous)

        if self._context is None or self._context.browser is not handle:
            if self._context is not None:
                self._context.dispose()
            self._context = await McpContext.from_browser(handle)
        return self._context

    async def aclose(self) -> None:
        browser = self._detach()
        if browser is not None:
            await _close_handle(browser)

    def close(self) -> Optional[asyncio.Task]:
        """
        Close synchronously.

        The browser handle is closed by a task on the running event loop when
        there is one, and that task is returned so the caller can await it.
        At interpreter exit the Playwright driver goes down with the process
        instead.
        """
        browser = self._detach()
        if browser is None:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, leaving {browser!r} to process exit")
            return None
        task = loop.create_task(_close_handle(browser))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return task

    def _detach(self) -> Optional[BrowserHandle]:
        if self.closed:
            return None
        self.closed = True
        if self._context is not None:
            self._context.dispose()
            self._context = None
        if self._log_sink is not None:
            stop_saving_logs(self._log_sink)
            self._log_sink = None
        browser, self._browser = self._browser, None
        logger.debug(f"Session closed: {self.key}")
        return browser


async def _close_handle(handle: BrowserHandle) -> None:
    try:
        await handle.close()
    except Exception as e:
        logger.debug(f"Closing {handle!r} failed: {e}")


# ======================================================================
## Session Cache
# ======================================================================


class SessionCache:
    """Sessions keyed by ServerConfig.cache_key()."""

    def __init__(self, factory: SessionFactory):
        self._factory = factory
        self._sessions: dict[str, Session] = {}
        self._creation_locks: dict[str, asyncio.Lock] = {}
        self._pending_closes: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        return key in self._sessions

    def get(self, key: str) -> Optional[Session]:
        return self._sessions.get(key)

    async def get_or_create(self, config: ServerConfig) -> Session:
        """
        Return the cached session for ``config``, creating it on first use.

        Concurrent first requests for one key build a single session. A
        factory failure is raised as ConfigValidationError and nothing is
        cached.
        """
        key = config.cache_key()
        session = self._sessions.get(key)
        if session is not None:
            return session

        lock = self._creation_locks.setdefault(key, asyncio.Lock())
        async with lock:
            session = self._sessions.get(key)
            if session is not None:
                return session
            try:
                result = self._factory(config)
                if inspect.isawaitable(result):
                    result = await result
            except ConfigValidationError:
                raise
            except Exception as e:
                logger.error(f"Failed to create session for {key}: {e}")
                raise ConfigValidationError(str(e)) from e
            self._sessions[key] = result
            logger.info(f"Session created ({len(self._sessions)} cached): {key}")
            return result

    def discard(self, key: str) -> None:
        session = self._sessions.pop(key, None)
        self._creation_locks.pop(key, None)
        if session is not None:
            self._track(session.close())

    def _track(self, task: Optional[asyncio.Task]) -> None:
        if task is None:
            return
        self._pending_closes.add(task)
        task.add_done_callback(self._pending_closes.discard)

    def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._creation_locks.clear()
        for session in sessions:
            try:
                self._track(session.close())
            except Exception as e:
                logger.error(f"Failed to close session {session.key}: {e}")

    async def aclose_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._creation_locks.clear()
        for session in sessions:
            await session.aclose()
        # handles detached by close_all / discard are still closing
        pending = list(self._pending_closes)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def install_shutdown_hooks(cache: SessionCache) -> None:
    """Close every cached session at exit and on SIGINT / SIGTERM."""
    atexit.register(cache.close_all)

    for signum in (signal.SIGINT, signal.SIGTERM):
        previous = signal.getsignal(signum)

        def handler(received: int, frame: Any, previous: Any = previous) -> None:
            cache.close_all()
            if callable(previous):
                previous(received, frame)
            else:
                raise SystemExit(128 + received)

        signal.signal(signum, handler)
