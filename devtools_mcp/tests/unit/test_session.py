"""
Tests for devtools_mcp.server.session.

Coverage:
- cache keys and single construction per key
- failed construction is not cached
- discard / close_all
- context binding follows the browser handle
"""

import asyncio

import pytest

from fakes import FakeBroker, FakeConsoleMessage, make_handle

from devtools_mcp.server.session import Session, SessionCache
from devtools_mcp.utils.config import ServerConfig
from devtools_mcp.utils.errors import ConfigValidationError


def make_session(config: ServerConfig, *handles) -> Session:
    return Session(config, connect_or_launch=FakeBroker(*handles))


# ======================================================================
# SessionCache
# ======================================================================


class TestSessionCache:
    @pytest.mark.asyncio
    async def test_equivalent_configs_share_a_session(self):
        cache = SessionCache(lambda config: make_session(config))
        first = await cache.get_or_create(
            ServerConfig.model_validate({"headless": True, "viewport": "800x600"})
        )
        second = await cache.get_or_create(
            ServerConfig.model_validate({"viewport": {"width": 800, "height": 600}, "headless": True})
        )

        assert first is second
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_different_configs_get_different_sessions(self):
        cache = SessionCache(lambda config: make_session(config))

        first = await cache.get_or_create(ServerConfig(headless=True))
        second = await cache.get_or_create(ServerConfig(headless=False))

        assert first is not second
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_build_one_session(self):
        calls = 0

        async def factory(config):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return make_session(config)

        cache = SessionCache(factory)
        config = ServerConfig(isolated=True)

        sessions = await asyncio.gather(*(cache.get_or_create(config) for _ in range(5)))

        assert calls == 1
        assert all(session is sessions[0] for session in sessions)

    @pytest.mark.asyncio
    async def test_failed_construction_is_not_cached(self):
        attempts = 0

        def factory(config):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise ValueError("bad executable path")
            return make_session(config)

        cache = SessionCache(factory)
        config = ServerConfig(executablePath="/nope")

        with pytest.raises(ConfigValidationError, match="bad executable path"):
            await cache.get_or_create(config)
        assert len(cache) == 0

        session = await cache.get_or_create(config)
        assert cache.get(config.cache_key()) is session

    @pytest.mark.asyncio
    async def test_discard_closes_and_removes(self):
        cache = SessionCache(lambda config: make_session(config))
        config = ServerConfig(headless=True)
        session = await cache.get_or_create(config)

        cache.discard(config.cache_key())

        assert session.closed
        assert config.cache_key() not in cache

    @pytest.mark.asyncio
    async def test_close_all_closes_every_session(self):
        cache = SessionCache(lambda config: make_session(config))
        sessions = [
            await cache.get_or_create(ServerConfig(headless=True)),
            await cache.get_or_create(ServerConfig(headless=False)),
        ]

        cache.close_all()

        assert len(cache) == 0
        assert all(session.closed for session in sessions)

    @pytest.mark.asyncio
    async def test_aclose_all_closes_browsers(self):
        handle = make_handle("https://example.com/")
        cache = SessionCache(lambda config: make_session(config, handle))
        session = await cache.get_or_create(ServerConfig())
        await session.get_context()

        await cache.aclose_all()

        assert session.closed
        assert handle.playwright.stopped
        assert not handle.is_connected()

    @pytest.mark.asyncio
    async def test_aclose_all_waits_for_browsers_detached_by_close_all(self):
        handle = make_handle("https://example.com/")
        closed = []

        async def slow_close():
            await asyncio.sleep(0.01)
            closed.append(handle)

        handle.close = slow_close
        cache = SessionCache(lambda config: make_session(config, handle))
        session = await cache.get_or_create(ServerConfig())
        await session.get_context()

        # a signal handler runs the synchronous close first
        cache.close_all()
        assert closed == []

        await cache.aclose_all()

        assert closed == [handle]


# ======================================================================
# Session
# ======================================================================


class TestSession:
    @pytest.mark.asyncio
    async def test_context_is_reused_while_handle_is_connected(self):
        handle = make_handle("https://example.com/")
        session = make_session(ServerConfig(), handle)

        first = await session.get_context()
        second = await session.get_context()

        assert first is second
        assert first.browser is handle
        assert session.browser is handle

    @pytest.mark.asyncio
    async def test_context_is_rebuilt_when_handle_changes(self):
        old = make_handle("https://old.test/")
        new = make_handle("https://new.test/")
        session = make_session(ServerConfig(), old, new)
        old_context = await session.get_context()
        old_page = old.pages()[0]

        old.context.emit("close", old.context)
        new_context = await session.get_context()

        assert new_context is not old_context
        assert new_context.browser is new
        assert old_page.listener_count() == 0
        assert [page.url for page in new_context.pages()] == ["https://new.test/"]

    @pytest.mark.asyncio
    async def test_broker_receives_current_handle_and_args(self):
        handle = make_handle()
        broker = FakeBroker(handle)
        session = Session(
            ServerConfig(browserUrl="http://127.0.0.1:9222", chromeArg=["--lang=de"]),
            connect_or_launch=broker,
        )

        await session.get_context()
        await session.get_context()

        assert broker.calls[0].current_browser is None
        assert broker.calls[1].current_browser is handle
        assert broker.calls[0].browser_url == "http://127.0.0.1:9222"
        assert broker.calls[0].chrome_args == ["--lang=de"]

    @pytest.mark.asyncio
    async def test_collected_console_messages_reach_the_context(self):
        handle = make_handle("https://example.com/")
        session = make_session(ServerConfig(), handle)
        context = await session.get_context()

        handle.pages()[0].emit("console", FakeConsoleMessage("hi"))

        assert [m.text for m in context.get_console_data()] == ["hi"]

    @pytest.mark.asyncio
    async def test_with_lock_releases_on_error(self):
        session = make_session(ServerConfig())

        async def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await session.with_lock(fail)

        assert not session.mutex.locked

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_schedules_browser_close(self):
        handle = make_handle()
        session = make_session(ServerConfig(), handle)
        await session.get_context()

        session.close()
        session.close()
        await asyncio.sleep(0)

        assert session.closed
        assert session.context is None
        assert handle.playwright.stopped

    def test_close_without_running_loop(self):
        session = make_session(ServerConfig())

        session.close()

        assert session.closed

    def test_http_and_stdio_defaults(self):
        config = ServerConfig()

        assert Session(config).args.headless is False
        assert config.resolve(headless_default=True, isolated_default=True).isolated is True
