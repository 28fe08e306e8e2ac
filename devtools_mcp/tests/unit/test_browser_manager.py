"""
Tests for devtools_mcp.browser.manager.

Coverage:
- reuse of a connected handle
- fallback to a managed launch on recoverable connect errors
- non-recoverable errors propagate without launching
- classification of connection errors
"""

import errno

import pytest
from playwright.async_api import Error as PlaywrightError

from devtools_mcp.browser.launcher import LaunchOptions
from devtools_mcp.browser.manager import (
    ConnectOrLaunchOptions,
    connect_or_launch_browser,
    is_recoverable_browser_connect_error,
)
from devtools_mcp.utils.config import ServerConfig, Viewport


class StubHandle:
    def __init__(self, connected: bool = True):
        self.connected = connected

    def is_connected(self) -> bool:
        return self.connected


class CodedError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


async def _never_connect(browser_url, devtools):
    raise AssertionError("connect should not be called")


async def _never_launch(options):
    raise AssertionError("launch should not be called")


class TestConnectOrLaunchBrowser:
    @pytest.mark.asyncio
    async def test_reuses_connected_browser(self):
        existing = StubHandle()

        result = await connect_or_launch_browser(
            ConnectOrLaunchOptions(current_browser=existing),
            connect_existing=_never_connect,
            launch_browser=_never_launch,
        )

        assert result is existing

    @pytest.mark.asyncio
    async def test_replaces_disconnected_browser(self):
        launched = StubHandle()

        async def launch_browser(options):
            return launched

        result = await connect_or_launch_browser(
            ConnectOrLaunchOptions(current_browser=StubHandle(connected=False)),
            connect_existing=_never_connect,
            launch_browser=launch_browser,
        )

        assert result is launched

    @pytest.mark.asyncio
    async def test_connects_to_browser_url(self):
        connected = StubHandle()
        calls = []

        async def connect_existing(browser_url, devtools):
            calls.append((browser_url, devtools))
            return connected

        result = await connect_or_launch_browser(
            ConnectOrLaunchOptions(browser_url="http://127.0.0.1:9222", devtools=True),
            connect_existing=connect_existing,
            launch_browser=_never_launch,
        )

        assert result is connected
        assert calls == [("http://127.0.0.1:9222", True)]

    @pytest.mark.asyncio
    async def test_launches_managed_browser_when_remote_is_unavailable(self):
        logs: list[str] = []
        launched = StubHandle()
        forwarded: list[LaunchOptions] = []
        connect_calls = 0

        async def connect_existing(browser_url, devtools):
            nonlocal connect_calls
            connect_calls += 1
            raise CodedError("connect ECONNREFUSED 127.0.0.1:9222", "ECONNREFUSED")

        async def launch_browser(options):
            forwarded.append(options)
            return launched

        options = ConnectOrLaunchOptions(
            browser_url="http://127.0.0.1:9222",
            headless=True,
            executable_path="/custom/chrome",
            custom_devtools="/tmp/devtools",
            channel="beta",
            isolated=False,
            log_file="/tmp/devtools-mcp.log",
            viewport=Viewport(width=1440, height=900),
            chrome_args=["--proxy-server=http://proxy.local:8080"],
            accept_insecure_certs=True,
            devtools=True,
        )

        result = await connect_or_launch_browser(
            options,
            connect_existing=connect_existing,
            launch_browser=launch_browser,
            log=logs.append,
        )

        assert result is launched
        assert connect_calls == 1
        assert len(logs) == 1
        assert "Unable to connect to Chrome at http://127.0.0.1:9222" in logs[0]
        assert logs[0].endswith("Launching a managed browser instead.")
        assert forwarded == [
            LaunchOptions(
                headless=True,
                executable_path="/custom/chrome",
                custom_devtools="/tmp/devtools",
                channel="beta",
                isolated=False,
                log_file="/tmp/devtools-mcp.log",
                viewport=Viewport(width=1440, height=900),
                args=["--proxy-server=http://proxy.local:8080"],
                accept_insecure_certs=True,
                devtools=True,
            )
        ]

    @pytest.mark.asyncio
    async def test_launches_when_playwright_connection_is_refused(self):
        launched = StubHandle()

        async def connect_existing(browser_url, devtools):
            raise PlaywrightError(
                "BrowserType.connect_over_cdp: connect ECONNREFUSED 127.0.0.1:9222"
            )

        async def launch_browser(options):
            return launched

        result = await connect_or_launch_browser(
            ConnectOrLaunchOptions(browser_url="http://127.0.0.1:9222"),
            connect_existing=connect_existing,
            launch_browser=launch_browser,
            log=lambda message: None,
        )

        assert result is launched

    @pytest.mark.asyncio
    async def test_rethrows_non_recoverable_errors(self):
        error = RuntimeError("authentication failed")
        launch_calls = 0

        async def connect_existing(browser_url, devtools):
            raise error

        async def launch_browser(options):
            nonlocal launch_calls
            launch_calls += 1
            return StubHandle()

        with pytest.raises(RuntimeError) as exc_info:
            await connect_or_launch_browser(
                ConnectOrLaunchOptions(browser_url="http://127.0.0.1:9222"),
                connect_existing=connect_existing,
                launch_browser=launch_browser,
                log=lambda message: None,
            )

        assert exc_info.value is error
        assert launch_calls == 0

    @pytest.mark.asyncio
    async def test_launch_defaults_to_stable_channel(self):
        forwarded: list[LaunchOptions] = []

        async def launch_browser(options):
            forwarded.append(options)
            return StubHandle()

        await connect_or_launch_browser(ConnectOrLaunchOptions(), launch_browser=launch_browser)

        assert forwarded[0].channel == "stable"

    def test_options_from_resolved_args(self):
        args = ServerConfig(
            browserUrl="ws://127.0.0.1:9222/devtools/browser/x",
            proxyServer="http://proxy:1",
            chromeArg=["--lang=de"],
            viewport="800x600",
            experimentalDevtools=True,
        ).resolve()
        current = StubHandle()

        options = ConnectOrLaunchOptions.from_args(args, current_browser=current)

        assert options.browser_url == "ws://127.0.0.1:9222/devtools/browser/x"
        assert options.chrome_args == ["--lang=de", "--proxy-server=http://proxy:1"]
        assert options.viewport == Viewport(width=800, height=600)
        assert options.devtools is True
        assert options.current_browser is current


class TestIsRecoverableBrowserConnectError:
    @pytest.mark.parametrize(
        "code",
        ["ECONNREFUSED", "ERR_CONNECTION_REFUSED", "ECONNRESET", "EHOSTUNREACH", "ENOTFOUND", "ETIMEDOUT"],
    )
    def test_recoverable_codes(self, code):
        assert is_recoverable_browser_connect_error(CodedError("boom", code))

    def test_recoverable_errno(self):
        error = ConnectionRefusedError(errno.ECONNREFUSED, "refused")
        assert is_recoverable_browser_connect_error(error)

    @pytest.mark.parametrize(
        "message",
        [
            "Failed to fetch target closed",
            "connect: Connection refused",
            "WebSocket error: Connection closed",
            "Timed out after 30000ms",
            "Unexpected status 404 when connecting",
        ],
    )
    def test_recoverable_messages(self, message):
        assert is_recoverable_browser_connect_error(RuntimeError(message))

    @pytest.mark.parametrize(
        "message",
        [
            "BrowserType.connect_over_cdp: connect ECONNREFUSED 127.0.0.1:36383\nCall log:\n  - <ws preparing> retrieving websocket url from http://127.0.0.1:36383",
            "BrowserType.connect_over_cdp: net::ERR_CONNECTION_REFUSED at http://127.0.0.1:9222/json/version",
            "BrowserType.connect_over_cdp: getaddrinfo ENOTFOUND chrome.internal",
        ],
    )
    def test_playwright_errors_carry_codes_in_the_message(self, message):
        error = PlaywrightError(message)

        assert getattr(error, "code", None) is None
        assert error.__cause__ is None
        assert is_recoverable_browser_connect_error(error)

    def test_code_must_be_a_whole_word(self):
        assert not is_recoverable_browser_connect_error(RuntimeError("XECONNREFUSEDX"))

    def test_non_recoverable(self):
        assert not is_recoverable_browser_connect_error(RuntimeError("permission denied"))
        assert not is_recoverable_browser_connect_error(RuntimeError("HTTP 503 Service Unavailable"))

    def test_plain_strings(self):
        assert is_recoverable_browser_connect_error("connection refused")
        assert not is_recoverable_browser_connect_error("bad handshake")

    def test_walks_cause_chain(self):
        try:
            try:
                raise CodedError("socket", "ECONNRESET")
            except CodedError as inner:
                raise RuntimeError("wrapper") from inner
        except RuntimeError as outer:
            assert is_recoverable_browser_connect_error(outer)

    def test_cause_attribute(self):
        error = RuntimeError("wrapper")
        error.cause = RuntimeError("connect: connection refused")
        assert is_recoverable_browser_connect_error(error)

    def test_cyclic_cause_chain_terminates(self):
        first = RuntimeError("first")
        second = RuntimeError("second")
        first.cause = second
        second.cause = first

        assert not is_recoverable_browser_connect_error(first)
