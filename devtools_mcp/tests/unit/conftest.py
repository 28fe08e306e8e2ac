import pytest

from fakes import FakeBrowser, FakeContext, FakePlaywright

from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.utils.config import ServerConfig


@pytest.fixture
def fake_playwright() -> FakePlaywright:
    return FakePlaywright()


@pytest.fixture
def fake_context() -> FakeContext:
    return FakeContext(urls=("https://example.com/",))


@pytest.fixture
def launched_handle(fake_playwright, fake_context) -> BrowserHandle:
    """A handle over a launched persistent context with one open page."""
    return BrowserHandle(
        fake_playwright,
        context=fake_context,
        endpoint="ws://127.0.0.1:9222/devtools/browser/abc",
        launched=True,
    )


@pytest.fixture
def connected_handle(fake_playwright) -> BrowserHandle:
    browser = FakeBrowser([FakeContext(urls=("https://example.com/", "chrome://settings/"))])
    return BrowserHandle(fake_playwright, browser=browser, endpoint="http://127.0.0.1:9222")


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(headless=True, isolated=True)
