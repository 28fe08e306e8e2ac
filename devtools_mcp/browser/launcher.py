"""
Local Chrome launch and CDP connection.

A launched browser always listens on an ephemeral debugging port, which
makes Chrome write a ``DevToolsActivePort`` sidecar file into its profile:

    9222
    /devtools/browser/6b1a...

A later launch against the same profile reads that file and attaches to the
running instance instead of starting a second browser on a locked profile.
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import aiofiles
from playwright.async_api import async_playwright
from pydantic import BaseModel, Field

from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.browser.stealth import install_stealth
from devtools_mcp.utils.config import Channel, Viewport
from devtools_mcp.utils.errors import ProfileLockedError
from devtools_mcp.utils.logger import get_logger

logger = get_logger(__name__)

SIDECAR_FILE_NAME = "DevToolsActivePort"
PROFILE_ROOT = Path.home() / ".cache" / "chrome-devtools-mcp"
EXECUTABLE_PATH_ENV = "CHROME_EXECUTABLE_PATH"

# Substrings Chrome/Playwright emit when a second process hits a locked profile.
PROFILE_LOCKED_MARKERS = (
    "the browser is already running",
    "processsingleton",
    "target closed",
    "target page, context or browser has been closed",
    "connection closed",
)

BASE_CHROME_ARGS = (
    "--hide-crash-restore-bubble",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--remote-debugging-port=0",
)


class LaunchOptions(BaseModel):
    """Options for launching (or attaching to) a local Chrome."""

    headless: bool = False
    isolated: bool = False
    devtools: bool = False
    executable_path: Optional[str] = None
    custom_devtools: Optional[str] = None
    channel: Optional[Channel] = None
    user_data_dir: Optional[str] = None
    log_file: Optional[str] = None
    viewport: Optional[Viewport] = None
    args: list[str] = Field(default_factory=list)
    accept_insecure_certs: Optional[bool] = None


# ======================================================================
# Profile & sidecar helpers
# ======================================================================


def profile_dir_name(channel: Optional[str]) -> str:
    if channel and channel != "stable":
        return f"chrome-profile-{channel}"
    return "chrome-profile"


def default_user_data_dir(channel: Optional[str]) -> Path:
    """Deterministic profile directory shared by every non-isolated launch."""
    return PROFILE_ROOT / profile_dir_name(channel)


def parse_devtools_active_port(content: str) -> Optional[str]:
    """Turn sidecar file content into a websocket endpoint, or None if malformed."""
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    port, ws_path = lines[0], lines[1]
    if not port.isdigit() or not 0 < int(port) < 65536:
        return None
    if not ws_path.startswith("/"):
        return None
    return f"ws://127.0.0.1:{int(port)}{ws_path}"


async def read_devtools_active_port(user_data_dir: str | Path) -> Optional[str]:
    path = Path(user_data_dir) / SIDECAR_FILE_NAME
    if not path.is_file():
        return None
    try:
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        logger.debug(f"Unable to read {path}: {e}")
        return None
    return parse_devtools_active_port(content)


def build_chrome_args(options: LaunchOptions) -> list[str]:
    args = [*options.args, *BASE_CHROME_ARGS]
    if options.devtools:
        args.append("--auto-open-devtools-for-tabs")
    if options.custom_devtools:
        args.append(f"--custom-devtools-frontend=file://{options.custom_devtools}")
    if options.headless:
        args.append("--screen-info={3840x2160}")
    return args


def resolve_executable(options: LaunchOptions) -> tuple[Optional[str], Optional[str]]:
    """
    Pick ``(executable_path, playwright_channel)``.

    An explicit path wins, then $CHROME_EXECUTABLE_PATH. Otherwise a
    non-stable channel maps to Playwright's ``chrome-<channel>`` and stable
    falls back to the Chromium bundled with Playwright.
    """
    executable_path = options.executable_path or os.getenv(EXECUTABLE_PATH_ENV)
    if executable_path:
        return executable_path, None
    if options.channel and options.channel != "stable":
        return None, f"chrome-{options.channel}"
    return None, None


def is_profile_locked_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in PROFILE_LOCKED_MARKERS)


# ======================================================================
# Connect / launch
# ======================================================================


async def ensure_browser_connected(browser_url: str, devtools: bool = False) -> BrowserHandle:
    """Connect to an already running Chrome over CDP."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.connect_over_cdp(browser_url)
    except BaseException:
        await playwright.stop()
        raise
    logger.info(f"Connected to Chrome at {browser_url}")
    return BrowserHandle(playwright, browser=browser, endpoint=browser_url, devtools=devtools)


async def _attach_to_running(user_data_dir: str, devtools: bool) -> Optional[BrowserHandle]:
    endpoint = await read_devtools_active_port(user_data_dir)
    if endpoint is None:
        return None
    try:
        handle = await ensure_browser_connected(endpoint, devtools=devtools)
    except Exception as e:
        logger.debug(f"Stale {SIDECAR_FILE_NAME} in {user_data_dir}: {e}")
        return None
    logger.info(f"Attached to the browser already running for {user_data_dir}")
    return handle


async def _wait_for_endpoint(user_data_dir: str, attempts: int = 20, delay: float = 0.1) -> Optional[str]:
    """Poll the sidecar file; Chrome writes it shortly after startup."""
    for _ in range(attempts):
        endpoint = await read_devtools_active_port(user_data_dir)
        if endpoint is not None:
            return endpoint
        await asyncio.sleep(delay)
    return None


async def launch(options: LaunchOptions) -> BrowserHandle:
    """
    Launch Chrome, or attach to the instance already running on the profile.

    Raises:
        ProfileLockedError: The profile is held by a browser that cannot be
            attached to.
    """
    user_data_dir = options.user_data_dir
    temp_profile_dir: Optional[str] = None
    if not user_data_dir:
        if options.isolated:
            temp_profile_dir = tempfile.mkdtemp(prefix="chrome-devtools-mcp-")
            user_data_dir = temp_profile_dir
        else:
            user_data_dir = str(default_user_data_dir(options.channel))
    Path(user_data_dir).mkdir(parents=True, exist_ok=True)

    if temp_profile_dir is None:
        handle = await _attach_to_running(user_data_dir, options.devtools)
        if handle is not None:
            await install_stealth(handle)
            return handle
        # Chrome rewrites the sidecar on startup; a leftover one must not be
        # mistaken for the new instance's endpoint.
        (Path(user_data_dir) / SIDECAR_FILE_NAME).unlink(missing_ok=True)

    executable_path, channel = resolve_executable(options)
    launch_kwargs: dict = {
        "headless": options.headless,
        "args": build_chrome_args(options),
        "ignore_https_errors": bool(options.accept_insecure_certs),
    }
    if executable_path:
        launch_kwargs["executable_path"] = executable_path
    if channel:
        launch_kwargs["channel"] = channel
    if options.viewport:
        launch_kwargs["viewport"] = options.viewport.model_dump()
    else:
        launch_kwargs["no_viewport"] = True

    playwright = await async_playwright().start()
    try:
        context = await playwright.chromium.launch_persistent_context(
            user_data_dir, **launch_kwargs
        )
    except Exception as e:
        await playwright.stop()
        if temp_profile_dir is not None:
            shutil.rmtree(temp_profile_dir, ignore_errors=True)
        elif is_profile_locked_error(e):
            raise ProfileLockedError(user_data_dir) from e
        raise

    endpoint = await _wait_for_endpoint(user_data_dir)
    handle = BrowserHandle(
        playwright,
        context=context,
        endpoint=endpoint,
        devtools=options.devtools,
        launched=True,
        temp_profile_dir=temp_profile_dir,
    )
    logger.info(f"Launched Chrome with profile {user_data_dir} (endpoint: {endpoint or 'pipe'})")
    await install_stealth(handle)
    return handle
