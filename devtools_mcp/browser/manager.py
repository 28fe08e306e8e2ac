"""
Connect-or-launch resolution of a Session's browser handle.

Resolution order:
1. The current handle, while it reports connected.
2. A remote browser at ``browser_url``. Connection failures that look like
   "nothing is listening there" fall back to (3); anything else propagates.
3. A locally launched (or attached) browser.
"""

import errno
import re
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from devtools_mcp.browser.handle import BrowserHandle
from devtools_mcp.browser.launcher import LaunchOptions, ensure_browser_connected, launch
from devtools_mcp.utils.config import Channel, ResolvedArgs, Viewport
from devtools_mcp.utils.logger import get_logger

logger = get_logger(__name__)

RECOVERABLE_CODES = frozenset(
    {
        "ECONNREFUSED",
        "ERR_CONNECTION_REFUSED",
        "ECONNRESET",
        "EHOSTUNREACH",
        "ENOTFOUND",
        "ETIMEDOUT",
    }
)

RECOVERABLE_MESSAGES = (
    "connection refused",
    "failed to fetch",
    "target closed",
    "connection closed",
    "timed out",
    "404",
)

_RECOVERABLE_CODE_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(code.lower() for code in RECOVERABLE_CODES)) + r")\b"
)

ConnectExisting = Callable[[str, bool], Awaitable[BrowserHandle]]
LaunchBrowser = Callable[[LaunchOptions], Awaitable[BrowserHandle]]


class ConnectOrLaunchOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    browser_url: Optional[str] = None
    headless: bool = False
    executable_path: Optional[str] = None
    custom_devtools: Optional[str] = None
    channel: Optional[Channel] = None
    isolated: bool = False
    log_file: Optional[str] = None
    viewport: Optional[Viewport] = None
    chrome_args: list[str] = Field(default_factory=list)
    accept_insecure_certs: Optional[bool] = None
    devtools: bool = False
    current_browser: Optional[Any] = None

    @classmethod
    def from_args(cls, args: ResolvedArgs, current_browser: Optional[BrowserHandle] = None):
        return cls(
            browser_url=args.browser_url,
            headless=args.headless,
            executable_path=args.executable_path,
            custom_devtools=args.custom_devtools,
            channel=args.channel,
            isolated=args.isolated,
            log_file=args.log_file,
            viewport=args.viewport,
            chrome_args=args.extra_chrome_args,
            accept_insecure_certs=args.accept_insecure_certs,
            devtools=args.devtools,
            current_browser=current_browser,
        )


def _error_code(value: Any) -> Optional[str]:
    code = getattr(value, "code", None)
    if isinstance(code, str):
        return code
    err_no = getattr(value, "errno", None)
    if isinstance(err_no, int):
        return errno.errorcode.get(err_no)
    return None


def _is_recoverable_message(message: str) -> bool:
    lowered = message.lower()
    if any(marker in lowered for marker in RECOVERABLE_MESSAGES):
        return True
    # Playwright only carries the socket error code in the message text
    return _RECOVERABLE_CODE_PATTERN.search(lowered) is not None


def _causes(value: BaseException) -> list[Any]:
    causes = [value.__cause__, value.__context__, getattr(value, "cause", None)]
    return [cause for cause in causes if cause is not None]


def is_recoverable_browser_connect_error(error: Any) -> bool:
    """
    True when ``error`` means the remote browser is simply not reachable.

    Looks at the error and its whole cause chain (``__cause__``,
    ``__context__`` and a ``cause`` attribute) for a known connection-failure
    code or message. Codes also count when they only appear in the message
    text, as in Playwright's ``connect ECONNREFUSED 127.0.0.1:9222``.
    """
    seen: set[int] = set()
    pending = [error]

    while pending:
        value = pending.pop()
        if value is None or id(value) in seen:
            continue
        seen.add(id(value))

        if isinstance(value, str):
            if _is_recoverable_message(value):
                return True
            continue

        if _error_code(value) in RECOVERABLE_CODES:
            return True

        if isinstance(value, BaseException):
            if _is_recoverable_message(str(value)):
                return True
            pending.extend(_causes(value))

    return False


async def connect_or_launch_browser(
    options: ConnectOrLaunchOptions,
    connect_existing: Optional[ConnectExisting] = None,
    launch_browser: Optional[LaunchBrowser] = None,
    log: Optional[Callable[[str], None]] = None,
) -> BrowserHandle:
    """
    Resolve the browser handle for a tool call.

    Args:
        options: Resolved session options plus the currently held handle
        connect_existing: Override for connecting to ``browser_url``
        launch_browser: Override for launching a local browser
        log: Sink for the fallback diagnostic (defaults to the module logger)

    Raises:
        Exception: A non-recoverable connection error, unchanged.
    """
    current = options.current_browser
    if current is not None and current.is_connected():
        return current

    connect_existing = connect_existing or ensure_browser_connected
    launch_browser = launch_browser or launch
    log = log or logger.warning

    if options.browser_url:
        try:
            return await connect_existing(options.browser_url, options.devtools)
        except Exception as e:
            if not is_recoverable_browser_connect_error(e):
                raise
            log(
                f"Unable to connect to Chrome at {options.browser_url}: {e}. "
                "Launching a managed browser instead."
            )

    return await launch_browser(
        LaunchOptions(
            headless=options.headless,
            executable_path=options.executable_path,
            custom_devtools=options.custom_devtools,
            channel=options.channel or "stable",
            isolated=options.isolated,
            log_file=options.log_file,
            viewport=options.viewport,
            args=list(options.chrome_args),
            accept_insecure_certs=options.accept_insecure_certs,
            devtools=options.devtools,
        )
    )
