"""
Command line entry point.

stdio (default) serves one Session built from the command line. http serves
the Starlette app, where each request brings its own configuration.
"""

import argparse
import asyncio
from typing import Any, Optional

from mcp.server.stdio import stdio_server
from pydantic import ValidationError

from devtools_mcp import __version__
from devtools_mcp.server.session import Session, SessionCache, install_shutdown_hooks
from devtools_mcp.utils.config import ServerConfig, get_http_port, get_transport
from devtools_mcp.utils.logger import get_logger

logger = get_logger(__name__)

CONFIG_FLAGS = {
    "browserUrl": "browser_url",
    "headless": "headless",
    "executablePath": "executable_path",
    "isolated": "isolated",
    "customDevtools": "custom_devtools",
    "channel": "channel",
    "logFile": "log_file",
    "viewport": "viewport",
    "proxyServer": "proxy_server",
    "acceptInsecureCerts": "accept_insecure_certs",
    "experimentalDevtools": "experimental_devtools",
    "chromeArg": "chrome_arg",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devtools-mcp",
        description="MCP server exposing a Chrome browser through Playwright",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--browserUrl",
        "-u",
        help="Connect to a running Chrome instance, e.g. http://127.0.0.1:9222",
    )
    parser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run Chrome in headless mode",
    )
    parser.add_argument("--executablePath", "-e", help="Path to a custom Chrome executable")
    parser.add_argument(
        "--isolated",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use a temporary user data dir, removed when the browser closes",
    )
    parser.add_argument("--customDevtools", help="Path to a custom DevTools frontend")
    parser.add_argument(
        "--channel",
        choices=["stable", "canary", "beta", "dev"],
        help="Chrome channel to launch",
    )
    parser.add_argument("--logFile", help="Write debug logs to this file")
    parser.add_argument("--viewport", help="Initial viewport size, e.g. 1280x720")
    parser.add_argument("--proxyServer", help="Proxy server for Chrome network traffic")
    parser.add_argument(
        "--acceptInsecureCerts",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Ignore TLS certificate errors",
    )
    parser.add_argument(
        "--experimentalDevtools",
        action="store_true",
        default=None,
        help="Expose DevTools windows as pages",
    )
    parser.add_argument(
        "--chrome-arg",
        dest="chromeArg",
        action="append",
        help="Extra Chrome switch; may be repeated",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default=None,
        help="Transport to serve (defaults to $TRANSPORT or stdio)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="HTTP bind address")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (defaults to $PORT or 8081)")
    return parser


def config_from_args(namespace: argparse.Namespace) -> ServerConfig:
    values: dict[str, Any] = {}
    for flag, field in CONFIG_FLAGS.items():
        value = getattr(namespace, flag, None)
        if value is not None:
            values[field] = value
    return ServerConfig(**values)


async def run_stdio(config: ServerConfig) -> None:
    cache = SessionCache(Session)
    install_shutdown_hooks(cache)
    session = await cache.get_or_create(config)
    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("Chrome DevTools MCP Server connected")
            session.log_disclaimers()
            await session.server.run(
                read_stream,
                write_stream,
                session.server.create_initialization_options(),
            )
    finally:
        await cache.aclose_all()


def run_http(host: str, port: int) -> None:
    import uvicorn

    from devtools_mcp.server.http import create_app

    logger.info(f"MCP HTTP Server listening on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_level="warning")


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    namespace = parser.parse_args(argv)
    transport = namespace.transport or get_transport()

    if transport == "http":
        run_http(namespace.host, namespace.port or get_http_port())
        return
    if transport != "stdio":
        parser.error(f"Unsupported transport: {transport}")

    try:
        config = config_from_args(namespace)
    except ValidationError as e:
        parser.error(str(e))
    asyncio.run(run_stdio(config))


if __name__ == "__main__":
    main()
