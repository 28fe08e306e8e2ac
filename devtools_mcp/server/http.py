"""
Streamable HTTP transport.

Every request carries its session configuration in the query string. The
configuration selects (or creates) a cached Session, and the request is
served by a stateless StreamableHTTPServerTransport connected to that
session's MCP server for the duration of the request.
"""

import base64
import binascii
import contextlib
import json
from typing import Any, Optional

import anyio
from mcp.server.streamable_http import StreamableHTTPServerTransport
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.datastructures import QueryParams
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from devtools_mcp.server.session import Session, SessionCache
from devtools_mcp.utils.config import ServerConfig, config_json_schema
from devtools_mcp.utils.errors import ConfigValidationError
from devtools_mcp.utils.logger import get_logger, session_scope

logger = get_logger(__name__)

INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

CONFIG_PARAM = "config"
LIST_KEYS = frozenset({"chromeArg"})
IGNORED_KEYS = frozenset({"api_key", "profile"})

CORS_ALLOWED_HEADERS = ["Content-Type", "mcp-session-id"]
CORS_EXPOSED_HEADERS = ["Mcp-Session-Id", "mcp-protocol-version"]


# ======================================================================
## Query configuration
# ======================================================================


def _decode_config_param(value: str) -> dict[str, Any]:
    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_"))
        data = json.loads(raw)
    except (binascii.Error, ValueError) as e:
        raise ConfigValidationError(f"Invalid config parameter: {e}") from e
    if not isinstance(data, dict):
        raise ConfigValidationError("Invalid config parameter: expected a JSON object")
    return data


def _set_dotted(target: dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def parse_config_from_query(query_params: QueryParams) -> ServerConfig:
    """
    Build a ServerConfig from query parameters.

    Supports a base64-encoded JSON ``config`` parameter, dotted keys for
    nested values (``viewport.width=1280``) and repeated keys for lists
    (``chromeArg=--a&chromeArg=--b``). Explicit keys override values from
    ``config``.

    Raises:
        ConfigValidationError: ``config`` is not base64-encoded JSON
        ValidationError: The merged values do not form a valid ServerConfig
    """
    data: dict[str, Any] = {}
    encoded = query_params.get(CONFIG_PARAM)
    if encoded:
        data.update(_decode_config_param(encoded))

    for key in dict.fromkeys(query_params.keys()):
        if key == CONFIG_PARAM or key in IGNORED_KEYS:
            continue
        values = query_params.getlist(key)
        value: Any = values if key in LIST_KEYS or len(values) > 1 else values[0]
        _set_dotted(data, key, value)

    return ServerConfig.model_validate(data)


def _jsonrpc_error(status_code: int, code: int, message: str) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": None},
        status_code=status_code,
    )


def create_http_session(config: ServerConfig) -> Session:
    return Session(config, config.resolve(headless_default=True, isolated_default=True))


# ======================================================================
## MCP endpoint
# ======================================================================


class McpEndpoint:
    """ASGI endpoint serving /mcp."""

    def __init__(self, cache: SessionCache, json_response: bool = True):
        self.cache = cache
        self.json_response = json_response

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        try:
            config = parse_config_from_query(request.query_params)
        except (ValidationError, ConfigValidationError) as e:
            logger.warning(f"Rejected configuration: {e}")
            await _jsonrpc_error(400, INVALID_PARAMS, str(e))(scope, receive, send)
            return

        key = config.cache_key()
        is_new_entry = key not in self.cache
        try:
            session = await self.cache.get_or_create(config)
        except ConfigValidationError as e:
            await _jsonrpc_error(400, INVALID_PARAMS, str(e))(scope, receive, send)
            return

        response_started = False
        transport_ready = False

        async def tracked_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            transport = StreamableHTTPServerTransport(
                mcp_session_id=None,
                is_json_response_enabled=self.json_response,
            )

            async def run_server(*, task_status=anyio.TASK_STATUS_IGNORED) -> None:
                nonlocal transport_ready
                async with transport.connect() as (read_stream, write_stream):
                    transport_ready = True
                    task_status.started()
                    await session.server.run(
                        read_stream,
                        write_stream,
                        session.server.create_initialization_options(),
                        stateless=True,
                    )

            with session_scope(session.key):
                async with anyio.create_task_group() as tg:
                    await tg.start(run_server)
                    logger.debug("Chrome DevTools MCP Server connected")
                    session.log_disclaimers()
                    await transport.handle_request(scope, receive, tracked_send)
                    await transport.terminate()
                    tg.cancel_scope.cancel()
        except Exception as e:
            logger.exception(f"Error handling MCP request: {e}")
            if not response_started:
                await _jsonrpc_error(500, INTERNAL_ERROR, "Internal server error")(
                    scope, receive, send
                )
            if is_new_entry and not transport_ready:
                self.cache.discard(key)


async def mcp_config(request: Request) -> JSONResponse:
    return JSONResponse(config_json_schema())


def create_app(cache: Optional[SessionCache] = None, json_response: bool = True) -> Starlette:
    cache = cache if cache is not None else SessionCache(create_http_session)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        yield
        await cache.aclose_all()

    app = Starlette(
        routes=[
            Route("/.well-known/mcp-config", mcp_config, methods=["GET"]),
            Route("/mcp", McpEndpoint(cache, json_response=json_response)),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
                allow_headers=CORS_ALLOWED_HEADERS,
                expose_headers=CORS_EXPOSED_HEADERS,
            )
        ],
        lifespan=lifespan,
    )
    app.state.session_cache = cache
    return app
