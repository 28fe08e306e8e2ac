"""
Server configuration.

ServerConfig is the per-session configuration as received from the CLI or
from an HTTP request. Its cache_key() identifies equivalent configurations
regardless of key order; resolve() applies the transport's defaults and
produces the ResolvedArgs the browser layer consumes.
"""

import json
import os
import re
from typing import Any, Literal, Optional, Union
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()


DEFAULT_TRANSPORT = "stdio"
DEFAULT_HTTP_PORT = 8081

VIEWPORT_RE = re.compile(r"^(\d+)x(\d+)$")

Channel = Literal["stable", "canary", "beta", "dev"]


def get_transport() -> str:
    return os.getenv("TRANSPORT", DEFAULT_TRANSPORT).lower()


def get_http_port() -> int:
    return int(os.getenv("PORT", str(DEFAULT_HTTP_PORT)))


class Viewport(BaseModel):
    width: int = Field(..., gt=0, description="Viewport width in CSS pixels")
    height: int = Field(..., gt=0, description="Viewport height in CSS pixels")

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


def parse_viewport(value: Union[str, Viewport, dict, None]) -> Optional[Viewport]:
    """Accept ``"1280x720"``, a mapping or a Viewport; None passes through."""
    if value is None or isinstance(value, Viewport):
        return value
    if isinstance(value, dict):
        return Viewport.model_validate(value)
    match = VIEWPORT_RE.match(value.strip())
    if not match:
        raise ValueError("Expected format WIDTHxHEIGHT, for example 1280x720")
    return Viewport(width=int(match.group(1)), height=int(match.group(2)))


# ======================================================================
# Per-session configuration
# ======================================================================


class ServerConfig(BaseModel):
    """Configuration accepted from the CLI or an HTTP request."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    browser_url: Optional[str] = Field(
        None,
        alias="browserUrl",
        description="Existing Chrome debugging URL (http:// or ws://) to connect to.",
    )
    headless: Optional[bool] = Field(None, description="Run Chrome in headless mode.")
    executable_path: Optional[str] = Field(
        None,
        alias="executablePath",
        description="Absolute path to a Chrome executable.",
    )
    isolated: Optional[bool] = Field(
        None,
        description="Launch Chrome with a temporary user data dir.",
    )
    custom_devtools: Optional[str] = Field(
        None,
        alias="customDevtools",
        description="Path to a custom DevTools frontend bundle.",
    )
    channel: Optional[Channel] = Field(
        None,
        description="Chrome channel to use when launching a browser.",
    )
    log_file: Optional[str] = Field(
        None,
        alias="logFile",
        description="Path where debug logs should be written.",
    )
    viewport: Optional[Union[str, Viewport]] = Field(
        None,
        description="Viewport size for launched Chrome instances, for example 1280x720.",
    )
    proxy_server: Optional[str] = Field(
        None,
        alias="proxyServer",
        description="Proxy server to forward Chrome network traffic through.",
    )
    accept_insecure_certs: Optional[bool] = Field(
        None,
        alias="acceptInsecureCerts",
        description="Ignore TLS certificate errors when launching Chrome.",
    )
    experimental_devtools: Optional[bool] = Field(
        None,
        alias="experimentalDevtools",
        description="Expose DevTools windows as automation targets.",
    )
    chrome_arg: Optional[list[str]] = Field(
        None,
        alias="chromeArg",
        description="Additional command-line switches to pass to Chrome.",
    )

    @field_validator("browser_url")
    @classmethod
    def _check_browser_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https", "ws", "wss") or not parsed.netloc:
            raise ValueError(f"Invalid browser URL: {value}")
        return value

    @field_validator("viewport")
    @classmethod
    def _check_viewport(cls, value):
        if isinstance(value, str):
            parse_viewport(value)
        return value

    def normalized_viewport(self) -> Optional[str]:
        viewport = parse_viewport(self.viewport)
        return str(viewport) if viewport else None

    def cache_key(self) -> str:
        """Canonical, order-independent serialization of this configuration."""
        data: dict[str, Any] = self.model_dump(by_alias=True, exclude_none=True)
        viewport = self.normalized_viewport()
        if viewport:
            data["viewport"] = viewport
        return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)

    def resolve(
        self,
        headless_default: bool = True,
        isolated_default: bool = True,
    ) -> "ResolvedArgs":
        return ResolvedArgs(
            browser_url=self.browser_url,
            headless=headless_default if self.headless is None else self.headless,
            executable_path=self.executable_path,
            isolated=isolated_default if self.isolated is None else self.isolated,
            custom_devtools=self.custom_devtools,
            channel=self.channel,
            log_file=self.log_file,
            viewport=parse_viewport(self.viewport),
            proxy_server=self.proxy_server,
            accept_insecure_certs=self.accept_insecure_certs,
            devtools=bool(self.experimental_devtools),
            chrome_args=list(self.chrome_arg or []),
        )


class ResolvedArgs(BaseModel):
    """Configuration with defaults applied, as consumed by a Session."""

    browser_url: Optional[str] = None
    headless: bool = False
    executable_path: Optional[str] = None
    isolated: bool = False
    custom_devtools: Optional[str] = None
    channel: Optional[Channel] = None
    log_file: Optional[str] = None
    viewport: Optional[Viewport] = None
    proxy_server: Optional[str] = None
    accept_insecure_certs: Optional[bool] = None
    devtools: bool = False
    chrome_args: list[str] = Field(default_factory=list)

    @property
    def extra_chrome_args(self) -> list[str]:
        args = [str(arg) for arg in self.chrome_args]
        if self.proxy_server:
            args.append(f"--proxy-server={self.proxy_server}")
        return args


def config_json_schema() -> dict[str, Any]:
    """JSON schema advertised at /.well-known/mcp-config."""
    schema = ServerConfig.model_json_schema(by_alias=True)
    schema["additionalProperties"] = True
    return schema
