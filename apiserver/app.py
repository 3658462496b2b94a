"""Demo API server with protected, slow and token-refresh endpoints."""

from __future__ import annotations

import argparse
import asyncio

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from apiserver.auth import StubValidator, auth_only
from apiserver.config import (
    AuthConfig,
    Config,
    CORSConfig,
    HTTPTimeouts,
    LogConfig,
    TimeoutConfig,
)
from apiserver.routing import RouterGroup
from apiserver.server import Server, with_registrar, with_token_validator


def build_config() -> Config:
    """The demo server's configuration."""
    return Config(
        addr=8080,
        base_path="/api/v1",
        print_routes=True,
        cors=CORSConfig(
            allowed_origins=["http://localhost:3000", "https://*.example.com"],
            allow_credentials=True,
            max_age=12 * 3600.0,
        ),
        timeouts=HTTPTimeouts(
            read_timeout=10.0,
            read_header_timeout=5.0,
            write_timeout=15.0,
            idle_timeout=60.0,
        ),
        per_request=TimeoutConfig(request_timeout=3.0, gateway_timeout_status=504),
        log=LogConfig(
            access_file="logs/access.log",
            error_file="logs/error.log",
            rotate_max_size_bytes=10 << 20,
            rotate_backups=5,
        ),
        auth=AuthConfig(
            auth_header="Authorization",
            bearer_prefix="Bearer ",
            access_cookie="access_token",
            refresh_cookie="refresh_token",
            enable_access_middleware=True,
        ),
    )


def build_server() -> Server:
    """Create the demo server with its routes registered."""
    validator = StubValidator()

    def me(request: Request) -> Response:
        claims = getattr(request.state, "access_claims", None)
        return JSONResponse({"ok": True, "claims": claims})

    async def slow(request: Request) -> Response:
        await asyncio.sleep(5)
        return JSONResponse({"ok": True})

    def refresh(request: Request) -> Response:
        return JSONResponse({"ok": True, "new": "token"})

    def register(group: RouterGroup) -> None:
        group.get("/me", me)
        group.get("/slow", slow)
        group.post("/auth/refresh", auth_only(validator, False), refresh)

    return Server(build_config(), with_token_validator(validator), with_registrar(register))


def main(argv: list[str] | None = None) -> int:
    """Build the demo server and serve until interrupted."""
    parser = argparse.ArgumentParser(description="Run the demo API server on port 8080.")
    parser.parse_args(argv)
    build_server().start()
    return 0