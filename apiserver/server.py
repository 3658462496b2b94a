"""HTTP server assembly: middleware stack, options, routes and lifecycle."""

from __future__ import annotations

import sys
import time
from datetime import datetime
from typing import Any, Callable

import uvicorn
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from apiserver.auth import Auth, StubValidator, TokenValidator
from apiserver.config import Config
from apiserver.cors import cors_middleware
from apiserver.errors import method_not_allowed_handler, not_found_handler
from apiserver.logger import open_log_writer
from apiserver.middleware import (
    access_logger,
    error_capture,
    health,
    recovery_json,
    request_id,
    timeout_middleware,
)
from apiserver.routeslog import log_routes
from apiserver.routing import Router, RouterGroup

VERSION = "1.0.0"

Option = Callable[["Server"], None]


def _log(writer: Any, message: str) -> None:
    stamp = time.strftime("%Y/%m/%d %H:%M:%S")
    writer.write(f"{stamp} [server] {message}\n")


def _format_uptime(seconds: float) -> str:
    total = int(seconds + 0.5)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def _register(registrar: Any, group: RouterGroup) -> None:
    register = getattr(registrar, "register", None)
    (register if register is not None else registrar)(group)


def with_registrar(registrar: Any) -> Option:
    """Add a route registrar: a callable or an object with a register(group) method."""

    def apply(server: Server) -> None:
        server._route_registrars.append(registrar)

    return apply


def with_engine_mutator(mutator: Callable[[Router], None]) -> Option:
    """Add a function that adjusts the router before routes are registered."""

    def apply(server: Server) -> None:
        server._engine_mutators.append(mutator)

    return apply


def with_before_start(hook: Callable[[Router], None]) -> Option:
    """Add a hook run before serving; an exception from it aborts the start."""

    def apply(server: Server) -> None:
        server._before_start.append(hook)

    return apply


def with_before_stop(hook: Callable[[Router], None]) -> Option:
    """Add a hook run at shutdown."""

    def apply(server: Server) -> None:
        server._before_stop.append(hook)

    return apply


def with_token_validator(validator: TokenValidator) -> Option:
    """Use the given validator for the built-in auth middleware."""

    def apply(server: Server) -> None:
        server.token_validator = validator

    return apply


class Server:
    """An HTTP API server with logging, CORS, auth, timeouts and system endpoints."""

    def __init__(self, cfg: Config, *options: Option) -> None:
        cfg = cfg.with_defaults()
        self.config = cfg
        self.start_time = datetime.now().astimezone()
        self.token_validator: TokenValidator | None = None
        self._before_start: list[Callable[[Router], None]] = []
        self._before_stop: list[Callable[[Router], None]] = []
        self._route_registrars: list[Any] = []
        self._engine_mutators: list[Callable[[Router], None]] = []
        self._http: uvicorn.Server | None = None
        self._stopped = False

        log = cfg.log
        self._access_out = open_log_writer(
            log.access_file, log.rotate_max_size_bytes, log.rotate_backups, sys.stdout
        )
        try:
            self._error_out = open_log_writer(
                log.error_file, log.rotate_max_size_bytes, log.rotate_backups, sys.stderr
            )
        except Exception:
            self._access_out.close()
            raise

        self._engine = Router(
            not_found=not_found_handler,
            method_not_allowed=method_not_allowed_handler,
        )
        self._engine.use(
            access_logger(self._access_out),
            recovery_json(self._error_out),
            error_capture(self._error_out),
            request_id("X-Request-Id"),
            cors_middleware(cfg.cors),
        )
        if cfg.per_request.request_timeout > 0:
            self._engine.use(timeout_middleware(cfg.per_request))

        self._root: RouterGroup = (
            self._engine.group(cfg.base_path) if cfg.base_path else self._engine
        )

        for option in options:
            option(self)

        if self.token_validator is None:
            self.token_validator = StubValidator()
        self.auth = Auth(cfg.auth, self.token_validator)
        if cfg.auth.enable_access_middleware:
            self._root.use(self.auth.access_middleware())

        for mutator in self._engine_mutators:
            mutator(self._engine)

        live, ready = health()
        self.get("/livez", live)
        self.get("/readyz", ready)

        for registrar in self._route_registrars:
            _register(registrar, self._root)

        sys_endpoints(self)

        self._http_config = uvicorn.Config(
            self._engine,
            host="0.0.0.0",
            port=cfg.addr,
            timeout_keep_alive=int(cfg.timeouts.idle_timeout),
            timeout_graceful_shutdown=int(cfg.shutdown_wait),
            access_log=False,
        )

        if cfg.print_routes:
            log_routes(self._engine.routes())

    @property
    def engine(self) -> Router:
        """The router serving every request."""
        return self._engine

    @property
    def root(self) -> RouterGroup:
        """The group under the configured base path."""
        return self._root

    def get(self, path: str, *handlers: Any) -> None:
        self._root.get(path, *handlers)

    def post(self, path: str, *handlers: Any) -> None:
        self._root.post(path, *handlers)

    def put(self, path: str, *handlers: Any) -> None:
        self._root.put(path, *handlers)

    def patch(self, path: str, *handlers: Any) -> None:
        self._root.patch(path, *handlers)

    def delete(self, path: str, *handlers: Any) -> None:
        self._root.delete(path, *handlers)

    def group(self, path: str, configure: Callable[[RouterGroup], None]) -> None:
        """Create a sub-group of the root and let configure register its routes."""
        configure(self._root.group(path))

    def start(self) -> None:
        """Run the before-start hooks, then serve until interrupted or shut down."""
        for hook in self._before_start:
            hook(self._engine)
        self._http = uvicorn.Server(self._http_config)
        _log(self._error_out, f"listening on :{self.config.addr}")
        try:
            self._http.run()
        except (OSError, SystemExit) as exc:
            _log(self._error_out, f"listen error: {exc}")
            if isinstance(exc, OSError):
                raise
            raise OSError(f"cannot listen on :{self.config.addr}") from exc
        if not self._stopped:
            self.shutdown()

    def shutdown(self) -> None:
        """Run the before-stop hooks, stop serving and close the log writers."""
        self._stopped = True
        for hook in self._before_stop:
            hook(self._engine)
        if self._http is not None:
            self._http.should_exit = True
        self._access_out.close()
        self._error_out.close()


def sys_endpoints(server: Server) -> None:
    """Register the /sys health, info and route-listing endpoints."""
    group = server.engine.group("/sys")

    def healthz(request: Request) -> Response:
        return JSONResponse({"ok": True, "status": "live"})

    def readyz(request: Request) -> Response:
        return JSONResponse({"ok": True, "status": "ready"})

    def info(request: Request) -> Response:
        uptime = (datetime.now().astimezone() - server.start_time).total_seconds()
        return JSONResponse(
            {
                "ok": True,
                "version": VERSION,
                "started": server.start_time.isoformat(timespec="seconds"),
                "uptime": _format_uptime(uptime),
                "addr": server.config.addr,
                "basePath": server.config.base_path,
            }
        )

    def routes(request: Request) -> Response:
        listed = [
            {"Method": r.method, "Path": r.path, "Handler": r.handler}
            for r in server.engine.routes()
        ]
        return JSONResponse({"ok": True, "routes": listed})

    def routes_table(request: Request) -> Response:
        log_routes(server.engine.routes())
        return JSONResponse({"ok": True})

    group.get("/healthz", healthz)
    group.get("/readyz", readyz)
    group.get("/info", info)
    group.get("/routes", routes)
    group.get("/routes/table", routes_table)