"""Route groups with middleware chains, served as an ASGI application.

A middleware is called as ``handler(request, call_next)``, the endpoint as
``handler(request)``; either may be a coroutine, and ``None`` gives an empty
200 response. Handlers record errors in ``request.state.errors``.
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass, field
from functools import partial

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response


@dataclass(frozen=True)
class Route:
    """A registered route: method, full path and the name of its endpoint."""

    method: str
    path: str
    handler: str
    handlers: tuple = field(default=(), repr=False, compare=False)

    def _match(self, path):
        params = {}
        want, got = self.path.split("/"), path.split("/")
        for i, part in enumerate(want):
            if part.startswith("*"):
                params[part[1:]] = "/" + "/".join(got[i:])
                return params
            if i >= len(got):
                return None
            if part.startswith(":") and got[i]:
                params[part[1:]] = got[i]
            elif part != got[i]:
                return None
        return params if len(want) == len(got) else None


def _join_paths(base, path):
    if not path:
        return base
    joined = re.sub("/+", "/", f"{base}/{path}")
    return joined if path.endswith("/") or joined == "/" else joined.rstrip("/")


async def _invoke(func, *args):
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return Response(status_code=200) if result is None else result


async def _run_chain(handlers, request):
    *middlewares, endpoint = handlers

    async def step(index, current):
        if index == len(middlewares):
            return await _invoke(endpoint, current)
        return await _invoke(middlewares[index], current, partial(step, index + 1))

    return await step(0, request)


class RouterGroup:
    """Routes under a common path prefix sharing a list of middleware."""

    def __init__(self, engine, base_path="/", handlers=()):
        self._engine = engine
        self.base_path = base_path
        self.handlers = list(handlers)

    def use(self, *handlers):
        """Add middleware for routes registered after this call."""
        self.handlers.extend(handlers)
        return self

    def add(self, method, path, *handlers):
        """Register a route; the last handler is the endpoint."""
        if not handlers:
            raise ValueError("there must be at least one handler")
        self._engine._add_route(
            method, _join_paths(self.base_path, path), (*self.handlers, *handlers)
        )
        return self

    def get(self, path, *handlers):
        return self.add("GET", path, *handlers)

    def post(self, path, *handlers):
        return self.add("POST", path, *handlers)

    def put(self, path, *handlers):
        return self.add("PUT", path, *handlers)

    def patch(self, path, *handlers):
        return self.add("PATCH", path, *handlers)

    def delete(self, path, *handlers):
        return self.add("DELETE", path, *handlers)

    def group(self, path):
        """Create a sub-group inheriting the current middleware."""
        return RouterGroup(self._engine, _join_paths(self.base_path, path), self.handlers)


class Router(RouterGroup):
    """Root route group and ASGI application."""

    def __init__(self, not_found=None, method_not_allowed=None, handle_method_not_allowed=False):
        super().__init__(self)
        self.not_found = not_found or (
            lambda request: PlainTextResponse("404 page not found", status_code=404)
        )
        self.method_not_allowed = method_not_allowed or (
            lambda request: PlainTextResponse("405 method not allowed", status_code=405)
        )
        self.handle_method_not_allowed = handle_method_not_allowed
        self._routes = []

    def _add_route(self, method, path, handlers):
        if any(r.method == method and r.path == path for r in self._routes):
            raise ValueError(f"handlers are already registered for path '{path}'")
        endpoint = handlers[-1]
        name = getattr(endpoint, "__qualname__", type(endpoint).__qualname__)
        module = getattr(endpoint, "__module__", None)
        self._routes.append(Route(method, path, f"{module}.{name}" if module else name, handlers))

    def routes(self):
        """All registered routes in registration order."""
        return list(self._routes)

    async def dispatch(self, request):
        """Run the matching route's handler chain and return its response."""
        path = request.scope["path"]
        # Static routes take precedence over parameterised ones.
        candidates = sorted(
            (r for r in self._routes if r.method == request.method),
            key=lambda r: ":" in r.path or "*" in r.path,
        )
        handlers = (*self.handlers, self.not_found)
        for route in candidates:
            params = route._match(path)
            if params is not None:
                request.scope["path_params"] = params
                handlers = route.handlers
                break
        else:
            if self.handle_method_not_allowed and any(
                r._match(path) is not None for r in self._routes
            ):
                handlers = (*self.handlers, self.method_not_allowed)
        if not hasattr(request.state, "errors"):
            request.state.errors = []
        return await _run_chain(handlers, request)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "lifespan":
            while True:
                message = await receive()
                if message["type"] == "lifespan.startup":
                    await send({"type": "lifespan.startup.complete"})
                elif message["type"] == "lifespan.shutdown":
                    await send({"type": "lifespan.shutdown.complete"})
                    return
        response = await self.dispatch(Request(scope, receive, send))
        await response(scope, receive, send)