"""Cross-origin resource sharing middleware."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable

from starlette.requests import Request
from starlette.responses import Response

from apiserver.config import CORSConfig

DEFAULT_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
DEFAULT_HEADERS = ("Content-Type", "Authorization", "X-Requested-With")

_WILDCARD_MARK = "://*."


def cors_middleware(
    cfg: CORSConfig,
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    """Build a middleware applying the CORS policy and answering preflights."""
    origins = normalize_list(cfg.allowed_origins)
    methods = ", ".join(
        unique(m.strip().upper() for m in (cfg.allowed_methods or DEFAULT_METHODS))
    )
    headers = ", ".join(unique(header_case(h) for h in (cfg.allowed_headers or DEFAULT_HEADERS)))
    exposed = ", ".join(unique(header_case(h) for h in cfg.exposed_headers))
    max_age = str(int(cfg.max_age)) if cfg.max_age > 0 else ""

    async def middleware(request: Request, call_next) -> Response:
        extra: dict[str, str] = {}
        origin = request.headers.get("origin", "")
        if origin_allowed(origin, origins):
            extra["Access-Control-Allow-Origin"] = allow_value(origin, origins)
            if cfg.allow_credentials:
                extra["Access-Control-Allow-Credentials"] = "true"
            if exposed:
                extra["Access-Control-Expose-Headers"] = exposed
        if request.method == "OPTIONS":
            if methods:
                extra["Access-Control-Allow-Methods"] = methods
            if headers:
                extra["Access-Control-Allow-Headers"] = headers
            if max_age:
                extra["Access-Control-Max-Age"] = max_age
            return Response(status_code=204, headers=extra)
        response = await call_next(request)
        response.headers.update(extra)
        return response

    return middleware


def origin_allowed(origin: str, allowed: Iterable[str]) -> bool:
    """Tell whether an origin matches an entry, a "*" or a scheme://*.domain pattern."""
    allowed = list(allowed)
    if not origin or not allowed:
        return False
    lowered = origin.lower()
    for entry in allowed:
        if entry == "*" or entry.lower() == lowered:
            return True
        if entry.startswith(("http://*.", "https://*.")):
            scheme, _, domain = entry.partition(_WILDCARD_MARK)
            if lowered.startswith(scheme + "://") and lowered.endswith("." + domain.lower()):
                return True
    return False


def allow_value(origin: str, allowed: Iterable[str]) -> str:
    """Return "*" when every origin is allowed, else the request's origin."""
    return "*" if "*" in allowed else origin


def normalize_list(values: Iterable[str]) -> list[str]:
    """Strip each value and drop the empty ones."""
    return [s for s in (v.strip() for v in values) if s]


def header_case(value: str) -> str:
    """Write a header name in canonical Dash-Separated-Capitalised form."""
    parts = value.strip().split("-")
    return "-".join(p[:1].upper() + p[1:].lower() if p else p for p in parts)


def unique(values: Iterable[str]) -> list[str]:
    """Drop repeated values, keeping the first occurrence of each."""
    return list(dict.fromkeys(values))