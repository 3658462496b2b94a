"""Request ids, panic recovery, error and access logging, health, timeouts."""

from __future__ import annotations

import asyncio
import secrets
import time

from starlette.responses import JSONResponse

from apiserver.errors import respond_error


def _log(writer, prefix, message):
    writer.write(f"{time.strftime('%Y/%m/%d %H:%M:%S')} {prefix}{message}\n")


def _elapsed(start):
    seconds = time.perf_counter() - start
    return f"{seconds:.3f}s" if seconds >= 1 else f"{seconds * 1000:.3f}ms"


def _errors_of(request):
    return getattr(request.state, "errors", None) or []


def request_id(header_name="X-Request-Id"):
    """Reuse the request's id header or generate one; echo it in the response."""
    header_name = header_name or "X-Request-Id"

    async def middleware(request, call_next):
        rid = request.headers.get(header_name, "") or secrets.token_hex(12)
        request.state.request_id = rid
        response = await call_next(request)
        response.headers[header_name] = rid
        return response

    return middleware


def recovery_json(err_writer):
    """Turn an unhandled exception into a logged JSON 500 response."""

    async def middleware(request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            _log(err_writer, "[panic] ", f"{request.method} {request.url.path} | panic: {exc}")
            return respond_error(500, "internal_error", "internal server error")

    return middleware


def error_capture(err_writer):
    """Log every error recorded in request.state.errors once the chain has run."""

    async def middleware(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        for error in _errors_of(request):
            _log(
                err_writer,
                "[error] ",
                f"{request.method} {request.url.path} -> {response.status_code}"
                f" in {_elapsed(start)} | {error}",
            )
        return response

    return middleware


def access_logger(writer):
    """Write one access-log line per request."""

    async def middleware(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        path = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        client = request.client.host if request.client else ""
        writer.write(
            f"[GIN] {time.strftime('%Y/%m/%d - %H:%M:%S')} | {response.status_code:3d} |"
            f" {_elapsed(start):>13} | {client:>15} | {request.method:<7} \"{path}\"\n"
        )
        return response

    return middleware


def health():
    """Return the liveness and readiness endpoints."""
    return (
        lambda request: JSONResponse({"ok": True, "status": "live"}),
        lambda request: JSONResponse({"ok": True, "status": "ready"}),
    )


def timeout_middleware(cfg):
    """Cancel a request that runs past its deadline and answer with a timeout error."""
    limit = cfg.request_timeout
    status = cfg.gateway_timeout_status or 504

    async def middleware(request, call_next):
        if limit <= 0:
            return await call_next(request)
        request.state.deadline = time.monotonic() + limit
        try:
            return await asyncio.wait_for(call_next(request), limit)
        except asyncio.TimeoutError:
            return respond_error(status, "timeout", "request timed out")

    return middleware