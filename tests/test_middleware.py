import asyncio
import io
import json

import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from apiserver.config import TimeoutConfig
from apiserver.errors import error_body
from apiserver.middleware import (
    access_logger,
    error_capture,
    health,
    recovery_json,
    request_id,
    timeout_middleware,
)


def _request(headers=None, path="/", query=b""):
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": query,
            "headers": raw,
            "client": ("127.0.0.1", 5000),
        }
    )


async def _ok(request):
    return PlainTextResponse("done")


def _run(middleware, request, call_next=_ok):
    return asyncio.run(middleware(request, call_next))


def test_request_id_generated():
    request = _request()
    response = _run(request_id("X-Request-Id"), request)
    rid = response.headers["X-Request-Id"]
    assert len(rid) == 24
    int(rid, 16)
    assert request.state.request_id == rid


def test_request_id_reused():
    request = _request({"X-Request-Id": "abc"})
    response = _run(request_id(""), request)
    assert response.headers["X-Request-Id"] == "abc"
    assert request.state.request_id == "abc"


def test_request_id_custom_header():
    request = _request({"X-Trace": "trace-1"})
    response = _run(request_id("X-Trace"), request)
    assert response.headers["X-Trace"] == "trace-1"
    assert "X-Request-Id" not in response.headers


def test_request_ids_differ():
    first = _run(request_id(), _request()).headers["X-Request-Id"]
    second = _run(request_id(), _request()).headers["X-Request-Id"]
    assert first != second
    assert len(first) == len(second)


def test_recovery_json_catches_exception():
    log = io.StringIO()

    async def boom(request):
        raise RuntimeError("boom")

    response = _run(recovery_json(log), _request(), boom)
    assert response.status_code == 500
    assert json.loads(response.body) == error_body("internal_error", "internal server error")
    assert "[panic] GET / | panic: boom" in log.getvalue()


def test_recovery_json_passes_response():
    log = io.StringIO()
    response = _run(recovery_json(log), _request())
    assert response.body == b"done"
    assert log.getvalue() == ""


def test_error_capture_logs_recorded_errors():
    log = io.StringIO()

    async def failing(request):
        request.state.errors = [ValueError("oops"), ValueError("again")]
        return PlainTextResponse("x", status_code=418)

    response = _run(error_capture(log), _request(path="/items"), failing)
    assert response.status_code == 418
    lines = log.getvalue().splitlines()
    assert len(lines) == 2
    assert "[error] GET /items -> 418 in " in lines[0]
    assert lines[0].endswith("| oops")
    assert lines[1].endswith("| again")


def test_error_capture_silent_without_errors():
    log = io.StringIO()
    _run(error_capture(log), _request())
    assert log.getvalue() == ""


def test_access_logger_line():
    log = io.StringIO()
    _run(access_logger(log), _request(path="/path", query=b"x=1"))
    line = log.getvalue()
    assert line.startswith("[GIN] ")
    assert "| 200 |" in line
    assert '"/path?x=1"' in line
    assert "127.0.0.1" in line
    assert line.endswith("\n")


def test_health_endpoints():
    live, ready = health()
    assert json.loads(live(_request()).body) == {"ok": True, "status": "live"}
    assert json.loads(ready(_request()).body) == {"ok": True, "status": "ready"}


def test_timeout_triggers_default_status():
    async def slow(request):
        await asyncio.sleep(5)
        return PlainTextResponse("late")

    response = _run(timeout_middleware(TimeoutConfig(request_timeout=0.05)), _request(), slow)
    assert response.status_code == 504
    assert json.loads(response.body) == error_body("timeout", "request timed out")


def test_timeout_custom_status():
    async def slow(request):
        await asyncio.sleep(5)

    cfg = TimeoutConfig(request_timeout=0.05, gateway_timeout_status=503)
    response = _run(timeout_middleware(cfg), _request(), slow)
    assert response.status_code == 503


def test_timeout_fast_handler_passes():
    request = _request()
    response = _run(timeout_middleware(TimeoutConfig(request_timeout=2)), request)
    assert response.body == b"done"
    assert request.state.deadline > 0


@pytest.mark.parametrize("limit", [0, -1])
def test_timeout_disabled(limit):
    async def slowish(request):
        await asyncio.sleep(0.05)
        return PlainTextResponse("finished")

    response = _run(timeout_middleware(TimeoutConfig(request_timeout=limit)), _request(), slowish)
    assert response.body == b"finished"