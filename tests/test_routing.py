import pytest
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.testclient import TestClient

from apiserver.routing import Router


def _text(label):
    async def endpoint(request):
        return PlainTextResponse(label)

    return endpoint


def _tracer(name, calls):
    async def middleware(request, call_next):
        calls.append(f"{name}:in")
        response = await call_next(request)
        calls.append(f"{name}:out")
        return response

    return middleware


def test_group_joins_base_path():
    router = Router()
    api = router.group("/api/v1")
    api.get("/me", _text("me"))
    api.group("/admin/").post("users", _text("users"))
    assert [(r.method, r.path) for r in router.routes()] == [
        ("GET", "/api/v1/me"),
        ("POST", "/api/v1/admin/users"),
    ]
    client = TestClient(router)
    assert client.get("/api/v1/me").text == "me"
    assert client.post("/api/v1/admin/users").text == "users"


def test_route_records_endpoint_name():
    router = Router()
    router.get("/x", _text("x"))
    (route,) = router.routes()
    assert route.handler.rsplit(".", 1)[-1] == "endpoint"
    assert route.handler.startswith(__name__)


def test_middleware_order():
    calls = []
    router = Router()
    router.use(_tracer("a", calls))
    group = router.group("/g")
    group.use(_tracer("b", calls))
    group.get("/x", _tracer("c", calls), _text("x"))
    assert TestClient(router).get("/g/x").text == "x"
    assert calls == ["a:in", "b:in", "c:in", "c:out", "b:out", "a:out"]


def test_middleware_added_later_skips_earlier_routes():
    async def tag(request, call_next):
        response = await call_next(request)
        response.headers["X-Tag"] = "tagged"
        return response

    router = Router()
    router.get("/early", _text("early"))
    router.use(tag)
    router.get("/late", _text("late"))
    client = TestClient(router)
    assert "x-tag" not in client.get("/early").headers
    assert client.get("/late").headers["x-tag"] == "tagged"


def test_middleware_can_abort_chain():
    reached = []

    async def guard(request, call_next):
        return JSONResponse({"ok": False}, status_code=401)

    async def endpoint(request):
        reached.append(True)
        return PlainTextResponse("secret")

    router = Router()
    router.get("/private", guard, endpoint)
    response = TestClient(router).get("/private")
    assert response.status_code == 401
    assert reached == []


def test_path_parameters_and_static_priority():
    async def show(request):
        return PlainTextResponse(request.path_params["id"])

    router = Router()
    router.get("/users/:id", show)
    router.get("/users/me", _text("me"))
    client = TestClient(router)
    assert client.get("/users/me").text == "me"
    assert client.get("/users/alice").text == "alice"
    assert client.get("/users/alice/extra").status_code == 404


def test_catch_all_parameter():
    async def show(request):
        return PlainTextResponse(request.path_params["rest"])

    router = Router()
    router.get("/files/*rest", show)
    client = TestClient(router)
    assert client.get("/files/a/b").text == "/a/b"
    assert client.get("/files/").text == "/"


def test_catch_all_must_be_last():
    with pytest.raises(ValueError):
        Router().get("/files/*rest/more", _text("x"))


def test_not_found_runs_root_middleware():
    calls = []
    router = Router(not_found=lambda request: PlainTextResponse("none", status_code=404))
    router.use(_tracer("root", calls))
    response = TestClient(router).get("/missing")
    assert response.status_code == 404
    assert response.text == "none"
    assert calls == ["root:in", "root:out"]


def test_wrong_method_is_not_found_by_default():
    router = Router()
    router.get("/x", _text("x"))
    assert TestClient(router).post("/x").status_code == 404


def test_method_not_allowed_when_enabled():
    router = Router(
        method_not_allowed=lambda request: PlainTextResponse("nope", status_code=405),
        handle_method_not_allowed=True,
    )
    router.get("/x", _text("x"))
    client = TestClient(router)
    response = client.post("/x")
    assert response.status_code == 405
    assert response.text == "nope"
    assert client.post("/y").status_code == 404


def test_registration_errors():
    router = Router()
    router.get("/x", _text("x"))
    with pytest.raises(ValueError):
        router.get("/x", _text("again"))
    with pytest.raises(ValueError):
        router.add("get", "/y", _text("y"))
    with pytest.raises(ValueError):
        router.get("/z")


def test_endpoint_returning_none_gives_empty_ok():
    router = Router()
    router.get("/empty", lambda request: None)
    response = TestClient(router).get("/empty")
    assert response.status_code == 200
    assert response.content == b""


def test_errors_list_shared_along_chain():
    async def collect(request, call_next):
        response = await call_next(request)
        response.headers["X-Errors"] = ",".join(request.state.errors)
        return response

    async def failing(request):
        request.state.errors.append("boom")
        return PlainTextResponse("done")

    router = Router()
    router.get("/f", collect, failing)
    assert TestClient(router).get("/f").headers["x-errors"] == "boom"


def test_lifespan_is_supported():
    router = Router()
    router.get("/x", _text("x"))
    with TestClient(router) as client:
        assert client.get("/x").text == "x"