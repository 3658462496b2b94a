import json

from starlette.requests import Request
from starlette.testclient import TestClient

from apiserver.errors import (
    error_body,
    method_not_allowed_handler,
    not_found_handler,
    respond_error,
)
from apiserver.routing import Router


def _request():
    return Request({"type": "http", "method": "GET", "path": "/x", "headers": []})


def test_error_body_fields():
    body = error_body("no_token", "access token missing", None)
    assert body == {
        "ok": False,
        "error": "access token missing",
        "code": "no_token",
        "details": None,
    }


def test_error_body_keys_are_sorted():
    body = error_body("c", "m", {"field": "name"})
    assert list(body) == sorted(body)
    assert body["details"] == {"field": "name"}


def test_respond_error_status_and_body():
    response = respond_error(401, "invalid_token", "invalid access token")
    assert response.status_code == 401
    assert json.loads(response.body) == error_body(
        "invalid_token", "invalid access token", None
    )


def test_not_found_handler():
    response = not_found_handler(_request())
    assert response.status_code == 404
    payload = json.loads(response.body)
    assert payload["code"] == "not_found"
    assert payload["error"] == "endpoint not found"


def test_method_not_allowed_handler():
    response = method_not_allowed_handler(_request())
    assert response.status_code == 405
    assert json.loads(response.body)["code"] == "method_not_allowed"


def test_handlers_plug_into_router():
    router = Router(not_found=not_found_handler)
    client = TestClient(router)
    response = client.get("/missing")
    assert response.status_code == 404
    assert response.json() == error_body("not_found", "endpoint not found", None)