"""Uniform JSON error responses."""

from typing import Any

from starlette.responses import JSONResponse


def error_body(code: str, message: str, details: Any = None) -> dict:
    return {"code": code, "details": details, "error": message, "ok": False}


def respond_error(status: int, code: str, message: str, details: Any = None) -> JSONResponse:
    return JSONResponse(error_body(code, message, details), status_code=status)


def not_found_handler(request) -> JSONResponse:
    return respond_error(404, "not_found", "endpoint not found")


def method_not_allowed_handler(request) -> JSONResponse:
    return respond_error(405, "method_not_allowed", "method not allowed")