"""Access and refresh token authentication middleware."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response

from apiserver.config import AuthConfig
from apiserver.errors import respond_error

Claims = dict[str, Any]
Middleware = Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]

DEFAULT_AUTH_HEADER = "Authorization"
DEFAULT_BEARER_PREFIX = "Bearer "


class InvalidTokenError(Exception):
    """Raised by a validator when a token is rejected."""


class TokenValidator(ABC):
    """Checks access and refresh tokens and returns their claims.

    A validator raises an exception, usually InvalidTokenError, for a token it
    rejects. Its methods may be plain functions or coroutines.
    """

    @abstractmethod
    def validate_access(self, request: Request | None, token: str) -> Claims:
        """Return the claims of a valid access token."""

    @abstractmethod
    def validate_refresh(self, request: Request | None, token: str) -> Claims:
        """Return the claims of a valid refresh token."""


class StubValidator(TokenValidator):
    """Development validator that accepts only the token "ok"."""

    def validate_access(self, request: Request | None, token: str) -> Claims:
        if token == "ok":
            return {"sub": "demo", "role": "user"}
        raise InvalidTokenError("bad token")

    def validate_refresh(self, request: Request | None, token: str) -> Claims:
        if token == "ok":
            return {"sub": "demo"}
        raise InvalidTokenError("bad token")


def _record_error(request: Request, error: BaseException) -> None:
    errors = getattr(request.state, "errors", None)
    if errors is None:
        errors = []
        request.state.errors = errors
    errors.append(error)


class Auth:
    """Builds middleware that read a token, validate it and store its claims."""

    def __init__(self, cfg: AuthConfig, validator: TokenValidator) -> None:
        self.cfg = replace(
            cfg,
            auth_header=cfg.auth_header or DEFAULT_AUTH_HEADER,
            bearer_prefix=cfg.bearer_prefix or DEFAULT_BEARER_PREFIX,
        )
        self.validator = validator

    def _middleware(self, access: bool) -> Middleware:
        kind = "access" if access else "refresh"
        validate = self.validator.validate_access if access else self.validator.validate_refresh

        async def middleware(request: Request, call_next) -> Response:
            token = self.pick_token(request, access)
            if not token:
                return respond_error(401, "no_token", f"{kind} token missing")
            try:
                claims = validate(request, token)
                if inspect.isawaitable(claims):
                    claims = await claims
            except Exception as exc:
                _record_error(request, exc)
                return respond_error(401, "invalid_token", f"invalid {kind} token")
            setattr(request.state, f"{kind}_claims", claims)
            return await call_next(request)

        return middleware

    def access_middleware(self) -> Middleware:
        """Middleware requiring a valid access token; sets request.state.access_claims."""
        return self._middleware(True)

    def refresh_middleware(self) -> Middleware:
        """Middleware requiring a valid refresh token; sets request.state.refresh_claims."""
        return self._middleware(False)

    def pick_token(self, request: Request, access: bool) -> str:
        """Take the token from the bearer header, else from the matching cookie."""
        header = request.headers.get(self.cfg.auth_header, "")
        if header and header.startswith(self.cfg.bearer_prefix):
            return header[len(self.cfg.bearer_prefix):].strip()
        cookie = self.cfg.access_cookie if access else self.cfg.refresh_cookie
        if cookie:
            return request.cookies.get(cookie, "")
        return ""


def auth_only(validator: TokenValidator, access: bool) -> Middleware:
    """Return a header-only access (or refresh) middleware for a single route or group."""
    auth = Auth(
        AuthConfig(auth_header=DEFAULT_AUTH_HEADER, bearer_prefix=DEFAULT_BEARER_PREFIX),
        validator,
    )
    return auth.access_middleware() if access else auth.refresh_middleware()