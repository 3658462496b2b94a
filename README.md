# apiserver

An ASGI API server served by uvicorn, with these parts ready to use:

- `apiserver.routing`: a `Router` with `RouterGroup`s, path prefixes and per-group middleware.
  Paths may hold `:name` and `*name` parameters, which appear in `request.path_params`.
- `apiserver.cors`: CORS for exact origins, `*`, and wildcard subdomains such as
  `https://*.example.com`. Preflight `OPTIONS` requests get a `204` answer.
- `apiserver.auth`: bearer-header and cookie token authentication through a pluggable
  `TokenValidator`. The claims are stored in `request.state.access_claims` or
  `request.state.refresh_claims`.
- `apiserver.middleware`: request IDs (`X-Request-Id`, generated when the client sends
  none), JSON `500` responses for unhandled exceptions, error and access logging, health
  endpoints, and per-request timeouts.
- `apiserver.logger`: log output to standard streams, to plain files, or to files that
  rotate by size.
- `apiserver.routeslog`: a table of the registered routes.
- `apiserver.server`: `Server`, which puts all of this together and adds system endpoints
  under `/sys`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the demo server

```
apiserver
```

This runs `apiserver.app.main`. The server listens on port 8080 under `/api/v1` and prints
the route table at start-up. Every route in `/api/v1` needs a valid access token, taken
from the `Authorization: Bearer ...` header or from the `access_token` cookie. The
demo uses `StubValidator`, which accepts only the token `ok`. The routes are:

- `GET /api/v1/me` returns the access claims
- `GET /api/v1/slow` sleeps five seconds, so the three-second request timeout answers `504`
- `POST /api/v1/auth/refresh` also checks a refresh token in the header
- `GET /api/v1/livez` and `GET /api/v1/readyz` are also in the protected group

Logs are written to `logs/access.log` and `logs/error.log` and rotate at 10 MiB with five
backups. The `logs` directory must already exist, because a rotating log file does not
create its parent directory.

## Building your own server

```python
from starlette.responses import JSONResponse

from apiserver.auth import InvalidTokenError, TokenValidator
from apiserver.config import AuthConfig, Config, CORSConfig
from apiserver.server import Server, with_registrar, with_token_validator


class MyValidator(TokenValidator):
    def validate_access(self, request, token):
        if token == "token":
            return {"sub": "demo"}
        raise InvalidTokenError("bad token")

    def validate_refresh(self, request, token):
        if token == "token":
            return {"sub": "demo"}
        raise InvalidTokenError("bad token")


async def hello(request):
    return JSONResponse({"ok": True})


def routes(group):
    group.get("/hello", hello)


cfg = Config(
    addr=8080,
    base_path="/api/v1",
    cors=CORSConfig(allowed_origins=["https://*.example.com"]),
    auth=AuthConfig(enable_access_middleware=True),
)
server = Server(cfg, with_token_validator(MyValidator()), with_registrar(routes))
server.start()
```

An endpoint is called as `handler(request)`. A middleware is called as
`handler(request, call_next)`. Either can be a plain function or a coroutine, and a
return value of `None` gives an empty `200` response. Errors added to
`request.state.errors` are written to the error log once the request is done.

`Server` can also be used as an ASGI application without calling `start()`. Pass
`server.engine` to any ASGI server or test client.

Options that change the server while it is built:

- `with_registrar(registrar)` takes a callable or an object with `register(group)`, and
  registers routes on the root group.
- `with_engine_mutator(mutator)` adjusts the `Router` before any routes are registered.
- `with_before_start(hook)` runs before serving starts. If the hook raises, `start()`
  raises too.
- `with_before_stop(hook)` runs in `shutdown()`.
- `with_token_validator(validator)` replaces the default `StubValidator`.

`Config.with_defaults()` sets any unset values: port 8080, a 10 s shutdown wait, and
read, read-header, write and idle timeouts of 10, 5, 15 and 60 s.

To protect one route instead of a whole group, put `auth_only(validator, access)` in
front of its handler. This checks only the `Authorization` header, for an access token
when `access` is true and for a refresh token otherwise.

## Error format

Every error response has the same JSON body:

```json
{"code": "not_found", "details": null, "error": "endpoint not found", "ok": false}
```

Routes that do not match get `404`. An unhandled exception gives `500`, with the code
`internal_error`. A request that runs past its timeout gets the configured status (504 by
default), with the code `timeout`.

## System endpoints

These are registered at the top of the router, outside the base path and outside access
authentication:

| Path                 | Purpose                                                |
|----------------------|--------------------------------------------------------|
| `/sys/healthz`       | liveness                                               |
| `/sys/readyz`        | readiness                                              |
| `/sys/info`          | version, start time, uptime, port and base path        |
| `/sys/routes`        | registered routes as JSON                              |
| `/sys/routes/table`  | prints the route table to standard output              |

## What it does not do

- `Server` does not answer `405`. A request whose path exists but whose method does not
  gets `404`. A `Router` built with `handle_method_not_allowed=True` answers `405` instead.
- Only the idle timeout and the shutdown wait are passed on to uvicorn. The read,
  read-header and write timeouts in `HTTPTimeouts` are filled in but not applied.
- `Config.release` and `AuthConfig.enable_refresh_middleware` are accepted but have no
  effect.
- There is no TLS, and the only command-line option is `--help`. The address is always
  `0.0.0.0` on the configured port.