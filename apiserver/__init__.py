"""An ASGI API server with route groups, CORS, token auth, request IDs, timeouts and rotating logs."""

__version__ = "1.0.0"