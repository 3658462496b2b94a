"""Print a table of registered routes."""

from __future__ import annotations

import sys
from collections.abc import Iterable

from apiserver.routing import Route

GREEN = "\033[32m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
RED = "\033[31m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
RESET = "\033[0m"

_COLORS = {
    "GET": GREEN,
    "POST": CYAN,
    "PUT": YELLOW,
    "DELETE": RED,
    "PATCH": BLUE,
    "HEAD": MAGENTA,
}
_RANK = {"GET": 1, "POST": 2, "PUT": 3, "PATCH": 4, "DELETE": 5}

_METHOD_WIDTH = 6
_PATH_WIDTH = 60
_HANDLER_WIDTH = 36
_SEP = " │ "
_LINE_WIDTH = 1 + _METHOD_WIDTH + len(_SEP) + _PATH_WIDTH + len(_SEP) + _HANDLER_WIDTH


def crop(text: str, width: int) -> str:
    """Shorten text to width characters, ending with an ellipsis when cut."""
    if len(text) <= width:
        return text
    if width <= 1:
        return text[:max(width, 0)]
    return text[:width - 1] + "…"


def short_name(qualified: str) -> str:
    """Return what follows the last dot of a qualified name."""
    return qualified.rpartition(".")[2]


def first_segment(path: str) -> str:
    """Return the first segment of a path, or "/" for the root."""
    if path == "/":
        return "/"
    return path.removeprefix("/").split("/")[0]


def method_color(method: str) -> str:
    """ANSI colour for an HTTP method, or an empty string."""
    return _COLORS.get(method, "")


def _cells(method: str, path: str, handler: str) -> tuple[str, str, str]:
    return (
        f"{crop(method, _METHOD_WIDTH):<{_METHOD_WIDTH}}",
        f"{crop(path, _PATH_WIDTH):<{_PATH_WIDTH}}",
        f"{crop(handler, _HANDLER_WIDTH):<{_HANDLER_WIDTH}}",
    )


def format_routes(routes: Iterable[Route]) -> str:
    """Render routes as a table grouped by first path segment."""
    routes = list(routes)
    groups: dict[str, list[Route]] = {}
    for route in routes:
        groups.setdefault(first_segment(route.path), []).append(route)

    rule = "─" * (_LINE_WIDTH - 1)
    border = "├" + rule
    lines = [f"\nRegistered routes ({len(routes)}):", "┌" + rule]
    method, path, handler = _cells("METHOD", "PATH", "HANDLER")
    lines.append(f"│{method}{_SEP}{path}{_SEP}{handler}")
    lines.append(border)

    keys = sorted(groups)
    for index, key in enumerate(keys):
        rows = sorted(groups[key], key=lambda r: (r.path, _RANK.get(r.method, 0)))
        for route in rows:
            method, path, handler = _cells(route.method, route.path, short_name(route.handler))
            lines.append(
                f"│{method_color(route.method)}{method}{RESET}{_SEP}{path}{_SEP}{handler}"
            )
        if index < len(keys) - 1:
            lines.append(border)
    lines.append("└" + rule)
    return "\n".join(lines) + "\n" + RESET


def log_routes(routes: Iterable[Route], out=None) -> None:
    """Write the route table to out, standard output by default."""
    (out if out is not None else sys.stdout).write(format_routes(routes))