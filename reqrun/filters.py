"""reqrun filters - dotted path lookup and response rendering."""

from __future__ import annotations

import json
from typing import Any

import click

_MISSING = object()

# ---------------------------------------------------------------------------
# Path lookup
# ---------------------------------------------------------------------------


def _walk(data: Any, path: str) -> Any:
    """Follow dict keys named by *path*; _MISSING on the first miss.

    Keys are matched literally and case-sensitively. Lists are opaque: a
    numeric segment is just another dict key.
    """
    current = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def resolve_path(data: Any, path: str) -> Any:
    """Return the value at dotted *path* in *data*, or None if absent.

    Examples:
        resolve_path({"token": {"access": "x"}}, "token.access")  -> "x"
        resolve_path({"items": [1, 2]}, "items.0")                -> None
    """
    value = _walk(data, path)
    return None if value is _MISSING else value


def has_path(data: Any, path: str) -> bool:
    """True if *path* names an existing key chain (even one holding null)."""
    return _walk(data, path) is not _MISSING


def to_text(value: Any) -> str:
    """String form used when persisting a value: strings verbatim, else JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_json(value: Any, indent: int = 0, color: bool = True) -> str:
    """Pretty-print a JSON value with 4-space nesting and ANSI colors.

    Keys and brackets are blue, strings yellow, numbers green, booleans
    magenta and null red.
    """

    def style(text: str, fg: str) -> str:
        return click.style(text, fg=fg) if color else text

    def block(open_: str, items: list[str], close: str) -> str:
        inner = ",\n".join(" " * (indent + 4) + item for item in items)
        return f"{style(open_, 'blue')}\n{inner}\n{' ' * indent}{style(close, 'blue')}"

    if isinstance(value, dict):
        if not value:
            return style("{}", "blue")
        return block(
            "{",
            [
                f"{style(json.dumps(k), 'blue')}: {render_json(v, indent + 4, color)}"
                for k, v in value.items()
            ],
            "}",
        )
    if isinstance(value, list):
        if not value:
            return style("[]", "blue")
        return block("[", [render_json(v, indent + 4, color) for v in value], "]")
    if isinstance(value, bool):
        return style(json.dumps(value), "magenta")
    if value is None:
        return style("null", "red")
    if isinstance(value, int | float):
        return style(json.dumps(value), "green")
    return style(json.dumps(value, ensure_ascii=False), "yellow")


def format_output(
    result,  # RequestResult from executor.py
    verbose: bool = False,
    raw: bool = False,
    color: bool = True,
) -> str:
    """Format the request result for CLI output."""
    if result.error:
        return f"ERROR: {result.error}"

    if raw:
        return json.dumps(result.body, indent=2)

    lines: list[str] = [
        f"STATUS: {result.status_code}",
        f"TIME: {int(result.elapsed_ms)}ms",
    ]

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    lines.append("BODY:")
    lines.append(render_json(result.body, color=color))
    return "\n".join(lines)
