from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from jinja2 import BaseLoader, Environment, Undefined


def capitalize(value: Any) -> str:
    value = "" if value is None else str(value)
    if not value:
        return ""
    return value[0].upper() + value[1:].lower()


def title_case(value: Any) -> str:
    return " ".join(capitalize(part) for part in re.split(r"[_\-\s]+", str(value or "")) if part)


def to_lower(value: Any) -> str:
    return str(value or "").lower()


def sub(a: int, b: int) -> int:
    return int(a) - int(b)


def quote(value: Any) -> str:
    """Render ``value`` as a double-quoted YAML scalar."""
    return json.dumps("" if value is None else str(value), ensure_ascii=False)


def placeholder(name: str) -> str:
    """Return the render-time placeholder for a template parameter."""
    return "{{ " + str(name) + " }}"


TEMPLATE_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "capitalize": capitalize,
    "title_case": title_case,
    "to_lower": to_lower,
    "sub": sub,
    "quote": quote,
    "placeholder": placeholder,
}


# Payload sources hold user shell and YAML verbatim, so only {{ }} is live there.
PAYLOAD_SYNTAX: dict[str, str] = {
    "block_start_string": "<%ztp",
    "block_end_string": "ztp%>",
    "comment_start_string": "<#ztp",
    "comment_end_string": "ztp#>",
}


def create_environment(loader: BaseLoader | None = None, **syntax: str) -> Environment:
    env = Environment(
        loader=loader,
        autoescape=False,
        undefined=Undefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        **syntax,
    )
    env.filters.update(TEMPLATE_FUNCTIONS)
    env.globals.update(TEMPLATE_FUNCTIONS)
    return env
