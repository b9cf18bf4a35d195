"""Built-in activators.

An activator derives a value without needing the target's own input. It is
called as ``func(*args)``; its result is written to the target field.
"""

import uuid as _uuid
from typing import Any

from ..types import now as _now
from ..utils.eval_safe import eval_safe


def copy(source: Any) -> Any:
    return source


def formula(expr: str, *, scope: dict[str, Any]) -> Any:
    return eval_safe(expr, scope)


def concat(*parts: Any) -> str:
    return "".join("" if part is None else str(part) for part in parts)


def now() -> Any:
    return _now()


def uuid() -> str:
    return str(_uuid.uuid4())


def constant(value: Any) -> Any:
    return value
