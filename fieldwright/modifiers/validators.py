"""Built-in validators.

A validator is called as ``func(value, *args)`` and returns a bool. False
rejects the operation. Arguments declared as ``{ref: field}`` arrive already
resolved to that field's current value.
"""

import re
from typing import Any

from ..utils.eval_safe import eval_safe

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def not_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


def min_length(value: Any, length: int) -> bool:
    return value is not None and len(value) >= int(length)


def max_length(value: Any, length: int) -> bool:
    return value is None or len(value) <= int(length)


def matches(value: Any, pattern: str) -> bool:
    return value is not None and re.search(pattern, str(value)) is not None


def is_email(value: Any) -> bool:
    return isinstance(value, str) and _EMAIL_RE.match(value) is not None


def one_of(value: Any, *options: Any) -> bool:
    # one_of(value, [a, b]) and one_of(value, a, b) are both accepted
    if len(options) == 1 and isinstance(options[0], (list, tuple, set)):
        options = tuple(options[0])
    return value in options


def min_(value: Any, bound: Any) -> bool:
    return value is not None and value >= bound


def max_(value: Any, bound: Any) -> bool:
    return value is not None and value <= bound


def equals(value: Any, other: Any) -> bool:
    return value == other


def expression(value: Any, expr: str, *, scope: dict[str, Any]) -> bool:
    """Evaluate ``expr`` with ``value`` bound to the target's value."""
    return bool(eval_safe(expr, {**scope, "value": value}))
