"""Built-in processors.

A processor is called as ``func(value, *args)`` and returns the new value,
which feeds the next processor in the same pipeline.
"""

import hashlib
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..utils.eval_safe import eval_safe


def trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


def hash_(value: Any, algorithm: str = "sha256", salt: str = "") -> Any:
    if value is None:
        return None
    digest = hashlib.new(algorithm)
    digest.update(f"{salt}{value}".encode("utf-8"))
    return digest.hexdigest()


def truncate(value: Any, length: int) -> Any:
    if value is None:
        return None
    return value[: int(length)]


def round_(value: Any, digits: int = 0) -> Any:
    """Round half up, unlike the builtin's banker's rounding."""
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-int(digits))
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if int(digits) <= 0 else float(rounded)


def transform(value: Any, expr: str, *, scope: dict[str, Any]) -> Any:
    return eval_safe(expr, {**scope, "value": value})
