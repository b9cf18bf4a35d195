"""Auto-value generators.

A generator produces a value for an ``auto`` field that has no raw input.
Fields name one explicitly (``generator: uuid``); otherwise the field's base
type generates the value.

Generators are looked up in GENERATORS, a plain name -> callable table. Call
``register_generator`` at import time to add one. A generator may be a
coroutine function; the materializer awaits whatever ``generate_value``
returns when it is awaitable.
"""

import logging
import time
import uuid
from typing import Any, Callable

from .core.models.linked import FieldDescriptor
from .types import now, resolve_type

logger = logging.getLogger(__name__)

Generator = Callable[[FieldDescriptor, Any, dict[str, Any]], Any]


def _require_text(field: FieldDescriptor, generator: str) -> None:
    if field.type != "text":
        raise ValueError(f'"{generator}" generator requires a text field, got "{field.type}"')


def _uuid(field: FieldDescriptor, i18n: Any, options: dict[str, Any]) -> str:
    _require_text(field, "uuid")
    return str(uuid.uuid4())


_last_uniqid = 0


def _uniqid(field: FieldDescriptor, i18n: Any, options: dict[str, Any]) -> str:
    """Time-based, monotonically increasing hex id with an optional prefix."""
    global _last_uniqid
    _require_text(field, "uniqid")
    stamp = max(time.time_ns() // 1000, _last_uniqid + 1)
    _last_uniqid = stamp
    return f"{options.get('prefix', '')}{stamp:x}"


def _timestamp(field: FieldDescriptor, i18n: Any, options: dict[str, Any]) -> Any:
    if field.type == "datetime":
        return now()
    return int(now().timestamp() * 1000)


GENERATORS: dict[str, Generator] = {
    "uuid": _uuid,
    "uniqid": _uniqid,
    "timestamp": _timestamp,
}


def register_generator(name: str, func: Generator) -> None:
    """Add or replace a named generator."""
    if not callable(func):
        raise TypeError(f"Generator {name!r} is not callable")
    GENERATORS[name] = func


def generate_value(field: FieldDescriptor, i18n: Any = None) -> Any:
    """Produce a value for an auto field.

    The result may be awaitable when the named generator is a coroutine
    function.

    Raises:
        KeyError: If the field names an unregistered generator
        ValueError: If the field's type cannot be generated
    """
    if field.generator:
        try:
            func = GENERATORS[field.generator]
        except KeyError:
            raise KeyError(f'Unknown generator "{field.generator}"') from None
        logger.debug("Generating %s with %s", field.name, field.generator)
        return func(field, i18n, dict(field.generator_options))

    field_type = resolve_type(field.type)
    if field_type.generate is None:
        raise ValueError(f'Type "{field_type.name}" has no default generator')
    return field_type.generate(field)
