"""Field base types: sanitize, generate and serialize.

Each base type knows how to coerce raw input into its canonical Python value
(lax coercion through pydantic's TypeAdapter) and how to produce a value for
auto fields that declare no explicit generator.

Sanitizers raise ValueError (pydantic's ValidationError is a ValueError) on
bad input; the materializer turns that into a fieldwright ValidationError
naming the entity and field.
"""

import random
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import TypeAdapter

from .config import get_config
from .core.models.linked import FieldDescriptor

_INT = TypeAdapter(int)
_FLOAT = TypeAdapter(float)
_BOOL = TypeAdapter(bool)
_DATETIME = TypeAdapter(datetime)
_LIST = TypeAdapter(list)
_DICT = TypeAdapter(dict)

_rng = random.SystemRandom()


@dataclass(frozen=True)
class FieldType:
    name: str
    aliases: tuple[str, ...]
    sanitize: Callable[[Any, FieldDescriptor], Any]
    generate: Callable[[FieldDescriptor], Any] | None = None


def now() -> datetime:
    """Current time in the configured timezone (aware datetime)."""
    if get_config().runtime.timezone == "local":
        return datetime.now().astimezone()
    return datetime.now(tz=timezone.utc)


# =============================================================================
# Sanitizers
# =============================================================================


def _sanitize_text(value: Any, field: FieldDescriptor) -> str:
    text = value if isinstance(value, str) else str(value)
    if get_config().runtime.trim_text:
        text = text.strip()
    if field.fixed_length is not None and len(text) != field.fixed_length:
        raise ValueError(f"expected exactly {field.fixed_length} characters")
    if field.max_length is not None and len(text) > field.max_length:
        raise ValueError(f"longer than {field.max_length} characters")
    return text


def _sanitize_enum(value: Any, field: FieldDescriptor) -> str:
    text = str(value).strip()
    if field.values is not None and text not in field.values:
        raise ValueError(f"{text!r} is not one of {list(field.values)}")
    return text


def _generate_text(field: FieldDescriptor) -> str:
    length = field.fixed_length or min(
        field.max_length or get_config().runtime.random_text_length,
        get_config().runtime.random_text_length,
    )
    alphabet = string.ascii_letters + string.digits
    return "".join(_rng.choice(alphabet) for _ in range(length))


def _generate_enum(field: FieldDescriptor) -> str:
    if not field.values:
        raise ValueError(f'Enum field "{field.name}" has no values to choose from')
    return field.values[0]


# =============================================================================
# Type table
# =============================================================================

INTEGER = FieldType(
    name="integer",
    aliases=("int",),
    sanitize=lambda v, f: _INT.validate_python(v),
    generate=lambda f: _rng.randint(1, 2**53 - 1),
)
NUMBER = FieldType(
    name="number",
    aliases=("float", "decimal", "double"),
    sanitize=lambda v, f: _FLOAT.validate_python(v),
    generate=lambda f: _rng.random(),
)
TEXT = FieldType(
    name="text",
    aliases=("string", "char"),
    sanitize=_sanitize_text,
    generate=_generate_text,
)
BOOLEAN = FieldType(
    name="boolean",
    aliases=("bool",),
    sanitize=lambda v, f: _BOOL.validate_python(v),
    generate=lambda f: False,
)
DATETIME = FieldType(
    name="datetime",
    aliases=("timestamp", "date"),
    sanitize=lambda v, f: _DATETIME.validate_python(v),
    generate=lambda f: now(),
)
ENUM = FieldType(
    name="enum",
    aliases=(),
    sanitize=_sanitize_enum,
    generate=_generate_enum,
)
ARRAY = FieldType(
    name="array",
    aliases=("list",),
    sanitize=lambda v, f: _LIST.validate_python(v),
    generate=lambda f: [],
)
OBJECT = FieldType(
    name="object",
    aliases=("json", "dict"),
    sanitize=lambda v, f: _DICT.validate_python(v),
    generate=lambda f: {},
)

TYPES: dict[str, FieldType] = {}
for _t in (INTEGER, NUMBER, TEXT, BOOLEAN, DATETIME, ENUM, ARRAY, OBJECT):
    TYPES[_t.name] = _t
    for _alias in _t.aliases:
        TYPES[_alias] = _t


def resolve_type(name: str) -> FieldType:
    """Look up a base type by name or alias.

    Raises:
        KeyError: If the type is unknown
    """
    try:
        return TYPES[name.lower()]
    except KeyError:
        raise KeyError(f'Unknown field type "{name}"') from None


def canonical_type_name(name: str) -> str:
    return resolve_type(name).name


def sanitize(value: Any, field: FieldDescriptor) -> Any:
    """Coerce a raw input value to the field's base type."""
    return resolve_type(field.type).sanitize(value, field)


def serialize(value: Any) -> Any:
    """Convert a materialized value into a JSON-friendly form."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value
