"""Linked (frozen) entity metadata consumed by the compiler and runtime.

These objects are produced once by EntityBuilder and never mutated. Field
order is declaration order, with feature-contributed fields placed where the
feature's link phase added them.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .entity import ModifierSpec


@dataclass(frozen=True)
class FieldDescriptor:
    """Policy and type information for one linked field."""

    name: str
    type: str
    optional: bool = False
    read_only: bool = False
    write_once: bool = False
    auto: bool = False
    force_update: bool = False
    update_by_db: bool = False
    create_by_db: bool = False
    default: Any = None
    has_default: bool = False
    generator: str | None = None
    generator_options: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    max_length: int | None = None
    fixed_length: int | None = None
    values: tuple[str, ...] | None = None
    display_name: str = ""
    modifiers: tuple[ModifierSpec, ...] = ()


@dataclass(frozen=True)
class FeatureUse:
    """One occurrence of a feature on an entity, with its resolved options."""

    name: str
    options: Any = None


@dataclass(frozen=True)
class Entity:
    """A linked entity: ordered fields, features and keys."""

    name: str
    fields: Mapping[str, FieldDescriptor]
    features: tuple[FeatureUse, ...] = ()
    key: tuple[str, ...] = ()
    unique_keys: tuple[tuple[str, ...], ...] = ()

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def field_names(self) -> list[str]:
        return list(self.fields)

    def features_named(self, name: str) -> list[FeatureUse]:
        return [f for f in self.features if f.name == name]

    def unique_key_in(self, data: Mapping[str, Any]) -> tuple[str, ...] | None:
        """Return the first unique key whose fields all have non-null values in data."""
        for fields in self.unique_keys:
            if all(data.get(f) is not None for f in fields):
                return fields
        return None
