"""Entity declaration models and YAML I/O.

An EntitySpec is the declarative description of one entity: its fields, each
field's policies and modifier pipeline, and the entity-level features it
uses. It is the input to EntityBuilder, which links it into a frozen Entity.

Example (YAML):

    name: user
    features:
      - name: auto_id
    fields:
      - name: email
        type: text
        modifiers:
          - {kind: Processor, name: trim}
          - {kind: Validator, name: is_email}
      - name: display_name
        type: text
        optional: true
        modifiers:
          - {kind: Activator, name: copy, args: [{ref: email}]}
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldRef(BaseModel):
    """A modifier argument that reads another field's current value."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(description="Name of the referenced field")


def _coerce_arg(value: Any) -> Any:
    if isinstance(value, dict) and set(value) == {"ref"}:
        return FieldRef(ref=value["ref"])
    return value


# =============================================================================
# Modifiers
# =============================================================================


class ModifierSpec(BaseModel):
    """One modifier invocation in a field's pipeline.

    kind is kept as a plain string here so that an unknown kind surfaces as a
    compile error naming the field, rather than a parse failure.
    """

    kind: str = Field(description="Validator, Processor or Activator")
    name: str = Field(description="Registered modifier name")
    args: list[Any] = Field(default_factory=list)
    field_references: list[str] = Field(
        default_factory=list,
        description="Extra fields this modifier reads, beyond those found in args",
    )
    when: str | None = Field(
        default=None,
        description="Activators only: condition over other fields deciding applicability",
    )
    chainable: bool = Field(
        default=True,
        description="Whether adjacent same-kind modifiers on the field may merge",
    )

    @field_validator("args", mode="before")
    @classmethod
    def _parse_refs(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [_coerce_arg(v) for v in value]
        return value


# =============================================================================
# Fields
# =============================================================================


class FieldSpec(BaseModel):
    """Declaration of one entity field and its write policies."""

    name: str
    type: str = Field(default="text", description="Base type name or alias")
    optional: bool = False
    read_only: bool = Field(default=False, description="Never settable from input")
    write_once: bool = Field(
        default=False, description="Settable until it holds a non-null value"
    )
    auto: bool = Field(default=False, description="Value produced by a generator")
    force_update: bool = Field(
        default=False, description="Must be refreshed on every update"
    )
    update_by_db: bool = False
    create_by_db: bool = False
    default: Any = None
    generator: str | None = None
    generator_options: dict[str, Any] = Field(default_factory=dict)
    max_length: int | None = None
    fixed_length: int | None = None
    values: list[str] | None = Field(default=None, description="Enum values")
    comment: str | None = None
    modifiers: list[ModifierSpec] = Field(default_factory=list)

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set


# =============================================================================
# Features and Entity
# =============================================================================


class FeatureSpec(BaseModel):
    """Use of an entity feature, e.g. ``{name: auto_id}``."""

    name: str
    options: Any = None


class IndexSpec(BaseModel):
    fields: list[str]
    unique: bool = False


class EntitySpec(BaseModel):
    """Complete declaration of one entity."""

    name: str
    fields: list[FieldSpec] = Field(default_factory=list)
    features: list[FeatureSpec] = Field(default_factory=list)
    key: str | list[str] | None = None
    indexes: list[IndexSpec] = Field(default_factory=list)

    def to_yaml(self, path: Path | str) -> None:
        """Save the declaration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", exclude_unset=True)

        with open(path, "w") as f:
            yaml.dump(
                data, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "EntitySpec":
        """Load a declaration from a YAML file."""
        path = Path(path)

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.model_validate(data)

    def get_field(self, name: str) -> FieldSpec | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None
